"""
Retry policy for ledger store reads.

Only idempotent reads are retried. Writes go through conditional updates and
are never replayed blindly.
"""
import time
import logging
from functools import wraps

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError

from .exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.05


def _policy():
    if has_app_context():
        return (
            current_app.config.get('LEDGER_READ_RETRIES', DEFAULT_ATTEMPTS),
            current_app.config.get('LEDGER_RETRY_BASE_DELAY', DEFAULT_BASE_DELAY),
        )
    return DEFAULT_ATTEMPTS, DEFAULT_BASE_DELAY


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential delay before retry number ``attempt`` (1-based)."""
    return base_delay * (2 ** (attempt - 1))


def retry_read(func):
    """
    Retry a read on transient database errors with exponential backoff.

    Raises StorageError once the attempts are exhausted.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        from ..extensions import db

        attempts, base_delay = _policy()
        attempts = max(1, int(attempts))
        # Inside an open unit of work a rollback would discard its writes,
        # so only reads that start their own transaction are retried.
        if db.session().in_transaction():
            attempts = 1
        last_error = None

        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except OperationalError as e:
                last_error = e
                if attempts == 1:
                    break
                db.session.rollback()
                if attempt < attempts:
                    delay = backoff_delay(attempt, base_delay)
                    logger.warning(
                        '%s failed (attempt %d/%d), retrying in %.3fs: %s',
                        func.__name__, attempt, attempts, delay, e
                    )
                    time.sleep(delay)

        logger.error('%s failed after %d attempts: %s', func.__name__, attempts, last_error)
        raise StorageError(f'Storage unavailable during {func.__name__}', original_error=last_error)

    return wrapper
