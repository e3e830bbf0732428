"""
Live event delivery over Redis pub/sub.

Each recipient has a channel ``<prefix>:<recipient_id>``; websocket/SSE
gateways subscribe to it and push events to connected browsers. Delivery is
fire-and-forget: nothing here raises, and a missing or unreachable Redis only
means clients pick the change up from their inbox on the next poll.
"""
import json
import logging
from typing import Any, Dict, Optional

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_PREFIX = 'loyaltyhub:notifications'
EXTENSION_KEY = 'loyaltyhub_publisher'


class EventPublisher:
    """
    Publishes JSON events to per-recipient Redis channels.

    Usage:
        publisher = EventPublisher.from_app()
        publisher.emit(customer_id, {'type': 'ENROLLMENT_ACCEPTED', ...})
    """

    def __init__(self, redis_url: Optional[str] = None, channel_prefix: str = DEFAULT_CHANNEL_PREFIX,
                 client=None):
        self.redis_url = redis_url
        self.channel_prefix = channel_prefix
        self._client = client

    @classmethod
    def for_config(cls, config) -> 'EventPublisher':
        return cls(
            redis_url=config.get('REDIS_URL') or None,
            channel_prefix=config.get('NOTIFICATION_CHANNEL_PREFIX', DEFAULT_CHANNEL_PREFIX),
        )

    @classmethod
    def from_app(cls) -> 'EventPublisher':
        """The current app's shared publisher (one Redis client per app)."""
        if not has_app_context():
            return cls()
        publisher = current_app.extensions.get(EXTENSION_KEY)
        if publisher is None:
            publisher = init_publisher(current_app)
        return publisher

    def channel_for(self, recipient_id: int) -> str:
        return f'{self.channel_prefix}:{recipient_id}'

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not self.redis_url:
            return None
        import redis
        self._client = redis.from_url(self.redis_url, socket_connect_timeout=2, socket_timeout=2)
        return self._client

    def emit(self, recipient_id: int, payload: Dict[str, Any]) -> bool:
        """
        Publish an event to one recipient.

        Returns:
            True if handed to Redis, False if skipped or failed
        """
        try:
            client = self._get_client()
            if client is None:
                logger.debug('Live delivery disabled, event for %s kept in inbox only', recipient_id)
                return False

            message = json.dumps(payload, default=str)
            receivers = client.publish(self.channel_for(recipient_id), message)
            logger.debug('Published %s to %s (%s receivers)', payload.get('type'), recipient_id, receivers)
            return True
        except Exception as e:
            logger.warning('Live delivery to %s failed: %s', recipient_id, e)
            return False


def init_publisher(app) -> EventPublisher:
    """Create the app's publisher and register it on ``app.extensions``."""
    publisher = EventPublisher.for_config(app.config)
    app.extensions[EXTENSION_KEY] = publisher
    if publisher.redis_url:
        logger.info('[LoyaltyHub] Live delivery via Redis: %s', publisher.redis_url.split('@')[-1])
    return publisher
