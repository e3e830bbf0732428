"""
Utility modules for Loyalty Hub.
"""
from .logging_config import setup_logging, get_logger
from .errors import (
    ErrorCode,
    error_response,
    service_response,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    internal_error
)
from .exceptions import (
    LoyaltyError,
    InvalidParametersError,
    NotFoundError,
    AlreadyPendingError,
    AlreadyEnrolledError,
    AlreadyProcessedError,
    ExpiredError,
    NotEnrolledError,
    InsufficientPointsError,
    InvalidStatusTransitionError,
    ForbiddenError,
    StorageError,
    unexpected_error_result
)
from .validation import coerce_id, coerce_points
