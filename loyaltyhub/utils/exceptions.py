"""
Custom exceptions for Loyalty Hub business logic.

Services raise these internally and convert them to result dicts at their
public boundary, so callers always get a stable ``error_code`` plus a
human-readable message.
"""


class LoyaltyError(Exception):
    """Base exception for all Loyalty Hub business logic errors."""

    def __init__(self, message: str, code: str = "LOYALTY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_result(self, **extra) -> dict:
        """Failure result in the shape every service returns."""
        result = {'success': False, 'error': self.message, 'error_code': self.code}
        result.update(extra)
        return result


class InvalidParametersError(LoyaltyError):
    """Malformed or missing identifiers/arguments."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        super().__init__(message, "INVALID_PARAMETERS")


class NotFoundError(LoyaltyError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with ID {identifier} not found"
        self.resource = resource
        super().__init__(message, "NOT_FOUND")


class AlreadyPendingError(LoyaltyError):
    """An enrollment request is already waiting on the customer."""

    def __init__(self, message: str = "An enrollment request is already pending for this program"):
        super().__init__(message, "ALREADY_PENDING")


class AlreadyEnrolledError(LoyaltyError):
    """Customer is already an active member of the program."""

    def __init__(self, message: str = "Customer is already enrolled in this program"):
        super().__init__(message, "ALREADY_ENROLLED")


class AlreadyProcessedError(LoyaltyError):
    """Approval request was already resolved."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Request already {status.lower()}", "ALREADY_PROCESSED")


class ExpiredError(LoyaltyError):
    """Approval request is past its expiry."""

    def __init__(self, message: str = "Approval request has expired"):
        super().__init__(message, "EXPIRED")


class NotEnrolledError(LoyaltyError):
    """Operation needs an ACTIVE enrollment."""

    def __init__(self, customer_id=None, program_id=None):
        message = "Customer is not actively enrolled in this program"
        if customer_id is not None and program_id is not None:
            message = f"Customer {customer_id} is not actively enrolled in program {program_id}"
        super().__init__(message, "NOT_ENROLLED")


class InsufficientPointsError(LoyaltyError):
    """Not enough points for the operation."""

    def __init__(self, current: int, required: int):
        self.current = current
        self.required = required
        message = f"Insufficient points. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_POINTS")


class InvalidStatusTransitionError(LoyaltyError):
    """Invalid status transition for a resource."""

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class ForbiddenError(LoyaltyError):
    """Caller does not own the resource."""

    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, "FORBIDDEN")


class StorageError(LoyaltyError):
    """Transient database failure."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "STORAGE_ERROR")


def unexpected_error_result(error: Exception, message: str) -> dict:
    """
    Failure result for an exception outside the LoyaltyError taxonomy.

    Database errors report STORAGE_ERROR, anything else OPERATION_FAILED.
    """
    from sqlalchemy.exc import SQLAlchemyError

    code = "STORAGE_ERROR" if isinstance(error, SQLAlchemyError) else "OPERATION_FAILED"
    return {'success': False, 'error': message, 'error_code': code}
