"""
User Authentication Middleware.

Session issuance lives with the auth gateway in front of this service; it
forwards the authenticated user as the X-User-ID header. This decorator
resolves that id against the users table.
"""
from functools import wraps
from typing import Optional
from flask import request, g

from ..extensions import db
from ..models.user import User, UserType
from ..utils.errors import unauthorized, forbidden

USER_ID_HEADER = 'X-User-ID'


def get_user_id_from_request() -> Optional[int]:
    """User id from the X-User-ID header, or None when missing/malformed."""
    raw = request.headers.get(USER_ID_HEADER, '').strip()
    if not raw.isdigit():
        return None
    return int(raw)


def require_user(user_type: UserType = None):
    """
    Decorator to require an authenticated user.

    Sets g.user, g.user_id and g.user_type.

    Usage:
        @require_user(UserType.BUSINESS)
        def award():
            business_id = g.user_id
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = get_user_id_from_request()
            if user_id is None:
                return unauthorized('Missing or invalid X-User-ID header')

            user = db.session.get(User, user_id)
            if not user:
                return unauthorized('Unknown user')

            if user_type is not None and user.user_type != user_type.value:
                return forbidden(f'This endpoint requires a {user_type.value} account')

            g.user = user
            g.user_id = user.id
            g.user_type = user.user_type
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def scoped_customer_id(requested_customer_id, program_id):
    """
    Customer whose data the caller may read for ``program_id``.

    Customers always read their own data. Businesses name the customer and
    must own the program.

    Returns:
        (customer_id, None) or (None, error response)
    """
    from ..models.program import LoyaltyProgram
    from ..utils.errors import bad_request, not_found, ErrorCode

    if g.user_type != UserType.BUSINESS.value:
        return g.user_id, None

    if requested_customer_id is None:
        return None, bad_request('customer_id is required', ErrorCode.INVALID_PARAMETERS)
    if program_id is None:
        return None, bad_request('program_id is required', ErrorCode.INVALID_PARAMETERS)

    program = db.session.get(LoyaltyProgram, program_id)
    if not program:
        return None, not_found(f'Program with ID {program_id} not found')
    if program.business_id != g.user_id:
        return None, forbidden('Program belongs to another business')
    return requested_customer_id, None
