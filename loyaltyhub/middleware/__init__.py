"""
Middleware package for Loyalty Hub.
"""
from .request_id import init_request_id_tracking
from .user_auth import require_user, get_user_id_from_request, scoped_customer_id
