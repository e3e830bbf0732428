"""
Database models for the Loyalty Hub platform.
Programs, enrollments, loyalty cards, the points ledger and notifications.
"""
from .user import User, UserType
from .program import LoyaltyProgram, Reward, ProgramStatus
from .enrollment import ProgramEnrollment, EnrollmentStatus
from .loyalty_card import LoyaltyCard, CardActivity, CardActivityType
from .points import PointTransaction, PointTransactionType
from .notification import (
    CustomerNotification,
    ApprovalRequest,
    NotificationPreference,
    NotificationType,
    ApprovalRequestType,
    ApprovalStatus,
    DEFAULT_APPROVAL_EXPIRY_DAYS,
)
from .payloads import (
    EnrollmentPayload,
    PointsPayload,
    ProgramPayload,
    payload_to_dict,
    payload_from_dict,
)

__all__ = [
    'User',
    'UserType',
    # Programs
    'LoyaltyProgram',
    'Reward',
    'ProgramStatus',
    # Enrollment & cards
    'ProgramEnrollment',
    'EnrollmentStatus',
    'LoyaltyCard',
    'CardActivity',
    'CardActivityType',
    # Ledger
    'PointTransaction',
    'PointTransactionType',
    # Notifications & approvals
    'CustomerNotification',
    'ApprovalRequest',
    'NotificationPreference',
    'NotificationType',
    'ApprovalRequestType',
    'ApprovalStatus',
    'DEFAULT_APPROVAL_EXPIRY_DAYS',
    # Payloads
    'EnrollmentPayload',
    'PointsPayload',
    'ProgramPayload',
    'payload_to_dict',
    'payload_from_dict',
]
