"""
Customer notification, approval request and notification preference models.

Notifications are inbox rows for any user (customer or business): the
``customer_id`` column is the recipient. Approval requests are pending
customer decisions linked to the notification that announced them.
"""
import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Any
from ..extensions import db


class NotificationType(str, Enum):
    # Enrollment workflow
    ENROLLMENT_REQUEST = 'ENROLLMENT_REQUEST'
    ENROLLMENT_ACCEPTED = 'ENROLLMENT_ACCEPTED'
    ENROLLMENT_REJECTED = 'ENROLLMENT_REJECTED'
    ENROLLMENT_SUCCESS = 'ENROLLMENT_SUCCESS'
    ENROLLMENT_DEACTIVATED = 'ENROLLMENT_DEACTIVATED'

    # Points
    POINTS_ADDED = 'POINTS_ADDED'
    POINTS_DEDUCTION_REQUEST = 'POINTS_DEDUCTION_REQUEST'
    POINTS_DEDUCTION_APPROVED = 'POINTS_DEDUCTION_APPROVED'
    POINTS_DEDUCTION_REJECTED = 'POINTS_DEDUCTION_REJECTED'
    REWARD_REDEEMED = 'REWARD_REDEEMED'
    TIER_CHANGED = 'TIER_CHANGED'

    # Programs
    PROGRAM_DELETED = 'PROGRAM_DELETED'


class ApprovalRequestType(str, Enum):
    ENROLLMENT = 'ENROLLMENT'
    POINTS_DEDUCTION = 'POINTS_DEDUCTION'


class ApprovalStatus(str, Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'
    EXPIRED = 'EXPIRED'   # Set by the sweep only


DEFAULT_APPROVAL_EXPIRY_DAYS = 7


class CustomerNotification(db.Model):
    __tablename__ = 'customer_notifications'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)  # recipient
    business_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, default=dict)
    reference_id = db.Column(db.String(64))

    requires_action = db.Column(db.Boolean, nullable=False, default=False)
    action_taken = db.Column(db.Boolean, nullable=False, default=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    read_at = db.Column(db.DateTime)

    __table_args__ = (
        db.Index('ix_customer_notifications_recipient_created', 'customer_id', 'created_at'),
    )

    def __repr__(self):
        return f'<CustomerNotification {self.id} {self.type} -> {self.customer_id}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': self.data or {},
            'reference_id': self.reference_id,
            'requires_action': self.requires_action,
            'action_taken': self.action_taken,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'read_at': self.read_at.isoformat() if self.read_at else None
        }


class ApprovalRequest(db.Model):
    __tablename__ = 'customer_approval_requests'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    notification_id = db.Column(db.Integer, db.ForeignKey('customer_notifications.id'))
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    request_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)  # program id for ENROLLMENT
    status = db.Column(db.String(20), nullable=False, default=ApprovalStatus.PENDING.value)
    data = db.Column(db.JSON, default=dict)

    requested_at = db.Column(db.DateTime, default=datetime.utcnow)
    responded_at = db.Column(db.DateTime)
    expires_at = db.Column(
        db.DateTime,
        default=lambda: datetime.utcnow() + timedelta(days=DEFAULT_APPROVAL_EXPIRY_DAYS)
    )

    notification = db.relationship('CustomerNotification')

    __table_args__ = (
        db.Index('ix_approval_requests_customer_status', 'customer_id', 'status'),
        db.Index('ix_approval_requests_entity', 'request_type', 'entity_id'),
    )

    def __repr__(self):
        return f'<ApprovalRequest {self.id} {self.request_type} {self.status}>'

    def is_expired(self, now: datetime = None) -> bool:
        if not self.expires_at:
            return False
        return self.expires_at <= (now or datetime.utcnow())

    @property
    def is_actionable(self) -> bool:
        return self.status == ApprovalStatus.PENDING.value and not self.is_expired()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'notification_id': self.notification_id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'request_type': self.request_type,
            'entity_id': self.entity_id,
            'status': self.status,
            'data': self.data or {},
            'requested_at': self.requested_at.isoformat() if self.requested_at else None,
            'responded_at': self.responded_at.isoformat() if self.responded_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None
        }


class NotificationPreference(db.Model):
    """Per-customer delivery toggles. Created with defaults on first read."""
    __tablename__ = 'customer_notification_preferences'

    FLAGS = (
        'email', 'push', 'in_app', 'sms',
        'enrollment_notifications', 'points_earned_notifications',
        'points_deducted_notifications', 'promo_code_notifications',
        'reward_available_notifications',
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)

    email = db.Column(db.Boolean, nullable=False, default=True)
    push = db.Column(db.Boolean, nullable=False, default=True)
    in_app = db.Column(db.Boolean, nullable=False, default=True)
    sms = db.Column(db.Boolean, nullable=False, default=False)
    enrollment_notifications = db.Column(db.Boolean, nullable=False, default=True)
    points_earned_notifications = db.Column(db.Boolean, nullable=False, default=True)
    points_deducted_notifications = db.Column(db.Boolean, nullable=False, default=True)
    promo_code_notifications = db.Column(db.Boolean, nullable=False, default=True)
    reward_available_notifications = db.Column(db.Boolean, nullable=False, default=True)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = {'customer_id': self.customer_id}
        for flag in self.FLAGS:
            data[flag] = bool(getattr(self, flag))
        return data
