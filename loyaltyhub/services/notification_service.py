"""
Notification Service for Loyalty Hub.

Two halves:

1. Inbox rows (``customer_notifications``). Producers (approvals, points,
   programs) call ``create_notification`` inside their own unit of work, so a
   notification commits or rolls back together with the state change it
   describes.
2. Live fan-out. After the producer commits it calls ``dispatch`` with the
   rows it created. Delivery goes through ``EventPublisher`` and is best
   effort: a failed push is logged and never fails the producer.

Titles and messages come from ``DEFAULT_TEMPLATES`` keyed by notification
type; variables missing from a template call render as empty strings.
"""
from datetime import datetime
from typing import Optional, Dict, Any, Iterable
from flask import current_app

from ..extensions import db
from ..models.notification import (
    CustomerNotification,
    NotificationPreference,
    NotificationType,
)
from ..models.payloads import PointsPayload, payload_to_dict
from ..utils.exceptions import LoyaltyError, NotFoundError, InvalidParametersError
from ..utils.validation import coerce_id
from .event_publisher import EventPublisher


class _TemplateVars(dict):
    def __missing__(self, key):
        return ''


class NotificationService:
    """
    Service for creating, delivering and reading notifications.

    Usage:
        service = NotificationService()
        row = service.create_notification(customer_id, business_id,
                                          NotificationType.POINTS_ADDED,
                                          variables={'points': 50, ...})
        db.session.commit()
        service.dispatch([row])
    """

    DEFAULT_TEMPLATES = {
        NotificationType.ENROLLMENT_REQUEST: {
            'title': 'Program Enrollment Request',
            'message': '{business_name} would like to enroll you in their {program_name} program',
        },
        NotificationType.ENROLLMENT_ACCEPTED: {
            'title': 'Program Joined',
            'message': "You've joined {business_name}'s {program_name} program",
        },
        NotificationType.ENROLLMENT_REJECTED: {
            'title': 'Program Declined',
            'message': "You've declined to join {business_name}'s {program_name} program",
        },
        NotificationType.ENROLLMENT_SUCCESS: {
            'title': 'Welcome to {program_name}',
            'message': "You're now a member of {business_name}'s {program_name} program",
        },
        NotificationType.ENROLLMENT_DEACTIVATED: {
            'title': 'Membership Paused',
            'message': 'Your {program_name} membership is no longer active',
        },
        NotificationType.POINTS_ADDED: {
            'title': 'Points Added',
            'message': 'You earned {points} points in {program_name}. New balance: {balance}',
        },
        NotificationType.POINTS_DEDUCTION_REQUEST: {
            'title': 'Points Deduction Request',
            'message': '{business_name} is requesting to deduct {points} points from your account',
        },
        NotificationType.POINTS_DEDUCTION_APPROVED: {
            'title': 'Points Deduction Approved',
            'message': "You've approved the deduction of {points} points",
        },
        NotificationType.POINTS_DEDUCTION_REJECTED: {
            'title': 'Points Deduction Declined',
            'message': "You've declined the deduction of {points} points",
        },
        NotificationType.REWARD_REDEEMED: {
            'title': 'Reward Redeemed',
            'message': 'You redeemed {reward_name} for {points} points. New balance: {balance}',
        },
        NotificationType.TIER_CHANGED: {
            'title': 'New Card Tier',
            'message': 'Your {program_name} card is now {tier}',
        },
        NotificationType.PROGRAM_DELETED: {
            'title': 'Program Ended',
            'message': "{business_name}'s {program_name} program has ended",
        },
    }

    # Business-facing wording for outcome notifications
    BUSINESS_TEMPLATES = {
        NotificationType.ENROLLMENT_ACCEPTED: {
            'title': 'Customer Joined Program',
            'message': '{customer_name} has joined your {program_name} program',
        },
        NotificationType.ENROLLMENT_REJECTED: {
            'title': 'Enrollment Declined',
            'message': '{customer_name} has declined to join your {program_name} program',
        },
        NotificationType.POINTS_DEDUCTION_APPROVED: {
            'title': 'Points Deduction Approved',
            'message': '{customer_name} approved deduction of {points} points',
        },
        NotificationType.POINTS_DEDUCTION_REJECTED: {
            'title': 'Points Deduction Declined',
            'message': '{customer_name} declined deduction of {points} points',
        },
        NotificationType.REWARD_REDEEMED: {
            'title': 'Reward Redeemed',
            'message': '{customer_name} redeemed {reward_name} for {points} points',
        },
    }

    def __init__(self, publisher: EventPublisher = None):
        self.publisher = publisher or EventPublisher.from_app()

    # ==================== Rendering ====================

    def _render_template(
        self,
        notification_type: NotificationType,
        variables: Dict[str, Any],
        audience: str = 'customer'
    ) -> Dict[str, str]:
        """Render title and message for a notification type."""
        templates = self.BUSINESS_TEMPLATES if audience == 'business' else self.DEFAULT_TEMPLATES
        template = templates.get(notification_type) or self.DEFAULT_TEMPLATES.get(notification_type, {})
        values = _TemplateVars(variables or {})
        return {
            'title': template.get('title', 'Notification').format_map(values),
            'message': template.get('message', '').format_map(values),
        }

    # ==================== Producers (no commit) ====================

    def create_notification(
        self,
        recipient_id: int,
        business_id: Optional[int],
        notification_type: NotificationType,
        payload=None,
        variables: Dict[str, Any] = None,
        audience: str = 'customer',
        requires_action: bool = False,
        action_taken: bool = False,
        reference_id: str = None,
        title: str = None,
        message: str = None
    ) -> CustomerNotification:
        """
        Add a notification row to the current unit of work.

        The row is flushed so its id is available to the caller, but it is
        only persisted when the caller commits.
        """
        rendered = self._render_template(notification_type, variables or {}, audience)
        notification = CustomerNotification(
            customer_id=recipient_id,
            business_id=business_id,
            type=notification_type.value,
            title=title or rendered['title'],
            message=message or rendered['message'],
            data=payload_to_dict(payload),
            reference_id=reference_id,
            requires_action=requires_action,
            action_taken=action_taken,
            is_read=False,
            created_at=datetime.utcnow()
        )
        db.session.add(notification)
        db.session.flush()
        return notification

    def mark_action_taken(self, notification_id: Optional[int]) -> bool:
        """Flag the notification that announced an approval request. No commit."""
        if not notification_id:
            return False
        updated = CustomerNotification.query.filter_by(id=notification_id).update(
            {CustomerNotification.action_taken: True},
            synchronize_session=False
        )
        return updated > 0

    # ==================== Fan-out ====================

    def emit(self, recipient_id: int, notification: CustomerNotification) -> bool:
        """
        Best-effort live delivery of one notification.

        Skipped when the recipient turned push off. Never raises.
        """
        try:
            prefs = NotificationPreference.query.filter_by(customer_id=recipient_id).first()
            if prefs is not None and not prefs.push:
                return False
            return self.publisher.emit(recipient_id, {
                'event': 'notification',
                'type': notification.type,
                'notification': notification.to_dict(),
            })
        except Exception as e:
            current_app.logger.warning(f"Notification fan-out to {recipient_id} failed: {e}")
            return False

    def dispatch(self, notifications: Iterable[CustomerNotification]) -> int:
        """Emit committed notifications. Returns how many were handed off."""
        delivered = 0
        for notification in notifications:
            if notification is not None and self.emit(notification.customer_id, notification):
                delivered += 1
        return delivered

    # ==================== Inbox ====================

    def get_notifications(
        self,
        recipient_id,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0
    ) -> Dict[str, Any]:
        """Notifications for a recipient, newest first."""
        try:
            recipient_id = coerce_id(recipient_id, 'recipient_id')
            query = CustomerNotification.query.filter_by(customer_id=recipient_id)
            if unread_only:
                query = query.filter_by(is_read=False)

            total = query.count()
            rows = query.order_by(
                CustomerNotification.created_at.desc(),
                CustomerNotification.id.desc()
            ).offset(offset).limit(min(limit, 200)).all()

            unread = CustomerNotification.query.filter_by(
                customer_id=recipient_id, is_read=False
            ).count()

            return {
                'success': True,
                'notifications': [n.to_dict() for n in rows],
                'total': total,
                'unread_count': unread
            }
        except LoyaltyError as e:
            return e.to_result()

    def mark_as_read(self, notification_id, recipient_id) -> Dict[str, Any]:
        try:
            notification_id = coerce_id(notification_id, 'notification_id')
            recipient_id = coerce_id(recipient_id, 'recipient_id')

            notification = CustomerNotification.query.filter_by(
                id=notification_id, customer_id=recipient_id
            ).first()
            if not notification:
                raise NotFoundError('Notification', notification_id)

            if not notification.is_read:
                notification.is_read = True
                notification.read_at = datetime.utcnow()
                db.session.commit()

            return {'success': True, 'notification': notification.to_dict()}
        except LoyaltyError as e:
            return e.to_result()

    def mark_all_as_read(self, recipient_id) -> Dict[str, Any]:
        try:
            recipient_id = coerce_id(recipient_id, 'recipient_id')
            updated = CustomerNotification.query.filter_by(
                customer_id=recipient_id, is_read=False
            ).update({
                CustomerNotification.is_read: True,
                CustomerNotification.read_at: datetime.utcnow(),
            }, synchronize_session=False)
            db.session.commit()
            return {'success': True, 'updated': updated}
        except LoyaltyError as e:
            return e.to_result()

    # ==================== Preferences ====================

    def _get_or_create_preferences(self, customer_id: int) -> NotificationPreference:
        prefs = NotificationPreference.query.filter_by(customer_id=customer_id).first()
        if prefs is None:
            prefs = NotificationPreference(
                customer_id=customer_id,
                email=True,
                push=True,
                in_app=True,
                sms=False,
                enrollment_notifications=True,
                points_earned_notifications=True,
                points_deducted_notifications=True,
                promo_code_notifications=True,
                reward_available_notifications=True
            )
            db.session.add(prefs)
            db.session.commit()
        return prefs

    def get_preferences(self, customer_id) -> Dict[str, Any]:
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            prefs = self._get_or_create_preferences(customer_id)
            return {'success': True, 'preferences': prefs.to_dict()}
        except LoyaltyError as e:
            return e.to_result()

    def update_preferences(self, customer_id, updates: Dict[str, Any]) -> Dict[str, Any]:
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            unknown = [k for k in (updates or {}) if k not in NotificationPreference.FLAGS]
            if unknown:
                raise InvalidParametersError(f"Unknown preference(s): {', '.join(sorted(unknown))}")

            prefs = self._get_or_create_preferences(customer_id)
            for key, value in (updates or {}).items():
                if not isinstance(value, bool):
                    raise InvalidParametersError(f'{key} must be true or false', field=key)
                setattr(prefs, key, value)
            db.session.commit()
            return {'success': True, 'preferences': prefs.to_dict()}
        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()

    def notify_tier_change(self, card, tier_change, program_name: str = None) -> CustomerNotification:
        """TIER_CHANGED notification for a card whose tier just moved. No commit."""
        previous_tier, tier = tier_change
        return self.create_notification(
            card.customer_id,
            card.business_id,
            NotificationType.TIER_CHANGED,
            payload=PointsPayload(
                program_id=card.program_id,
                balance=card.points,
                program_name=program_name,
                tier=tier,
                previous_tier=previous_tier
            ),
            variables={'program_name': program_name or 'loyalty', 'tier': tier}
        )
