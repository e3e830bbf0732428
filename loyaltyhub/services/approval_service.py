"""
Approval Service for Loyalty Hub.

Coordinates customer approval requests (program enrollment invites and
business-initiated point deductions):

1. ``create_approval_request`` writes the announcing notification
   (requires_action) and the request referencing it in one transaction.
2. ``respond_to_approval`` resolves a request exactly once. The status flip
   is a conditional UPDATE on ``status = 'PENDING'`` committed on its own;
   the consequences (enrollment + card or point deduction, outcome
   notifications) follow in a second unit of work. If that second unit fails
   the request stays resolved and the failure is reported to the caller;
   ``flask ledger verify`` lists such gaps.

Live fan-out only happens after commit.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List
from flask import current_app

from ..extensions import db
from ..models.user import User
from ..models.program import LoyaltyProgram
from ..models.notification import (
    ApprovalRequest,
    ApprovalRequestType,
    ApprovalStatus,
    NotificationType,
    DEFAULT_APPROVAL_EXPIRY_DAYS,
)
from ..models.enrollment import EnrollmentStatus
from ..models.loyalty_card import CardActivityType
from ..models.points import PointTransactionType
from ..models.payloads import EnrollmentPayload, PointsPayload, payload_to_dict, payload_from_dict
from ..utils.exceptions import (
    LoyaltyError,
    InvalidParametersError,
    NotFoundError,
    ForbiddenError,
    AlreadyProcessedError,
    AlreadyEnrolledError,
    AlreadyPendingError,
    ExpiredError,
    NotEnrolledError,
    InsufficientPointsError,
    unexpected_error_result,
)
from ..utils.validation import coerce_id, coerce_points
from .ledger_store import LedgerStore
from .notification_service import NotificationService


REQUEST_NOTIFICATION = {
    ApprovalRequestType.ENROLLMENT: NotificationType.ENROLLMENT_REQUEST,
    ApprovalRequestType.POINTS_DEDUCTION: NotificationType.POINTS_DEDUCTION_REQUEST,
}

OUTCOME_NOTIFICATION = {
    (ApprovalRequestType.ENROLLMENT, True): NotificationType.ENROLLMENT_ACCEPTED,
    (ApprovalRequestType.ENROLLMENT, False): NotificationType.ENROLLMENT_REJECTED,
    (ApprovalRequestType.POINTS_DEDUCTION, True): NotificationType.POINTS_DEDUCTION_APPROVED,
    (ApprovalRequestType.POINTS_DEDUCTION, False): NotificationType.POINTS_DEDUCTION_REJECTED,
}


def _parse_request_type(value) -> ApprovalRequestType:
    if isinstance(value, ApprovalRequestType):
        return value
    try:
        return ApprovalRequestType(str(value).upper())
    except ValueError:
        raise InvalidParametersError(f'Unknown request type: {value}', field='request_type')


class ApprovalService:
    """
    Approval workflow coordinator.

    Usage:
        service = ApprovalService()
        result = service.create_approval_request(customer_id, business_id,
                                                 'POINTS_DEDUCTION', program_id,
                                                 payload={'points': 50})
        service.respond_to_approval(result['request']['id'], approved=True)
    """

    def __init__(self, ledger: LedgerStore = None, notification_service: NotificationService = None,
                 enrollment_service=None):
        self.ledger = ledger or LedgerStore()
        self.notifications = notification_service or NotificationService()
        if enrollment_service is None:
            from .enrollment_service import EnrollmentService
            enrollment_service = EnrollmentService(
                ledger=self.ledger,
                notification_service=self.notifications,
                approval_service=self
            )
        self.enrollments = enrollment_service

    def _expiry_days(self) -> int:
        return current_app.config.get('APPROVAL_EXPIRY_DAYS', DEFAULT_APPROVAL_EXPIRY_DAYS)

    # ==================== Create ====================

    def create_approval_request(
        self,
        customer_id,
        business_id,
        request_type,
        entity_id,
        payload=None
    ) -> Dict[str, Any]:
        """
        Ask a customer to approve something.

        Args:
            customer_id: Customer who must respond
            business_id: Requesting business
            request_type: ENROLLMENT or POINTS_DEDUCTION
            entity_id: Program id the request is about
            payload: Extra data; POINTS_DEDUCTION needs 'points' (and may carry 'reason')

        Returns:
            Dict with the created request
        """
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            business_id = coerce_id(business_id, 'business_id')
            request_type = _parse_request_type(request_type)
            program_id = coerce_id(entity_id, 'entity_id')

            program = db.session.get(LoyaltyProgram, program_id)
            if not program:
                raise NotFoundError('Program', program_id)
            if program.business_id != business_id:
                raise ForbiddenError('Program belongs to another business')

            customer = db.session.get(User, customer_id)
            if not customer or customer.is_business:
                raise NotFoundError('Customer', customer_id)
            business = db.session.get(User, business_id)

            extra = payload_to_dict(payload)
            variables = {
                'business_name': business.name if business else '',
                'program_name': program.name,
                'customer_name': customer.name,
            }

            if request_type == ApprovalRequestType.POINTS_DEDUCTION:
                points = coerce_points(extra.get('points'))
                enrollment = self.ledger.get_enrollment(customer_id, program_id)
                if enrollment is None or not enrollment.is_active:
                    raise NotEnrolledError(customer_id, program_id)
                request_payload = PointsPayload(
                    program_id=program_id,
                    points=points,
                    program_name=program.name,
                    customer_id=customer_id,
                    reason=extra.get('reason')
                )
                variables['points'] = points
            else:
                state, _, _ = self.enrollments.derive_state(customer_id, program_id)
                if state == EnrollmentStatus.ACTIVE:
                    raise AlreadyEnrolledError()
                if state == EnrollmentStatus.PENDING:
                    raise AlreadyPendingError()
                request_payload = EnrollmentPayload(
                    program_id=program_id,
                    program_name=program.name,
                    business_name=business.name if business else None,
                    customer_id=customer_id,
                    message=extra.get('message')
                )

            def work():
                notification = self.notifications.create_notification(
                    customer_id,
                    business_id,
                    REQUEST_NOTIFICATION[request_type],
                    payload=request_payload,
                    variables=variables,
                    requires_action=True
                )
                now = datetime.utcnow()
                request = ApprovalRequest(
                    notification_id=notification.id,
                    customer_id=customer_id,
                    business_id=business_id,
                    request_type=request_type.value,
                    entity_id=str(program_id),
                    status=ApprovalStatus.PENDING.value,
                    data=payload_to_dict(request_payload),
                    requested_at=now,
                    expires_at=now + timedelta(days=self._expiry_days())
                )
                db.session.add(request)
                db.session.flush()
                notification.reference_id = request.id
                return request, notification

            request, notification = self.ledger.run_in_transaction(work)
            self.notifications.dispatch([notification])

            current_app.logger.info(
                f"Approval request {request.id} ({request_type.value}) created for customer {customer_id}"
            )
            return {'success': True, 'request': request.to_dict()}

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create approval request: {e}")
            return unexpected_error_result(e, 'Failed to create approval request')

    # ==================== Read ====================

    def list_pending_approvals(self, customer_id) -> Dict[str, Any]:
        """PENDING, unexpired requests of a customer, newest first."""
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            now = datetime.utcnow()
            requests = ApprovalRequest.query.filter(
                ApprovalRequest.customer_id == customer_id,
                ApprovalRequest.status == ApprovalStatus.PENDING.value,
                ApprovalRequest.expires_at > now
            ).order_by(ApprovalRequest.requested_at.desc()).all()

            return {
                'success': True,
                'requests': [r.to_dict() for r in requests],
                'total': len(requests)
            }
        except LoyaltyError as e:
            return e.to_result()

    # ==================== Respond ====================

    def _replay_result(self, request: ApprovalRequest, approved: bool) -> Dict[str, Any]:
        """
        Outcome for a request that is no longer PENDING.

        Approving an already approved enrollment again reports the existing
        card so retries by the client are harmless. When the claim is
        committed but the card is not (a concurrent response still applying,
        or an apply that failed), the activation is run here; it is
        idempotent, so both paths end on the same card. Expired requests
        report EXPIRED whether or not the sweep has run. Everything else is
        ALREADY_PROCESSED.
        """
        if (approved
                and request.status == ApprovalStatus.APPROVED.value
                and request.request_type == ApprovalRequestType.ENROLLMENT.value):
            card = self.ledger.get_card(request.customer_id, int(request.entity_id))
            if card is None:
                card = self.ledger.run_in_transaction(
                    lambda: self.enrollments.resolve_approval(request, True)
                )
                current_app.logger.info(f"Completed activation for approved request {request.id}")
            return {
                'success': True,
                'request_id': request.id,
                'status': request.status,
                'card_id': card.id,
                'already_processed': True
            }
        if request.status == ApprovalStatus.EXPIRED.value or (
                request.status == ApprovalStatus.PENDING.value and request.is_expired()):
            raise ExpiredError()
        raise AlreadyProcessedError(request.status)

    def _precheck_deduction(self, request: ApprovalRequest) -> int:
        points = int((request.data or {}).get('points') or 0)
        enrollment = self.ledger.get_enrollment(request.customer_id, int(request.entity_id))
        if enrollment is None or not enrollment.is_active:
            raise NotEnrolledError(request.customer_id, request.entity_id)
        if enrollment.current_points < points:
            raise InsufficientPointsError(enrollment.current_points, points)
        return points

    def _claim(self, request: ApprovalRequest, approved: bool) -> bool:
        """Flip PENDING -> APPROVED/REJECTED if nobody else did first. Commits."""
        now = datetime.utcnow()
        new_status = ApprovalStatus.APPROVED.value if approved else ApprovalStatus.REJECTED.value
        updated = ApprovalRequest.query.filter(
            ApprovalRequest.id == request.id,
            ApprovalRequest.status == ApprovalStatus.PENDING.value,
            ApprovalRequest.expires_at > now
        ).update({
            ApprovalRequest.status: new_status,
            ApprovalRequest.responded_at: now,
        }, synchronize_session=False)
        db.session.commit()
        return updated > 0

    def respond_to_approval(self, request_id, approved: bool, customer_id=None) -> Dict[str, Any]:
        """
        Apply the customer's decision to a request.

        Args:
            request_id: Approval request id
            approved: True to approve, False to reject
            customer_id: Responding customer; must own the request when given

        Returns:
            Dict with the final status; 'card_id' for approved enrollments
        """
        try:
            if not request_id or not isinstance(request_id, str):
                raise InvalidParametersError('request_id is required', field='request_id')
            if not isinstance(approved, bool):
                raise InvalidParametersError('approved must be true or false', field='approved')

            request = db.session.get(ApprovalRequest, request_id)
            if not request:
                raise NotFoundError('Approval request', request_id)
            if customer_id is not None and request.customer_id != coerce_id(customer_id, 'customer_id'):
                raise ForbiddenError('Approval request belongs to another customer')

            if request.status != ApprovalStatus.PENDING.value:
                return self._replay_result(request, approved)
            if request.is_expired():
                raise ExpiredError()

            request_type = ApprovalRequestType(request.request_type)
            if request_type == ApprovalRequestType.POINTS_DEDUCTION and approved:
                self._precheck_deduction(request)

            if not self._claim(request, approved):
                request = ApprovalRequest.query.filter_by(id=request_id).populate_existing().first()
                return self._replay_result(request, approved)

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to resolve approval request {request_id}: {e}")
            return unexpected_error_result(e, 'Failed to process approval response')

        db.session.refresh(request)
        current_app.logger.info(f"Approval request {request.id} {request.status.lower()}")

        try:
            card, created = self.ledger.run_in_transaction(
                lambda: self._apply_outcome(request, request_type, approved)
            )
        except LoyaltyError as e:
            current_app.logger.error(
                f"Approval request {request.id} resolved but applying it failed: {e.message}"
            )
            return e.to_result(request_id=request.id, status=request.status)
        except Exception as e:
            current_app.logger.error(f"Approval request {request.id} resolved but applying it failed: {e}")
            return unexpected_error_result(e, 'Request was resolved but could not be applied')

        self.notifications.dispatch(created)

        result = {
            'success': True,
            'request_id': request.id,
            'status': request.status,
            'request_type': request.request_type
        }
        if card is not None:
            result['card_id'] = card.id
        return result

    def _apply_outcome(self, request: ApprovalRequest, request_type: ApprovalRequestType, approved: bool):
        """
        Consequences of a resolved request, as one unit of work.

        Returns:
            (card or None, notifications created)
        """
        self.notifications.mark_action_taken(request.notification_id)

        program_id = int(request.entity_id)
        program = db.session.get(LoyaltyProgram, program_id)
        customer = db.session.get(User, request.customer_id)
        business = db.session.get(User, request.business_id)
        variables = {
            'program_name': program.name if program else '',
            'business_name': business.name if business else '',
            'customer_name': customer.name if customer else '',
        }

        card = None
        created: List = []
        if request_type == ApprovalRequestType.ENROLLMENT:
            card = self.enrollments.resolve_approval(request, approved)
            payload = EnrollmentPayload(
                program_id=program_id,
                program_name=variables['program_name'],
                business_name=variables['business_name'] or None,
                customer_id=request.customer_id,
                card_id=card.id if card is not None else None,
                approved=approved
            )
        else:
            stored = payload_from_dict(request.data)
            points = stored.points if isinstance(stored, PointsPayload) else int((request.data or {}).get('points', 0))
            reason = stored.reason if isinstance(stored, PointsPayload) else None
            balance = None
            if approved:
                _, card_row, tier_change = self.ledger.apply_points(request.customer_id, program_id, -points)
                self.ledger.append_transaction(
                    request.customer_id,
                    request.business_id,
                    program_id,
                    -points,
                    PointTransactionType.REDEEM,
                    description=reason or 'Approved points deduction'
                )
                self.ledger.record_activity(card_row, CardActivityType.REDEEM_POINTS, -points,
                                            'Points deduction approved')
                balance = card_row.points
                if tier_change:
                    created.append(self.notifications.notify_tier_change(
                        card_row, tier_change, variables['program_name']
                    ))
            variables['points'] = points
            payload = PointsPayload(
                program_id=program_id,
                points=points,
                balance=balance,
                program_name=variables['program_name'],
                customer_id=request.customer_id,
                approved=approved,
                reason=reason
            )

        notification_type = OUTCOME_NOTIFICATION[(request_type, approved)]
        created[:0] = [
            self.notifications.create_notification(
                request.customer_id,
                request.business_id,
                notification_type,
                payload=payload,
                variables=variables,
                reference_id=request.id
            ),
            self.notifications.create_notification(
                request.business_id,
                request.business_id,
                notification_type,
                payload=payload,
                variables=variables,
                audience='business',
                reference_id=request.id
            ),
        ]
        return card, created

    def get_request(self, request_id: str) -> Optional[ApprovalRequest]:
        return db.session.get(ApprovalRequest, request_id)
