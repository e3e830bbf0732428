"""
Enrollment Service for Loyalty Hub.

Drives the per-(customer, program) enrollment state machine:

    NONE ──invite (approval)──> PENDING ──approve──> ACTIVE <──> INACTIVE
      │                            └──reject──> REJECTED
      └──join / invite (no approval)──> ACTIVE

Only ACTIVE and INACTIVE are stored on ``program_enrollments``. PENDING and
REJECTED are read from the customer's latest ENROLLMENT approval request, so
a declined invite never leaves an enrollment row behind.
"""
from datetime import datetime
from typing import Optional, Dict, Any, Tuple
from flask import current_app

from ..extensions import db
from ..models.user import User
from ..models.program import LoyaltyProgram
from ..models.enrollment import ProgramEnrollment, EnrollmentStatus
from ..models.loyalty_card import LoyaltyCard
from ..models.notification import (
    ApprovalRequest,
    ApprovalRequestType,
    ApprovalStatus,
    NotificationType,
)
from ..models.payloads import EnrollmentPayload
from ..utils.exceptions import (
    LoyaltyError,
    NotFoundError,
    ForbiddenError,
    AlreadyPendingError,
    AlreadyEnrolledError,
    NotEnrolledError,
    InvalidStatusTransitionError,
    unexpected_error_result,
)
from ..utils.validation import coerce_id
from .ledger_store import LedgerStore
from .notification_service import NotificationService


class EnrollmentService:
    """
    Enrollment state machine.

    Usage:
        service = EnrollmentService()
        result = service.request_enrollment(customer_id, program_id)
        if result['status'] == 'PENDING':
            ...  # customer must respond to result['request_id']
    """

    def __init__(self, ledger: LedgerStore = None, notification_service: NotificationService = None,
                 approval_service=None):
        self.ledger = ledger or LedgerStore()
        self.notifications = notification_service or NotificationService()
        self._approvals = approval_service

    @property
    def approvals(self):
        if self._approvals is None:
            from .approval_service import ApprovalService
            self._approvals = ApprovalService(
                ledger=self.ledger,
                notification_service=self.notifications,
                enrollment_service=self
            )
        return self._approvals

    # ==================== Lookups ====================

    def _get_program(self, program_id: int) -> LoyaltyProgram:
        program = db.session.get(LoyaltyProgram, program_id)
        if not program:
            raise NotFoundError('Program', program_id)
        return program

    def _get_customer(self, customer_id: int) -> User:
        customer = db.session.get(User, customer_id)
        if not customer or customer.is_business:
            raise NotFoundError('Customer', customer_id)
        return customer

    def latest_enrollment_request(self, customer_id: int, program_id: int) -> Optional[ApprovalRequest]:
        return ApprovalRequest.query.filter_by(
            customer_id=customer_id,
            request_type=ApprovalRequestType.ENROLLMENT.value,
            entity_id=str(program_id)
        ).order_by(
            ApprovalRequest.requested_at.desc()
        ).first()

    def derive_state(
        self,
        customer_id: int,
        program_id: int,
        now: datetime = None
    ) -> Tuple[EnrollmentStatus, Optional[ProgramEnrollment], Optional[ApprovalRequest]]:
        """
        Current state of a (customer, program) pair.

        Returns:
            (status, enrollment row or None, latest enrollment request or None)
        """
        enrollment = self.ledger.get_enrollment(customer_id, program_id)
        request = self.latest_enrollment_request(customer_id, program_id)

        if enrollment is not None:
            return EnrollmentStatus(enrollment.status), enrollment, request
        if request is None:
            return EnrollmentStatus.NONE, None, None
        if request.status == ApprovalStatus.PENDING.value and not request.is_expired(now):
            return EnrollmentStatus.PENDING, None, request
        if request.status == ApprovalStatus.REJECTED.value:
            return EnrollmentStatus.REJECTED, None, request
        return EnrollmentStatus.NONE, None, request

    # ==================== State machine ====================

    def request_enrollment(
        self,
        customer_id,
        program_id,
        requires_approval: Optional[bool] = None,
        business_id=None
    ) -> Dict[str, Any]:
        """
        Start an enrollment.

        With approval the customer gets an ENROLLMENT approval request and
        the state becomes PENDING. Without approval (or when reactivating an
        INACTIVE enrollment) the enrollment and card are activated in one
        transaction.

        Args:
            customer_id: Customer to enroll
            program_id: Target program
            requires_approval: None uses the program's own setting
            business_id: Inviting business; must own the program when given

        Returns:
            Dict with 'status' (PENDING or ACTIVE) and request_id or card_id
        """
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            program_id = coerce_id(program_id, 'program_id')
            if business_id is not None:
                business_id = coerce_id(business_id, 'business_id')

            program = self._get_program(program_id)
            if business_id is not None and program.business_id != business_id:
                raise ForbiddenError('Program belongs to another business')
            self._get_customer(customer_id)

            state, enrollment, _ = self.derive_state(customer_id, program_id)
            if state == EnrollmentStatus.ACTIVE:
                raise AlreadyEnrolledError()
            if state == EnrollmentStatus.PENDING:
                raise AlreadyPendingError()

            if requires_approval is None:
                requires_approval = program.requires_approval

            if requires_approval and state != EnrollmentStatus.INACTIVE:
                result = self.approvals.create_approval_request(
                    customer_id,
                    program.business_id,
                    ApprovalRequestType.ENROLLMENT,
                    program_id
                )
                if not result.get('success'):
                    return result
                return {
                    'success': True,
                    'status': EnrollmentStatus.PENDING.value,
                    'request_id': result['request']['id'],
                    'notification_id': result['request']['notification_id']
                }

            return self._activate_directly(customer_id, program, reactivated=state == EnrollmentStatus.INACTIVE)

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Enrollment request failed for customer {customer_id}: {e}")
            return unexpected_error_result(e, 'Failed to process enrollment')

    def _activate_directly(self, customer_id: int, program: LoyaltyProgram, reactivated: bool) -> Dict[str, Any]:
        business = db.session.get(User, program.business_id)

        def work():
            enrollment, card, _ = self.ledger.activate_enrollment(customer_id, program.business_id, program.id)
            notification = self.notifications.create_notification(
                customer_id,
                program.business_id,
                NotificationType.ENROLLMENT_SUCCESS,
                payload=EnrollmentPayload(
                    program_id=program.id,
                    program_name=program.name,
                    business_name=business.name if business else None,
                    card_id=card.id
                ),
                variables={'program_name': program.name, 'business_name': business.name if business else ''}
            )
            return enrollment, card, notification

        enrollment, card, notification = self.ledger.run_in_transaction(work)
        self.notifications.dispatch([notification])

        current_app.logger.info(
            f"Customer {customer_id} {'re-activated in' if reactivated else 'enrolled in'} program {program.id}"
        )
        return {
            'success': True,
            'status': EnrollmentStatus.ACTIVE.value,
            'card_id': card.id,
            'enrollment': enrollment.to_dict(),
            'reactivated': reactivated
        }

    def get_enrollment_state(self, customer_id, program_id) -> Dict[str, Any]:
        """State of a (customer, program) pair; NONE when they never met."""
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            program_id = coerce_id(program_id, 'program_id')

            state, enrollment, request = self.derive_state(customer_id, program_id)
            result = {
                'success': True,
                'customer_id': customer_id,
                'program_id': program_id,
                'status': state.value
            }
            if enrollment is not None:
                result['enrollment'] = enrollment.to_dict()
            if state in (EnrollmentStatus.PENDING, EnrollmentStatus.REJECTED):
                result['request_id'] = request.id
            return result

        except LoyaltyError as e:
            return e.to_result()

    def resolve_approval(self, request: ApprovalRequest, approved: bool) -> Optional[LoyaltyCard]:
        """
        Apply the customer's decision on an ENROLLMENT request.

        Runs inside the caller's unit of work and does not commit. Approving
        is idempotent: a second approval finds the existing enrollment and
        card. Rejecting writes nothing; the REJECTED state is read from the
        request itself.

        Returns:
            The card on approval, None on rejection
        """
        if not approved:
            return None

        program_id = int(request.entity_id)
        self._get_program(program_id)
        _, card, card_created = self.ledger.activate_enrollment(
            request.customer_id, request.business_id, program_id
        )
        if card_created:
            current_app.logger.info(
                f"Issued card {card.card_number} to customer {request.customer_id} for program {program_id}"
            )
        return card

    def deactivate_enrollment(self, customer_id, program_id, business_id=None) -> Dict[str, Any]:
        """ACTIVE -> INACTIVE. The card is deactivated with it; points are kept."""
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            program_id = coerce_id(program_id, 'program_id')

            program = self._get_program(program_id)
            if business_id is not None and program.business_id != coerce_id(business_id, 'business_id'):
                raise ForbiddenError('Program belongs to another business')

            def work():
                enrollment = ProgramEnrollment.query.filter_by(
                    customer_id=customer_id,
                    program_id=program_id
                ).with_for_update().first()
                if enrollment is None:
                    raise NotEnrolledError(customer_id, program_id)
                if not enrollment.is_active:
                    raise InvalidStatusTransitionError(
                        'enrollment', enrollment.status, EnrollmentStatus.INACTIVE.value
                    )
                self.ledger.deactivate_enrollment(enrollment)
                notification = self.notifications.create_notification(
                    customer_id,
                    program.business_id,
                    NotificationType.ENROLLMENT_DEACTIVATED,
                    payload=EnrollmentPayload(program_id=program_id, program_name=program.name),
                    variables={'program_name': program.name}
                )
                return enrollment, notification

            enrollment, notification = self.ledger.run_in_transaction(work)
            self.notifications.dispatch([notification])

            current_app.logger.info(f"Enrollment of customer {customer_id} in program {program_id} deactivated")
            return {'success': True, 'status': enrollment.status, 'enrollment': enrollment.to_dict()}

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to deactivate enrollment: {e}")
            return unexpected_error_result(e, 'Failed to deactivate enrollment')
