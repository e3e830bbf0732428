"""
Tests for the enrollment state machine.

Tests cover:
- NONE -> PENDING through an approval request
- Direct activation for programs without approval
- Duplicate and conflicting requests
- Deactivation and reactivation
"""
from datetime import datetime, timedelta

from loyaltyhub.extensions import db
from loyaltyhub.models import (
    ApprovalRequest,
    CustomerNotification,
    LoyaltyCard,
    ProgramEnrollment,
    NotificationType,
)
from loyaltyhub.services.enrollment_service import EnrollmentService


class TestRequestEnrollment:

    def test_approval_program_creates_pending_request(self, app, customer, business, program):
        service = EnrollmentService()

        result = service.request_enrollment(customer.id, program.id, business_id=business.id)

        assert result['success'] is True
        assert result['status'] == 'PENDING'
        request = db.session.get(ApprovalRequest, result['request_id'])
        assert request.request_type == 'ENROLLMENT'
        assert request.entity_id == str(program.id)
        assert request.expires_at > datetime.utcnow() + timedelta(days=6)

        # No enrollment row until the customer approves
        assert ProgramEnrollment.query.count() == 0

        notification = db.session.get(CustomerNotification, result['notification_id'])
        assert notification.customer_id == customer.id
        assert notification.type == NotificationType.ENROLLMENT_REQUEST.value
        assert notification.requires_action is True
        assert notification.reference_id == request.id
        assert 'Coffee Club' in notification.message

        state = service.get_enrollment_state(customer.id, program.id)
        assert state['status'] == 'PENDING'
        assert state['request_id'] == request.id

    def test_second_request_while_pending(self, app, customer, program):
        service = EnrollmentService()
        service.request_enrollment(customer.id, program.id)

        result = service.request_enrollment(customer.id, program.id)

        assert result['success'] is False
        assert result['error_code'] == 'ALREADY_PENDING'
        assert ApprovalRequest.query.count() == 1

    def test_expired_request_does_not_block(self, app, customer, program):
        service = EnrollmentService()
        first = service.request_enrollment(customer.id, program.id)
        request = db.session.get(ApprovalRequest, first['request_id'])
        request.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert service.get_enrollment_state(customer.id, program.id)['status'] == 'NONE'

        second = service.request_enrollment(customer.id, program.id)
        assert second['success'] is True
        assert second['request_id'] != first['request_id']

    def test_open_program_activates_directly(self, app, customer, open_program):
        result = EnrollmentService().request_enrollment(customer.id, open_program.id)

        assert result['success'] is True
        assert result['status'] == 'ACTIVE'
        assert result['reactivated'] is False
        assert result['enrollment']['current_points'] == 0

        card = db.session.get(LoyaltyCard, result['card_id'])
        assert card.tier == 'STANDARD'
        assert ApprovalRequest.query.count() == 0
        assert CustomerNotification.query.filter_by(
            customer_id=customer.id, type=NotificationType.ENROLLMENT_SUCCESS.value
        ).count() == 1

    def test_already_enrolled(self, app, customer, program, enrolled):
        result = EnrollmentService().request_enrollment(customer.id, program.id)

        assert result['success'] is False
        assert result['error_code'] == 'ALREADY_ENROLLED'

    def test_unknown_program_and_customer(self, app, customer, business, program):
        service = EnrollmentService()

        assert service.request_enrollment(customer.id, 9999)['error_code'] == 'NOT_FOUND'
        assert service.request_enrollment(9999, program.id)['error_code'] == 'NOT_FOUND'
        # Businesses cannot be enrolled
        assert service.request_enrollment(business.id, program.id)['error_code'] == 'NOT_FOUND'

    def test_invalid_ids(self, app):
        service = EnrollmentService()

        assert service.request_enrollment(None, 1)['error_code'] == 'INVALID_PARAMETERS'
        assert service.request_enrollment(1, 'abc')['error_code'] == 'INVALID_PARAMETERS'
        assert service.request_enrollment(1, -4)['error_code'] == 'INVALID_PARAMETERS'

    def test_business_must_own_program(self, app, customer, other_business, program):
        result = EnrollmentService().request_enrollment(
            customer.id, program.id, business_id=other_business.id
        )

        assert result['success'] is False
        assert result['error_code'] == 'FORBIDDEN'
        assert ApprovalRequest.query.count() == 0


class TestDeactivation:

    def test_deactivate_keeps_points(self, app, customer, business, program, enrolled):
        from loyaltyhub.services.points_service import PointsService
        PointsService().award_points(customer.id, business.id, program.id, 120)

        service = EnrollmentService()
        result = service.deactivate_enrollment(customer.id, program.id, business_id=business.id)

        assert result['success'] is True
        assert result['status'] == 'INACTIVE'
        assert result['enrollment']['current_points'] == 120

        card = LoyaltyCard.query.filter_by(customer_id=customer.id, program_id=program.id).one()
        assert card.is_active is False
        assert service.get_enrollment_state(customer.id, program.id)['status'] == 'INACTIVE'

    def test_deactivate_twice(self, app, customer, program, enrolled):
        service = EnrollmentService()
        service.deactivate_enrollment(customer.id, program.id)

        result = service.deactivate_enrollment(customer.id, program.id)

        assert result['success'] is False
        assert result['error_code'] == 'INVALID_STATUS_TRANSITION'

    def test_deactivate_without_enrollment(self, app, customer, program):
        result = EnrollmentService().deactivate_enrollment(customer.id, program.id)

        assert result['error_code'] == 'NOT_ENROLLED'

    def test_inactive_enrollment_reactivates_without_approval(self, app, customer, program, enrolled):
        service = EnrollmentService()
        service.deactivate_enrollment(customer.id, program.id)

        result = service.request_enrollment(customer.id, program.id)

        assert result['success'] is True
        assert result['status'] == 'ACTIVE'
        assert result['reactivated'] is True
        assert result['card_id'] == enrolled['card_id']
        assert ApprovalRequest.query.count() == 0
        assert LoyaltyCard.query.filter_by(customer_id=customer.id).count() == 1
