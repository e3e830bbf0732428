"""
Tests for point awards, redemptions and balance reads.

Tests cover:
- Awards and tier upgrades
- Redemptions, including zero-point rewards and overdraft attempts
- Enrollment and ownership checks
- Ledger/balance agreement
"""
import pytest

from loyaltyhub.extensions import db
from loyaltyhub.models import (
    CardActivity,
    CustomerNotification,
    LoyaltyCard,
    PointTransaction,
    ProgramEnrollment,
    NotificationType,
)
from loyaltyhub.services.enrollment_service import EnrollmentService
from loyaltyhub.services.points_service import PointsService
from tests.conftest import reward_named


@pytest.fixture
def points_service(app):
    return PointsService()


class TestAwardPoints:

    def test_award_updates_balance_card_and_ledger(self, points_service, customer, business, program, enrolled):
        result = points_service.award_points(customer.id, business.id, program.id, 150, description='Latte x3')

        assert result['success'] is True
        assert result['points_awarded'] == 150
        assert result['balance'] == 150
        assert result['total_points_earned'] == 150
        assert result['tier'] == 'STANDARD'
        assert result['tier_changed'] is False

        transaction = db.session.get(PointTransaction, result['transaction_id'])
        assert transaction.transaction_type == 'AWARD'
        assert transaction.points == 150
        assert transaction.description == 'Latte x3'

        card = LoyaltyCard.query.filter_by(customer_id=customer.id, program_id=program.id).one()
        assert card.points == 150

        notification = CustomerNotification.query.filter_by(
            customer_id=customer.id, type=NotificationType.POINTS_ADDED.value
        ).one()
        assert notification.data['points'] == 150
        assert notification.data['balance'] == 150
        assert 'New balance: 150' in notification.message

    def test_crossing_silver_threshold(self, points_service, customer, business, program, enrolled):
        points_service.award_points(customer.id, business.id, program.id, 999)

        result = points_service.award_points(customer.id, business.id, program.id, 2)

        assert result['balance'] == 1001
        assert result['tier'] == 'SILVER'
        assert result['tier_changed'] is True

        tier_note = CustomerNotification.query.filter_by(
            customer_id=customer.id, type=NotificationType.TIER_CHANGED.value
        ).one()
        assert tier_note.data['tier'] == 'SILVER'
        assert tier_note.data['previous_tier'] == 'STANDARD'

    def test_multiplier_is_opt_in(self, points_service, customer, business, program, enrolled):
        points_service.award_points(customer.id, business.id, program.id, 1000)

        plain = points_service.award_points(customer.id, business.id, program.id, 100)
        scaled = points_service.award_points(customer.id, business.id, program.id, 100, apply_multiplier=True)

        assert plain['points_awarded'] == 100
        assert scaled['points_awarded'] == 125
        assert scaled['balance'] == 1225

    def test_not_enrolled_creates_nothing(self, points_service, customer, business, program):
        result = points_service.award_points(customer.id, business.id, program.id, 50)

        assert result['success'] is False
        assert result['error_code'] == 'NOT_ENROLLED'
        assert ProgramEnrollment.query.count() == 0
        assert PointTransaction.query.count() == 0

    def test_inactive_enrollment_cannot_earn(self, points_service, customer, business, program, enrolled):
        EnrollmentService().deactivate_enrollment(customer.id, program.id)

        result = points_service.award_points(customer.id, business.id, program.id, 50)

        assert result['error_code'] == 'NOT_ENROLLED'
        assert points_service.get_balance(customer.id, program.id)['balance'] == 0

    def test_pending_enrollment_cannot_earn(self, points_service, customer, business, program):
        EnrollmentService().request_enrollment(customer.id, program.id)

        result = points_service.award_points(customer.id, business.id, program.id, 50)

        assert result['error_code'] == 'NOT_ENROLLED'

    def test_other_business_forbidden(self, points_service, customer, other_business, program, enrolled):
        result = points_service.award_points(customer.id, other_business.id, program.id, 50)

        assert result['error_code'] == 'FORBIDDEN'
        assert PointTransaction.query.count() == 0

    @pytest.mark.parametrize('points', [0, -5, 'lots', None, 2.5, True])
    def test_invalid_amounts(self, points_service, customer, business, program, enrolled, points):
        result = points_service.award_points(customer.id, business.id, program.id, points)

        assert result['error_code'] == 'INVALID_PARAMETERS'


class TestRedeemReward:

    def test_redeem_reward(self, points_service, customer, business, program, enrolled):
        points_service.award_points(customer.id, business.id, program.id, 250)
        coffee = reward_named(program, 'Free coffee')

        result = points_service.redeem_reward(customer.id, program.id, coffee.id)

        assert result['success'] is True
        assert result['points_redeemed'] == 200
        assert result['balance'] == 50

        transaction = db.session.get(PointTransaction, result['transaction_id'])
        assert transaction.transaction_type == 'REDEEM'
        assert transaction.points == -200
        assert transaction.reward_id == coffee.id
        assert transaction.description == 'Redeemed: Free coffee'

        card = LoyaltyCard.query.filter_by(customer_id=customer.id).one()
        activity = CardActivity.query.filter_by(card_id=card.id, activity_type='REDEEM_POINTS').one()
        assert activity.points == -200

        assert CustomerNotification.query.filter_by(
            customer_id=customer.id, type=NotificationType.REWARD_REDEEMED.value
        ).count() == 1
        business_note = CustomerNotification.query.filter_by(
            customer_id=business.id, type=NotificationType.REWARD_REDEEMED.value
        ).one()
        assert 'Ana Customer redeemed Free coffee' in business_note.message

    def test_insufficient_points(self, points_service, customer, business, program, enrolled):
        points_service.award_points(customer.id, business.id, program.id, 150)
        coffee = reward_named(program, 'Free coffee')

        result = points_service.redeem_reward(customer.id, program.id, coffee.id)

        assert result['success'] is False
        assert result['error_code'] == 'INSUFFICIENT_POINTS'
        assert points_service.get_balance(customer.id, program.id)['balance'] == 150
        assert PointTransaction.query.filter_by(transaction_type='REDEEM').count() == 0

    def test_zero_point_reward(self, points_service, customer, program, enrolled):
        sticker = reward_named(program, 'Free sticker')

        result = points_service.redeem_reward(customer.id, program.id, sticker.id)

        assert result['success'] is True
        assert result['points_redeemed'] == 0
        assert result['balance'] == 0
        assert PointTransaction.query.filter_by(transaction_type='REDEEM', points=0).count() == 1

    def test_redemption_can_drop_tier(self, points_service, customer, business, program, enrolled):
        points_service.award_points(customer.id, business.id, program.id, 2000)
        mug = reward_named(program, 'Mug')

        result = points_service.redeem_reward(customer.id, program.id, mug.id)

        assert result['balance'] == 500
        assert result['tier'] == 'STANDARD'

    def test_inactive_or_foreign_reward(self, points_service, customer, business, program, open_program, enrolled):
        from loyaltyhub.models import Reward
        retired = reward_named(program, 'Mug')
        retired.is_active = False
        foreign = Reward(program_id=open_program.id, name='Tote bag', points_required=0)
        db.session.add(foreign)
        db.session.commit()

        assert points_service.redeem_reward(customer.id, program.id, retired.id)['error_code'] == 'NOT_FOUND'
        assert points_service.redeem_reward(customer.id, program.id, foreign.id)['error_code'] == 'NOT_FOUND'

    def test_redeem_requires_enrollment(self, points_service, customer, program):
        sticker = reward_named(program, 'Free sticker')

        result = points_service.redeem_reward(customer.id, program.id, sticker.id)

        assert result['error_code'] == 'NOT_ENROLLED'


class TestReads:

    def test_ledger_matches_balance(self, points_service, customer, business, program, enrolled):
        for amount in (300, 45, 1200):
            points_service.award_points(customer.id, business.id, program.id, amount)
        points_service.redeem_reward(customer.id, program.id, reward_named(program, 'Mug').id)
        points_service.redeem_reward(customer.id, program.id, reward_named(program, 'Free sticker').id)

        balance = points_service.get_balance(customer.id, program.id)
        history = points_service.get_history(customer.id, program.id)

        assert balance['balance'] == 45
        assert balance['total_points_earned'] == 1545
        assert history['ledger_total'] == balance['balance']
        assert len(history['transactions']) == 5
        assert history['transactions'][0]['points'] == 0

    def test_history_pagination(self, points_service, customer, business, program, enrolled):
        for amount in (10, 20, 30):
            points_service.award_points(customer.id, business.id, program.id, amount)

        page = points_service.get_history(customer.id, program.id, limit=2, offset=1)

        assert [t['points'] for t in page['transactions']] == [20, 10]
        assert page['ledger_total'] == 60

    def test_balance_without_enrollment(self, points_service, customer, program):
        assert points_service.get_balance(customer.id, program.id)['error_code'] == 'NOT_ENROLLED'
