"""
Tests for card tier rules.

Tests cover:
- Threshold boundaries
- Points to next tier
- apply_tier syncing multiplier/benefits and writing TIER_CHANGE activities
"""
import pytest
from decimal import Decimal

from loyaltyhub.extensions import db
from loyaltyhub.models import LoyaltyCard, CardActivity, CardActivityType
from loyaltyhub.services.tier_service import (
    tier_for_points,
    tier_benefits,
    points_to_next_tier,
    apply_tier,
    get_tier_rule,
    DEFAULT_TIER,
)


class TestTierThresholds:

    @pytest.mark.parametrize('points,expected', [
        (0, 'STANDARD'),
        (999, 'STANDARD'),
        (1000, 'SILVER'),
        (2499, 'SILVER'),
        (2500, 'GOLD'),
        (4999, 'GOLD'),
        (5000, 'PLATINUM'),
        (250000, 'PLATINUM'),
    ])
    def test_tier_for_points(self, points, expected):
        assert tier_for_points(points).name == expected

    def test_multipliers(self):
        assert tier_for_points(0).multiplier == Decimal('1.00')
        assert tier_for_points(1000).multiplier == Decimal('1.25')
        assert tier_for_points(2500).multiplier == Decimal('1.50')
        assert tier_for_points(5000).multiplier == Decimal('2.00')

    def test_points_to_next_tier(self):
        assert points_to_next_tier(0) == 1000
        assert points_to_next_tier(999) == 1
        assert points_to_next_tier(1000) == 1500
        assert points_to_next_tier(5000) is None

    def test_unknown_tier_name_falls_back_to_standard(self):
        assert get_tier_rule('DIAMOND') is DEFAULT_TIER
        assert tier_benefits('SILVER') == ['Basic rewards', 'Birthday gift', '5% discount']


class TestApplyTier:

    def _card(self, customer_id, program_id):
        return LoyaltyCard.query.filter_by(customer_id=customer_id, program_id=program_id).one()

    def test_no_change_returns_none(self, app, customer, program, enrolled):
        card = self._card(customer.id, program.id)
        card.points = 500

        assert apply_tier(card) is None
        assert card.tier == 'STANDARD'

    def test_upgrade_updates_card_and_logs_activity(self, app, customer, program, enrolled):
        card = self._card(customer.id, program.id)
        card.points = 1001

        change = apply_tier(card)
        db.session.commit()

        assert change == ('STANDARD', 'SILVER')
        assert card.tier == 'SILVER'
        assert Decimal(card.points_multiplier) == Decimal('1.25')
        assert '5% discount' in card.benefits

        activity = CardActivity.query.filter_by(
            card_id=card.id, activity_type=CardActivityType.TIER_CHANGE.value
        ).one()
        assert activity.points == 0
        assert activity.description == 'Upgraded to SILVER tier'

    def test_downgrade_logged_as_move(self, app, customer, program, enrolled):
        card = self._card(customer.id, program.id)
        card.points = 2600
        apply_tier(card)
        card.points = 10

        change = apply_tier(card)
        db.session.commit()

        assert change == ('GOLD', 'STANDARD')
        descriptions = [
            a.description for a in CardActivity.query.filter_by(card_id=card.id).order_by(CardActivity.id)
        ]
        assert descriptions[-1] == 'Moved to STANDARD tier'
