"""
Card tier rules.

Tiers are a pure function of a card's current points:

    STANDARD    0 pts   x1.00
    SILVER   1000 pts   x1.25
    GOLD     2500 pts   x1.50
    PLATINUM 5000 pts   x2.00

The card keeps a denormalized copy of tier, multiplier and benefits so the
customer UI can render a card without recomputing. ``apply_tier`` is the only
writer of those columns and is called after every point mutation, in the same
transaction as the mutation.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from ..extensions import db
from ..models.loyalty_card import LoyaltyCard, CardActivity, CardActivityType


@dataclass(frozen=True)
class TierRule:
    name: str
    points_required: int
    multiplier: Decimal
    benefits: Tuple[str, ...]


# Ascending by threshold
TIER_RULES: Tuple[TierRule, ...] = (
    TierRule('STANDARD', 0, Decimal('1.00'), ('Basic rewards', 'Birthday gift')),
    TierRule('SILVER', 1000, Decimal('1.25'), ('Basic rewards', 'Birthday gift', '5% discount')),
    TierRule('GOLD', 2500, Decimal('1.50'), ('All Silver benefits', '10% discount', 'Free item monthly')),
    TierRule('PLATINUM', 5000, Decimal('2.00'), (
        'All Gold benefits', '15% discount', 'Priority service', 'Exclusive events'
    )),
)

TIER_NAMES = [rule.name for rule in TIER_RULES]
DEFAULT_TIER = TIER_RULES[0]


def tier_for_points(points: int) -> TierRule:
    """Highest tier whose threshold does not exceed ``points``."""
    selected = DEFAULT_TIER
    for rule in TIER_RULES:
        if points >= rule.points_required:
            selected = rule
    return selected


def get_tier_rule(name: str) -> TierRule:
    for rule in TIER_RULES:
        if rule.name == name:
            return rule
    return DEFAULT_TIER


def tier_benefits(name: str) -> List[str]:
    return list(get_tier_rule(name).benefits)


def points_to_next_tier(points: int) -> Optional[int]:
    """Points still missing for the next tier, or None at the top tier."""
    for rule in TIER_RULES:
        if rule.points_required > points:
            return rule.points_required - points
    return None


def apply_tier(card: LoyaltyCard) -> Optional[Tuple[str, str]]:
    """
    Sync the card's tier columns with its points.

    Adds a TIER_CHANGE activity when the tier moves. Does not commit.

    Returns:
        (old_tier, new_tier) when the tier changed, otherwise None
    """
    rule = tier_for_points(card.points or 0)
    old_tier = card.tier

    card.points_multiplier = rule.multiplier
    card.benefits = list(rule.benefits)

    if old_tier == rule.name:
        return None

    card.tier = rule.name
    direction = 'Upgraded' if _rank(rule.name) > _rank(old_tier) else 'Moved'
    db.session.add(CardActivity(
        card_id=card.id,
        activity_type=CardActivityType.TIER_CHANGE.value,
        points=0,
        description=f'{direction} to {rule.name} tier'
    ))
    return old_tier, rule.name


def _rank(name: Optional[str]) -> int:
    try:
        return TIER_NAMES.index(name)
    except ValueError:
        return -1
