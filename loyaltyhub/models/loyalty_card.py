"""
Loyalty card and card activity models.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from ..extensions import db


class CardActivityType(str, Enum):
    EARN_POINTS = 'EARN_POINTS'
    REDEEM_POINTS = 'REDEEM_POINTS'
    TIER_CHANGE = 'TIER_CHANGE'   # Informational, carries 0 points


class LoyaltyCard(db.Model):
    """
    Customer-facing card issued once per ACTIVE enrollment.

    ``points`` mirrors the enrollment balance; ``tier``, ``points_multiplier``
    and ``benefits`` are derived from it by the tier rules.
    """
    __tablename__ = 'loyalty_cards'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    program_id = db.Column(db.Integer, db.ForeignKey('loyalty_programs.id'), nullable=False)

    card_number = db.Column(db.String(32), nullable=False, unique=True)
    tier = db.Column(db.String(20), nullable=False, default='STANDARD')
    points = db.Column(db.Integer, nullable=False, default=0)
    points_multiplier = db.Column(db.Numeric(4, 2), nullable=False, default=Decimal('1.00'))
    benefits = db.Column(db.JSON, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    program = db.relationship('LoyaltyProgram')
    activities = db.relationship(
        'CardActivity', backref='card', lazy='dynamic', cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.UniqueConstraint('customer_id', 'program_id', name='uq_card_customer_program'),
        db.CheckConstraint('points >= 0', name='ck_card_points_non_negative'),
    )

    def __repr__(self):
        return f'<LoyaltyCard {self.card_number} {self.tier}>'

    def to_dict(self):
        from ..services.tier_service import points_to_next_tier

        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'program_id': self.program_id,
            'program_name': self.program.name if self.program else None,
            'card_number': self.card_number,
            'tier': self.tier,
            'points': self.points,
            'points_multiplier': float(self.points_multiplier or 1),
            'benefits': self.benefits or [],
            'points_to_next_tier': points_to_next_tier(self.points or 0),
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }


class CardActivity(db.Model):
    """Per-card activity feed (earn, redeem, tier changes)."""
    __tablename__ = 'card_activities'

    id = db.Column(db.Integer, primary_key=True)
    card_id = db.Column(db.Integer, db.ForeignKey('loyalty_cards.id'), nullable=False, index=True)
    activity_type = db.Column(db.String(20), nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<CardActivity {self.activity_type} {self.points} card={self.card_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'card_id': self.card_id,
            'activity_type': self.activity_type,
            'points': self.points,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
