"""
Point transaction ledger model.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class PointTransactionType(str, Enum):
    AWARD = 'AWARD'     # Positive points
    REDEEM = 'REDEEM'   # Negative points (0 for benefit-only rewards)


class PointTransaction(db.Model):
    """
    Immutable ledger entry.

    The signed sum of a (customer, program) history equals the enrollment's
    ``current_points``. Rows are only ever inserted.
    """
    __tablename__ = 'point_transactions'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    # No FK: ledger rows outlive program deletion
    program_id = db.Column(db.Integer, nullable=False)

    points = db.Column(db.Integer, nullable=False)  # Positive for AWARD, negative for REDEEM
    transaction_type = db.Column(db.String(20), nullable=False)
    reward_id = db.Column(db.Integer)
    description = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_point_transactions_customer_program', 'customer_id', 'program_id'),
        db.Index('ix_point_transactions_business', 'business_id'),
    )

    def __repr__(self):
        return f'<PointTransaction {self.id}: {self.points} pts {self.transaction_type}>'

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'program_id': self.program_id,
            'points': self.points,
            'transaction_type': self.transaction_type,
            'reward_id': self.reward_id,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
