"""
Loyalty program and reward catalog models.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class ProgramStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class LoyaltyProgram(db.Model):
    """
    A points program owned by a business.

    ``requires_approval`` decides whether a business invite goes through a
    customer approval request or enrolls directly.
    """
    __tablename__ = 'loyalty_programs'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    requires_approval = db.Column(db.Boolean, default=True, nullable=False)
    status = db.Column(db.String(20), default=ProgramStatus.ACTIVE.value, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = db.relationship('User', backref='loyalty_programs')
    rewards = db.relationship(
        'Reward', backref='program', lazy='dynamic',
        cascade='all, delete-orphan', order_by='Reward.points_required'
    )

    def __repr__(self):
        return f'<LoyaltyProgram {self.id} {self.name}>'

    def to_dict(self, include_rewards=False):
        data = {
            'id': self.id,
            'business_id': self.business_id,
            'name': self.name,
            'description': self.description or '',
            'requires_approval': self.requires_approval,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
        if include_rewards:
            data['rewards'] = [r.to_dict() for r in self.rewards]
        return data


class Reward(db.Model):
    """
    Redeemable catalog entry of a program.

    ``points_required`` may be 0 for benefit-only rewards.
    """
    __tablename__ = 'rewards'

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(db.Integer, db.ForeignKey('loyalty_programs.id'), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(500))
    points_required = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('points_required >= 0', name='ck_rewards_points_required_non_negative'),
    )

    def __repr__(self):
        return f'<Reward {self.id} {self.name} ({self.points_required} pts)>'

    def to_dict(self):
        return {
            'id': self.id,
            'program_id': self.program_id,
            'name': self.name,
            'description': self.description,
            'points_required': self.points_required,
            'is_active': self.is_active
        }
