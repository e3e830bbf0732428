"""
Program enrollment model.

One row per (customer, program). ``current_points`` is owned by the ledger
store and only changes through its conditional updates.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class EnrollmentStatus(str, Enum):
    NONE = 'NONE'           # No relationship (derived, never stored)
    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    REJECTED = 'REJECTED'
    INACTIVE = 'INACTIVE'


class ProgramEnrollment(db.Model):
    __tablename__ = 'program_enrollments'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    program_id = db.Column(db.Integer, db.ForeignKey('loyalty_programs.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value)
    current_points = db.Column(db.Integer, nullable=False, default=0)
    total_points_earned = db.Column(db.Integer, nullable=False, default=0)

    enrolled_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    program = db.relationship('LoyaltyProgram')

    __table_args__ = (
        db.UniqueConstraint('customer_id', 'program_id', name='uq_enrollment_customer_program'),
        db.CheckConstraint('current_points >= 0', name='ck_enrollment_points_non_negative'),
        db.CheckConstraint('total_points_earned >= 0', name='ck_enrollment_total_non_negative'),
        db.Index('ix_program_enrollments_business', 'business_id'),
    )

    def __repr__(self):
        return f'<ProgramEnrollment customer={self.customer_id} program={self.program_id} {self.status}>'

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE.value

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'program_id': self.program_id,
            'business_id': self.business_id,
            'status': self.status,
            'current_points': self.current_points,
            'total_points_earned': self.total_points_earned,
            'enrolled_at': self.enrolled_at.isoformat() if self.enrolled_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
