"""
User model.

Customers and businesses share one table; ``user_type`` tells them apart.
Credentials and sessions live with the auth provider, not here.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class UserType(str, Enum):
    CUSTOMER = 'customer'
    BUSINESS = 'business'


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    user_type = db.Column(db.String(20), nullable=False, default=UserType.CUSTOMER.value)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<User {self.id} {self.user_type}>'

    @property
    def is_business(self) -> bool:
        return self.user_type == UserType.BUSINESS.value

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'user_type': self.user_type,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
