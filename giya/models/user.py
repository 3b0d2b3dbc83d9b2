"""
Account model shared by every role.

A user owns at most one profile row (Customer, Business or Influencer)
depending on role. Admins have no profile.
"""
from datetime import datetime
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash
from ..extensions import db


class UserRole(str, Enum):
    CUSTOMER = 'customer'
    BUSINESS = 'business'
    INFLUENCER = 'influencer'
    ADMIN = 'admin'


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=UserRole.CUSTOMER.value)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = db.relationship('Customer', backref='user', uselist=False)
    business = db.relationship('Business', backref='user', uselist=False,
                               foreign_keys='Business.user_id')
    influencer = db.relationship('Influencer', backref='user', uselist=False)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def profile(self):
        """The role-specific profile row, if any."""
        return {
            UserRole.CUSTOMER.value: self.customer,
            UserRole.BUSINESS.value: self.business,
            UserRole.INFLUENCER.value: self.influencer,
        }.get(self.role)

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    def to_dict(self, include_profile: bool = False):
        data = {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'is_active': self.is_active,
            'last_login_at': self.last_login_at.isoformat() if self.last_login_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_profile:
            profile = self.profile
            data['profile'] = profile.to_dict() if profile else None
        return data
