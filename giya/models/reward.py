"""
Rewards catalog and redemptions.

A customer exchanges points for a Reward and receives a Redemption holding
a single-use QR code. The business scans the code to validate it.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db
from ..utils.codes import redemption_code


class RedemptionStatus(str, Enum):
    PENDING = 'pending'       # Code issued, not yet shown to the business
    VALIDATED = 'validated'   # Scanned and accepted by the business
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'   # Cancelled by the customer, points refunded


class Reward(db.Model):
    __tablename__ = 'rewards'
    __table_args__ = (
        db.CheckConstraint('points_required > 0', name='ck_rewards_points_required_positive'),
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    reward_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    points_required = db.Column(db.Integer, nullable=False)
    terms = db.Column(db.Text)
    image_url = db.Column(db.String(500))

    # null = unlimited
    redemption_limit = db.Column(db.Integer)
    redemption_count = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = db.relationship('Business', backref=db.backref('rewards', lazy='dynamic'))

    def __repr__(self):
        return f'<Reward {self.reward_name} ({self.points_required} pts)>'

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'reward_name': self.reward_name,
            'description': self.description,
            'points_required': self.points_required,
            'terms': self.terms,
            'image_url': self.image_url,
            'redemption_limit': self.redemption_limit,
            'redemption_count': self.redemption_count,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Redemption(db.Model):
    __tablename__ = 'redemptions'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    reward_id = db.Column(db.Integer, db.ForeignKey('rewards.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    points_redeemed = db.Column(db.Integer, nullable=False)
    redemption_qr_code = db.Column(db.String(64), nullable=False, unique=True, default=redemption_code)
    status = db.Column(db.String(20), nullable=False, default=RedemptionStatus.PENDING.value)

    validated_at = db.Column(db.DateTime)
    validated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    cancelled_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship('Customer', backref=db.backref('redemptions', lazy='dynamic'))
    reward = db.relationship('Reward', backref=db.backref('redemptions', lazy='dynamic'))

    def __repr__(self):
        return f'<Redemption {self.redemption_qr_code} ({self.status})>'

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'reward_id': self.reward_id,
            'business_id': self.business_id,
            'points_redeemed': self.points_redeemed,
            'redemption_qr_code': self.redemption_qr_code,
            'status': self.status,
            'validated_at': self.validated_at.isoformat() if self.validated_at else None,
            'validated_by': self.validated_by,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'reward': {
                'reward_name': self.reward.reward_name,
                'points_required': self.reward.points_required,
            } if self.reward else None,
            'customer': self.customer.to_public_dict() if self.customer else None,
        }
