"""
Punch card loyalty models.

A business defines a PunchCard requiring N punches. A customer joins it
(PunchCardCustomer) and each validated visit adds a PunchCardPunch.

Invariant: 0 <= punches_count <= punch_card.punches_required. The upper
bound is enforced by the guarded UPDATE in PunchCardService.add_punch.
"""
from datetime import datetime
from ..extensions import db


class PunchCard(db.Model):
    __tablename__ = 'punch_cards'
    __table_args__ = (
        db.CheckConstraint('punches_required > 0', name='ck_punch_cards_punches_required_positive'),
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    punches_required = db.Column(db.Integer, nullable=False)
    reward_description = db.Column(db.String(500), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    valid_from = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    valid_until = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = db.relationship('Business', backref=db.backref('punch_cards', lazy='dynamic'))
    participants = db.relationship(
        'PunchCardCustomer', backref='punch_card', lazy='dynamic', cascade='all, delete-orphan'
    )

    def is_available(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        if not self.is_active:
            return False
        if self.valid_from and self.valid_from > now:
            return False
        if self.valid_until and self.valid_until < now:
            return False
        return True

    def __repr__(self):
        return f'<PunchCard {self.title} ({self.punches_required})>'

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'title': self.title,
            'description': self.description,
            'punches_required': self.punches_required,
            'reward_description': self.reward_description,
            'is_active': self.is_active,
            'valid_from': self.valid_from.isoformat() if self.valid_from else None,
            'valid_until': self.valid_until.isoformat() if self.valid_until else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class PunchCardCustomer(db.Model):
    """A customer's participation in one punch card."""
    __tablename__ = 'punch_card_customers'
    __table_args__ = (
        db.UniqueConstraint('punch_card_id', 'customer_id', name='uq_punch_card_customer'),
        db.CheckConstraint('punches_count >= 0', name='ck_punch_card_customers_count_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    punch_card_id = db.Column(db.Integer, db.ForeignKey('punch_cards.id'), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)

    punches_count = db.Column(db.Integer, nullable=False, default=0)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime)
    last_punch_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = db.relationship('Customer', backref=db.backref('punch_cards', lazy='dynamic'))
    punches = db.relationship(
        'PunchCardPunch', backref='participation', lazy='dynamic', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<PunchCardCustomer card={self.punch_card_id} customer={self.customer_id} {self.punches_count}>'

    def to_dict(self, include_card: bool = False, include_customer: bool = False):
        data = {
            'id': self.id,
            'punch_card_id': self.punch_card_id,
            'customer_id': self.customer_id,
            'punches_count': self.punches_count,
            'is_completed': self.is_completed,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'last_punch_at': self.last_punch_at.isoformat() if self.last_punch_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_card:
            data['punch_cards'] = self.punch_card.to_dict() if self.punch_card else None
        if include_customer:
            data['customer'] = self.customer.to_public_dict() if self.customer else None
        return data


class PunchCardPunch(db.Model):
    """One validated visit."""
    __tablename__ = 'punch_card_punches'

    id = db.Column(db.Integer, primary_key=True)
    punch_card_customer_id = db.Column(
        db.Integer, db.ForeignKey('punch_card_customers.id'), nullable=False, index=True
    )
    validated_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    transaction_id = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<PunchCardPunch participation={self.punch_card_customer_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'punch_card_customer_id': self.punch_card_customer_id,
            'validated_by': self.validated_by,
            'transaction_id': self.transaction_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
