"""
Deals: discount offers and exclusive offers.

Both kinds live in one table, distinguished by deal_type:
- discount: percentage or fixed amount off
- exclusive: a named product at a special price

A deal can be restricted to time-of-day windows and/or days of the week.
Each customer may use a given deal once (deal_usages unique constraint).
"""
from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from ..extensions import db
from ..utils.codes import deal_qr_code


class DealType(str, Enum):
    DISCOUNT = 'discount'
    EXCLUSIVE = 'exclusive'


class ScheduleType(str, Enum):
    ALWAYS_AVAILABLE = 'always_available'
    TIME_BASED = 'time_based'
    DAY_BASED = 'day_based'
    TIME_AND_DAY = 'time_and_day'


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))


class Deal(db.Model):
    __tablename__ = 'deals'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(500))
    deal_type = db.Column(db.String(20), nullable=False, default=DealType.DISCOUNT.value)

    # discount
    discount_percentage = db.Column(db.Numeric(5, 2))
    discount_value = db.Column(db.Numeric(12, 2))

    # exclusive
    product_name = db.Column(db.String(255))
    original_price = db.Column(db.Numeric(12, 2))
    exclusive_price = db.Column(db.Numeric(12, 2))

    points_required = db.Column(db.Integer, nullable=False, default=0)
    redemption_limit = db.Column(db.Integer)  # null = unlimited
    redemption_count = db.Column(db.Integer, nullable=False, default=0)

    validity_start = db.Column(db.DateTime)
    validity_end = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    qr_code_data = db.Column(db.String(64), nullable=False, unique=True, default=deal_qr_code)

    # Scheduling
    schedule_type = db.Column(db.String(20), nullable=False, default=ScheduleType.ALWAYS_AVAILABLE.value)
    start_time = db.Column(db.String(5))   # HH:MM
    end_time = db.Column(db.String(5))     # HH:MM
    active_days = db.Column(db.JSON)       # [0..6], 0 = Sunday

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = db.relationship('Business', backref=db.backref('deals', lazy='dynamic'))

    def is_within_validity(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        if self.validity_start and self.validity_start > now:
            return False
        if self.validity_end and self.validity_end < now:
            return False
        return True

    def is_within_schedule(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        schedule = self.schedule_type or ScheduleType.ALWAYS_AVAILABLE.value

        if schedule in (ScheduleType.DAY_BASED.value, ScheduleType.TIME_AND_DAY.value):
            # Python: Monday=0; stored days use Sunday=0
            weekday = (now.weekday() + 1) % 7
            if weekday not in (self.active_days or []):
                return False

        if schedule in (ScheduleType.TIME_BASED.value, ScheduleType.TIME_AND_DAY.value):
            if self.start_time and self.end_time:
                start = _parse_hhmm(self.start_time)
                end = _parse_hhmm(self.end_time)
                current = now.time().replace(second=0, microsecond=0)
                if start <= end:
                    if not (start <= current <= end):
                        return False
                # Window wraps past midnight, e.g. 22:00-02:00
                elif not (current >= start or current <= end):
                    return False

        return True

    def is_available(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return self.is_active and self.is_within_validity(now) and self.is_within_schedule(now)

    def __repr__(self):
        return f'<Deal {self.title} ({self.deal_type})>'

    def to_dict(self):
        def _num(value):
            return float(value) if value is not None else None

        return {
            'id': self.id,
            'business_id': self.business_id,
            'title': self.title,
            'description': self.description,
            'image_url': self.image_url,
            'deal_type': self.deal_type,
            'discount_percentage': _num(self.discount_percentage),
            'discount_value': _num(self.discount_value),
            'product_name': self.product_name,
            'original_price': _num(self.original_price),
            'exclusive_price': _num(self.exclusive_price),
            'points_required': self.points_required,
            'redemption_limit': self.redemption_limit,
            'redemption_count': self.redemption_count,
            'validity_start': self.validity_start.isoformat() if self.validity_start else None,
            'validity_end': self.validity_end.isoformat() if self.validity_end else None,
            'is_active': self.is_active,
            'qr_code_data': self.qr_code_data,
            'schedule_type': self.schedule_type,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'active_days': self.active_days,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class DealUsage(db.Model):
    __tablename__ = 'deal_usages'
    __table_args__ = (
        db.UniqueConstraint('deal_id', 'customer_id', name='uq_deal_usage_customer'),
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(db.Integer, db.ForeignKey('deals.id'), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False)
    points_used = db.Column(db.Integer, nullable=False, default=0)
    validated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    used_at = db.Column(db.DateTime, default=datetime.utcnow)

    deal = db.relationship('Deal', backref=db.backref('usages', lazy='dynamic'))

    def __repr__(self):
        return f'<DealUsage deal={self.deal_id} customer={self.customer_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'deal_id': self.deal_id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'points_used': self.points_used,
            'validated_by': self.validated_by,
            'used_at': self.used_at.isoformat() if self.used_at else None,
        }
