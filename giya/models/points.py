"""
Points ledger.

Every point a customer earns is recorded here. Points spent are recorded as
Redemption and DealUsage rows, so the per-business available balance is
earned minus redeemed.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from ..extensions import db


class PointsSource(str, Enum):
    RECEIPT = 'receipt'          # OCR'd receipt upload
    QR_SCAN = 'qr_scan'          # Business scanned the customer's QR
    ADJUSTMENT = 'adjustment'    # Manual correction
    COMMISSION = 'commission'    # Affiliate commission to an influencer


class PointsTransaction(db.Model):
    __tablename__ = 'points_transactions'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey('receipts.id'), unique=True)

    amount_spent = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    points_earned = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String(20), nullable=False, default=PointsSource.RECEIPT.value)
    description = db.Column(db.String(500))
    awarded_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    customer = db.relationship('Customer', backref=db.backref('points_transactions', lazy='dynamic'))
    business = db.relationship('Business')

    def __repr__(self):
        return f'<PointsTransaction customer={self.customer_id} +{self.points_earned}>'

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'business_name': self.business.business_name if self.business else None,
            'receipt_id': self.receipt_id,
            'amount_spent': float(self.amount_spent or 0),
            'points_earned': self.points_earned,
            'source': self.source,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
