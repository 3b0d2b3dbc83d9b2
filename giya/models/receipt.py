"""
Uploaded purchase receipts.

Lifecycle: uploaded -> processing -> processed | failed. A failed receipt
may be processed again.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class ReceiptStatus(str, Enum):
    UPLOADED = 'uploaded'
    PROCESSING = 'processing'
    PROCESSED = 'processed'
    FAILED = 'failed'


class Receipt(db.Model):
    __tablename__ = 'receipts'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    image_url = db.Column(db.String(500))
    raw_text = db.Column(db.Text)  # Recognised text, when the client supplies it

    status = db.Column(db.String(20), nullable=False, default=ReceiptStatus.UPLOADED.value, index=True)
    ocr_data = db.Column(db.JSON)
    total_amount = db.Column(db.Numeric(12, 2))
    currency_code = db.Column(db.String(3))
    points_earned = db.Column(db.Integer)
    points_awarded = db.Column(db.Boolean, nullable=False, default=False)
    failure_reason = db.Column(db.String(500))
    processed_at = db.Column(db.DateTime)

    affiliate_link_id = db.Column(db.Integer, db.ForeignKey('affiliate_links.id'))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = db.relationship('Customer', backref=db.backref('receipts', lazy='dynamic'))
    business = db.relationship('Business', backref=db.backref('receipts', lazy='dynamic'))

    def __repr__(self):
        return f'<Receipt {self.id} ({self.status})>'

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'business_name': self.business.business_name if self.business else None,
            'image_url': self.image_url,
            'status': self.status,
            'ocr_data': self.ocr_data,
            'total_amount': float(self.total_amount) if self.total_amount is not None else None,
            'currency_code': self.currency_code,
            'points_earned': self.points_earned,
            'points_awarded': self.points_awarded,
            'failure_reason': self.failure_reason,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
            'affiliate_link_id': self.affiliate_link_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
