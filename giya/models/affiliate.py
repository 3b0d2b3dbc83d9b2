"""
Influencer affiliate links and the conversions attributed to them.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from ..extensions import db


class ConversionType(str, Enum):
    RECEIPT = 'receipt'
    SIGNUP = 'signup'


class AffiliateLink(db.Model):
    __tablename__ = 'affiliate_links'
    __table_args__ = (
        db.UniqueConstraint('business_id', 'unique_code', name='uq_affiliate_link_business_code'),
        db.UniqueConstraint('influencer_id', 'business_id', name='uq_affiliate_link_influencer_business'),
    )

    id = db.Column(db.Integer, primary_key=True)
    influencer_id = db.Column(db.Integer, db.ForeignKey('influencers.id'), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)
    unique_code = db.Column(db.String(12), nullable=False, index=True)
    commission_rate = db.Column(db.Numeric(5, 4), nullable=False, default=Decimal('0.05'))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    click_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    influencer = db.relationship('Influencer', backref=db.backref('affiliate_links', lazy='dynamic'))
    business = db.relationship('Business')

    def __repr__(self):
        return f'<AffiliateLink {self.unique_code} business={self.business_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'influencer_id': self.influencer_id,
            'business_id': self.business_id,
            'business_name': self.business.business_name if self.business else None,
            'unique_code': self.unique_code,
            'commission_rate': float(self.commission_rate or 0),
            'is_active': self.is_active,
            'click_count': self.click_count,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class AffiliateConversion(db.Model):
    __tablename__ = 'affiliate_conversions'

    id = db.Column(db.Integer, primary_key=True)
    affiliate_link_id = db.Column(db.Integer, db.ForeignKey('affiliate_links.id'), nullable=False, index=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey('receipts.id'), unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    conversion_type = db.Column(db.String(20), nullable=False, default=ConversionType.RECEIPT.value)
    points_earned = db.Column(db.Integer, nullable=False, default=0)      # customer's points
    commission_points = db.Column(db.Integer, nullable=False, default=0)  # influencer's share

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    affiliate_link = db.relationship('AffiliateLink', backref=db.backref('conversions', lazy='dynamic'))

    def __repr__(self):
        return f'<AffiliateConversion link={self.affiliate_link_id} +{self.commission_points}>'

    def to_dict(self):
        return {
            'id': self.id,
            'affiliate_link_id': self.affiliate_link_id,
            'receipt_id': self.receipt_id,
            'customer_id': self.customer_id,
            'conversion_type': self.conversion_type,
            'points_earned': self.points_earned,
            'commission_points': self.commission_points,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
