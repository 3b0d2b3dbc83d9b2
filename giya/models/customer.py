"""
Customer and influencer profiles.
"""
from datetime import datetime
from ..extensions import db
from ..utils.codes import customer_qr_code


class Customer(db.Model):
    """
    Customer profile.

    total_points is the spendable balance across all businesses. It is only
    ever changed through atomic UPDATE statements in PointsService, never by
    assigning to the attribute.
    """
    __tablename__ = 'customers'
    __table_args__ = (
        db.CheckConstraint('total_points >= 0', name='ck_customers_total_points_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)

    full_name = db.Column(db.String(255), nullable=False)
    nickname = db.Column(db.String(100))
    email = db.Column(db.String(255))
    phone_number = db.Column(db.String(20))
    date_of_birth = db.Column(db.Date)
    profile_pic_url = db.Column(db.String(500))

    total_points = db.Column(db.Integer, nullable=False, default=0)
    qr_code_data = db.Column(db.String(50), nullable=False, unique=True, default=customer_qr_code)

    # Push notification device token
    fcm_token = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Customer {self.full_name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'full_name': self.full_name,
            'nickname': self.nickname,
            'email': self.email,
            'phone_number': self.phone_number,
            'date_of_birth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'profile_pic_url': self.profile_pic_url,
            'total_points': self.total_points,
            'qr_code_data': self.qr_code_data,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def to_public_dict(self):
        """Fields a business may see about a participating customer."""
        return {
            'id': self.id,
            'full_name': self.full_name,
            'profile_pic_url': self.profile_pic_url,
        }


class Influencer(db.Model):
    """Influencer affiliate profile (program disabled unless AFFILIATES_ENABLED)."""
    __tablename__ = 'influencers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)

    full_name = db.Column(db.String(255), nullable=False)
    facebook_handle = db.Column(db.String(100))
    instagram_handle = db.Column(db.String(100))
    tiktok_handle = db.Column(db.String(100))
    twitter_handle = db.Column(db.String(100))

    total_commission_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Influencer {self.full_name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'full_name': self.full_name,
            'facebook_handle': self.facebook_handle,
            'instagram_handle': self.instagram_handle,
            'tiktok_handle': self.tiktok_handle,
            'twitter_handle': self.twitter_handle,
            'total_commission_points': self.total_commission_points,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
