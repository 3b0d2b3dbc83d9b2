"""
In-app notifications.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class NotificationType(str, Enum):
    RECEIPT_PROCESSED = 'receipt_processed'
    POINTS_AWARDED = 'points_awarded'
    REWARD_REDEEMED = 'reward_redeemed'
    DEAL_REDEEMED = 'deal_redeemed'
    PUNCH_CARD_COMPLETED = 'punch_card_completed'
    BUSINESS_STATUS = 'business_status'
    BUSINESS_SIGNUP = 'business_signup'
    GENERAL = 'general'


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), nullable=False, default=NotificationType.GENERAL.value)
    data = db.Column(db.JSON)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<Notification user={self.user_id} {self.type}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'data': self.data,
            'is_read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
