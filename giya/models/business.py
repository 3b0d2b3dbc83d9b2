"""
Business profile and the admin approval workflow.

A business signs up as `pending` and can use the dashboard only once an
admin approves it. Every approval status change is recorded in
BusinessApprovalLog.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class BusinessApprovalStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    SUSPENDED = 'suspended'


class ApprovalAction(str, Enum):
    APPROVE = 'approve'
    REJECT = 'reject'
    SUSPEND = 'suspend'
    REACTIVATE = 'reactivate'


class Business(db.Model):
    __tablename__ = 'businesses'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)

    # Profile
    business_name = db.Column(db.String(255), nullable=False)
    business_category = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    address = db.Column(db.String(500), nullable=False)
    gmaps_link = db.Column(db.String(500))
    phone_number = db.Column(db.String(20))
    profile_pic_url = db.Column(db.String(500))

    # Earning rate: currency units spent per point (100 = 1 point per 100 PHP)
    points_per_currency = db.Column(db.Integer, nullable=False, default=100)

    # Approval workflow
    approval_status = db.Column(db.String(20), nullable=False, default=BusinessApprovalStatus.PENDING.value, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    can_access_dashboard = db.Column(db.Boolean, nullable=False, default=False)
    approved_at = db.Column(db.DateTime)
    approved_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    rejection_reason = db.Column(db.Text)
    suspended_at = db.Column(db.DateTime)
    suspension_reason = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_approved(self) -> bool:
        return (
            self.approval_status == BusinessApprovalStatus.APPROVED.value
            and self.is_active
            and self.can_access_dashboard
        )

    def __repr__(self):
        return f'<Business {self.business_name} ({self.approval_status})>'

    def to_dict(self, include_approval: bool = True):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'business_name': self.business_name,
            'business_category': self.business_category,
            'description': self.description,
            'address': self.address,
            'gmaps_link': self.gmaps_link,
            'phone_number': self.phone_number,
            'profile_pic_url': self.profile_pic_url,
            'points_per_currency': self.points_per_currency,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_approval:
            data.update({
                'approval_status': self.approval_status,
                'is_active': self.is_active,
                'can_access_dashboard': self.can_access_dashboard,
                'approved_at': self.approved_at.isoformat() if self.approved_at else None,
                'approved_by': self.approved_by,
                'rejection_reason': self.rejection_reason,
                'suspended_at': self.suspended_at.isoformat() if self.suspended_at else None,
                'suspension_reason': self.suspension_reason,
            })
        return data


class BusinessApprovalLog(db.Model):
    """Audit trail of approval status changes."""
    __tablename__ = 'business_approval_logs'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)
    action = db.Column(db.String(20), nullable=False)
    from_status = db.Column(db.String(20), nullable=False)
    to_status = db.Column(db.String(20), nullable=False)
    reason = db.Column(db.Text)
    performed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    business = db.relationship('Business', backref=db.backref('approval_logs', lazy='dynamic'))

    def __repr__(self):
        return f'<BusinessApprovalLog {self.business_id} {self.from_status}->{self.to_status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'action': self.action,
            'from_status': self.from_status,
            'to_status': self.to_status,
            'reason': self.reason,
            'performed_by': self.performed_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
