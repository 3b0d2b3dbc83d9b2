"""
Business Approval Service for Giya.

Admins move businesses through the approval workflow:

    pending  --approve-->    approved
    rejected --approve-->    approved
    pending  --reject-->     rejected
    approved --suspend-->    suspended
    suspended --reactivate--> approved

Each transition is a guarded UPDATE on the current status, so two admins
acting at once can't both apply it. Re-applying the status a business
already has is a no-op (changed=False) and writes no audit row.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from ..extensions import db
from ..models import (
    ApprovalAction,
    Business,
    BusinessApprovalLog,
    BusinessApprovalStatus,
    Customer,
    DealUsage,
    PointsTransaction,
    Receipt,
    ReceiptStatus,
    Redemption,
    RedemptionStatus,
    User,
)
from ..utils.cache import invalidate_curated_lists
from ..utils.exceptions import InvalidStatusTransitionError, NotFoundError, ValidationError
from ..utils.validation import clean_text, parse_positive_int
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

PENDING = BusinessApprovalStatus.PENDING.value
APPROVED = BusinessApprovalStatus.APPROVED.value
REJECTED = BusinessApprovalStatus.REJECTED.value
SUSPENDED = BusinessApprovalStatus.SUSPENDED.value

# action -> (allowed from statuses, target status, reason required)
TRANSITIONS = {
    ApprovalAction.APPROVE.value: ((PENDING, REJECTED), APPROVED, False),
    ApprovalAction.REJECT.value: ((PENDING,), REJECTED, True),
    ApprovalAction.SUSPEND.value: ((APPROVED,), SUSPENDED, True),
    ApprovalAction.REACTIVATE.value: ((SUSPENDED,), APPROVED, False),
}


class ApprovalService:

    @staticmethod
    def get_business(business_id) -> Business:
        if business_id is None:
            raise ValidationError('business_id is required', field='business_id')
        business = db.session.get(Business, parse_positive_int(business_id, 'business_id'))
        if not business:
            raise NotFoundError('Business')
        return business

    @staticmethod
    def _target_values(target: str, admin: User, reason: Optional[str], now: datetime) -> Dict[Any, Any]:
        if target == APPROVED:
            return {
                Business.approval_status: APPROVED,
                Business.is_active: True,
                Business.can_access_dashboard: True,
                Business.approved_at: now,
                Business.approved_by: admin.id,
                Business.rejection_reason: None,
                Business.suspended_at: None,
                Business.suspension_reason: None,
            }
        if target == REJECTED:
            return {
                Business.approval_status: REJECTED,
                Business.is_active: False,
                Business.can_access_dashboard: False,
                Business.rejection_reason: reason,
            }
        return {
            Business.approval_status: SUSPENDED,
            Business.is_active: False,
            Business.can_access_dashboard: False,
            Business.suspended_at: now,
            Business.suspension_reason: reason,
        }

    def transition(self, admin: User, business_id, action: str,
                   reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Apply an approval action.

        Returns:
            {'business': Business, 'changed': bool}

        Raises:
            ValidationError: unknown action or missing reason
            NotFoundError: business missing
            InvalidStatusTransitionError: action not allowed from the current status
        """
        if action not in TRANSITIONS:
            raise ValidationError(f'Unknown action: {action}', field='action')
        allowed_from, target, reason_required = TRANSITIONS[action]

        reason = clean_text(reason, max_length=1000) if reason else None
        if reason_required and not reason:
            raise ValidationError('reason is required', field='reason')

        business = self.get_business(business_id)
        from_status = business.approval_status
        if from_status == target:
            return {'business': business, 'changed': False}

        now = datetime.utcnow()
        updated = Business.query.filter(
            Business.id == business.id,
            Business.approval_status.in_(allowed_from),
        ).update(self._target_values(target, admin, reason, now), synchronize_session=False)

        if not updated:
            db.session.rollback()
            db.session.refresh(business)
            if business.approval_status == target:
                return {'business': business, 'changed': False}
            raise InvalidStatusTransitionError('business', business.approval_status, target)

        db.session.add(BusinessApprovalLog(
            business_id=business.id,
            action=action,
            from_status=from_status,
            to_status=target,
            reason=reason,
            performed_by=admin.id,
        ))
        db.session.refresh(business)

        notifications = NotificationService()
        notifications.business_status_changed(business, reason)
        db.session.commit()
        notifications.deliver_pending()
        invalidate_curated_lists()

        logger.info(f'Admin {admin.id} {action}: business {business.id} {from_status} -> {target}')
        return {'business': business, 'changed': True}

    # ==================== Queries ====================

    @staticmethod
    def list_pending() -> List[Business]:
        return Business.query.filter_by(approval_status=PENDING).order_by(
            Business.created_at.desc(), Business.id.desc()
        ).all()

    @staticmethod
    def list_businesses(status: Optional[str] = None) -> List[Business]:
        query = Business.query
        if status:
            statuses = [s.value for s in BusinessApprovalStatus]
            if status not in statuses:
                raise ValidationError(f'status must be one of: {", ".join(statuses)}', field='status')
            query = query.filter_by(approval_status=status)
        return query.order_by(Business.created_at.desc(), Business.id.desc()).all()

    def history(self, business_id) -> List[BusinessApprovalLog]:
        business = self.get_business(business_id)
        return business.approval_logs.order_by(
            BusinessApprovalLog.created_at.desc(), BusinessApprovalLog.id.desc()
        ).all()

    @staticmethod
    def platform_analytics() -> Dict[str, Any]:
        by_status = dict(
            db.session.query(Business.approval_status, func.count(Business.id))
            .group_by(Business.approval_status).all()
        )
        businesses = {s.value: int(by_status.get(s.value, 0)) for s in BusinessApprovalStatus}
        businesses['total'] = sum(businesses.values())

        points_awarded = db.session.query(
            func.coalesce(func.sum(PointsTransaction.points_earned), 0)
        ).scalar()
        redemptions = Redemption.query.filter(
            Redemption.status != RedemptionStatus.CANCELLED.value
        ).count()

        return {
            'customers': Customer.query.count(),
            'businesses': businesses,
            'receipts_processed': Receipt.query.filter_by(status=ReceiptStatus.PROCESSED.value).count(),
            'points_awarded': int(points_awarded or 0),
            'redemptions': redemptions,
            'deals_redeemed': DealUsage.query.count(),
        }
