"""
Points Service for Giya.

Customers earn points at a business either by uploading a receipt or by
having their QR code scanned at the counter. Points are spent on rewards
and deals.

BALANCES:
- Customer.total_points is the spendable balance across all businesses.
  It only changes through atomic UPDATE statements:
      credit:  total_points = total_points + n
      debit:   total_points = total_points - n  WHERE total_points >= n
  A debit that matches zero rows lost the race (or never had the points).
- The per-business available balance is derived from the ledger:
  earned (points_transactions) minus spent (redemptions + deal usages).

None of these methods commit. Callers commit once per operation so the
ledger row and the balance change land together.
"""
import logging
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Business,
    Customer,
    DealUsage,
    PointsSource,
    PointsTransaction,
    Redemption,
    RedemptionStatus,
)
from ..utils.cache import cache, points_analytics_key, invalidate_business_analytics
from ..utils.exceptions import InsufficientPointsError, NotFoundError, ValidationError
from ..utils.validation import parse_decimal
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

MAX_TRANSACTIONS_LIMIT = 100
DEFAULT_TRANSACTIONS_LIMIT = 50


def calculate_points(amount, points_per_currency: Optional[int] = None) -> int:
    """
    Points for a purchase: floor(amount / points_per_currency).

    A missing or non-positive rate falls back to the platform default (100).
    """
    amount = Decimal(str(amount or 0))
    if amount <= 0:
        return 0
    rate = points_per_currency if points_per_currency and points_per_currency > 0 else 100
    return int((amount / Decimal(rate)).to_integral_value(rounding=ROUND_FLOOR))


def credit_points(customer_id: int, points: int) -> None:
    """Atomically add points to a customer's balance."""
    if points <= 0:
        return
    updated = Customer.query.filter(Customer.id == customer_id).update(
        {Customer.total_points: Customer.total_points + points},
        synchronize_session=False,
    )
    if not updated:
        raise NotFoundError('Customer', customer_id)


def debit_points(customer_id: int, points: int) -> None:
    """
    Atomically deduct points, only if the balance covers them.

    Raises:
        InsufficientPointsError: balance is below `points`
    """
    if points <= 0:
        return
    updated = Customer.query.filter(
        Customer.id == customer_id,
        Customer.total_points >= points,
    ).update(
        {Customer.total_points: Customer.total_points - points},
        synchronize_session=False,
    )
    if not updated:
        raise InsufficientPointsError(get_total_points(customer_id), points)


def get_total_points(customer_id: int) -> int:
    value = db.session.query(Customer.total_points).filter(Customer.id == customer_id).scalar()
    return int(value or 0)


def refresh_balance(customer: Customer) -> int:
    """Reload total_points after an UPDATE that bypassed the ORM."""
    db.session.refresh(customer, ['total_points'])
    return customer.total_points


class PointsService:
    """
    Ledger and balance operations.

    Usage:
        service = PointsService()
        service.record_earning(customer, business, 12, Decimal('1200'), PointsSource.RECEIPT)
        db.session.commit()
    """

    # ==================== Earning ====================

    def record_earning(
        self,
        customer: Customer,
        business: Business,
        points: int,
        amount_spent: Decimal,
        source: str = PointsSource.RECEIPT.value,
        receipt_id: Optional[int] = None,
        description: Optional[str] = None,
        awarded_by: Optional[int] = None,
    ) -> PointsTransaction:
        """Write the ledger row and credit the balance (no commit)."""
        source = source.value if isinstance(source, PointsSource) else source
        transaction = PointsTransaction(
            customer_id=customer.id,
            business_id=business.id,
            receipt_id=receipt_id,
            amount_spent=amount_spent,
            points_earned=points,
            source=source,
            description=description,
            awarded_by=awarded_by,
        )
        db.session.add(transaction)
        credit_points(customer.id, points)
        invalidate_business_analytics(business.id)
        return transaction

    def award_from_qr_scan(self, business: Business, customer_qr: str, amount_spent,
                           awarded_by: int) -> Dict[str, Any]:
        """
        Business scanned a customer's QR code for a purchase.

        Returns:
            Dict with transaction and the customer's new balance
        """
        if not customer_qr:
            raise ValidationError('customer_qr is required', field='customer_qr')
        amount = parse_decimal(amount_spent, 'amount_spent', minimum=Decimal('0'), exclusive_minimum=True)

        customer = Customer.query.filter_by(qr_code_data=customer_qr.strip()).first()
        if not customer:
            raise NotFoundError('Customer')

        points = calculate_points(amount, business.points_per_currency)
        if points <= 0:
            raise ValidationError(
                f'Amount too small to earn points (1 point per {business.points_per_currency})',
                field='amount_spent'
            )

        transaction = self.record_earning(
            customer, business, points, amount,
            source=PointsSource.QR_SCAN,
            description=f'Purchase at {business.business_name}',
            awarded_by=awarded_by,
        )

        notifications = NotificationService()
        notifications.points_awarded(customer, points, business.business_name)
        db.session.commit()
        notifications.deliver_pending()

        logger.info(f'Awarded {points} points to customer {customer.id} at business {business.id}')
        return {
            'transaction': transaction.to_dict(),
            'points_earned': points,
            'total_points': refresh_balance(customer),
        }

    # ==================== Balances ====================

    @staticmethod
    def earned_at_business(customer_id: int, business_id: int) -> int:
        value = db.session.query(func.coalesce(func.sum(PointsTransaction.points_earned), 0)).filter(
            PointsTransaction.customer_id == customer_id,
            PointsTransaction.business_id == business_id,
        ).scalar()
        return int(value or 0)

    @staticmethod
    def spent_at_business(customer_id: int, business_id: int) -> int:
        redeemed = db.session.query(func.coalesce(func.sum(Redemption.points_redeemed), 0)).filter(
            Redemption.customer_id == customer_id,
            Redemption.business_id == business_id,
            Redemption.status != RedemptionStatus.CANCELLED.value,
        ).scalar()
        used = db.session.query(func.coalesce(func.sum(DealUsage.points_used), 0)).filter(
            DealUsage.customer_id == customer_id,
            DealUsage.business_id == business_id,
        ).scalar()
        return int(redeemed or 0) + int(used or 0)

    def available_at_business(self, customer_id: int, business_id: int) -> int:
        """
        Points spendable at one business.

        Capped by the global balance, which commissions and refunds can move
        independently of a single business's ledger.
        """
        per_business = self.earned_at_business(customer_id, business_id) - self.spent_at_business(customer_id, business_id)
        return max(0, min(per_business, get_total_points(customer_id)))

    def customer_summary(self, customer: Customer) -> Dict[str, Any]:
        earned_rows = db.session.query(
            PointsTransaction.business_id,
            func.sum(PointsTransaction.points_earned).label('earned'),
        ).filter(
            PointsTransaction.customer_id == customer.id,
        ).group_by(PointsTransaction.business_id).all()

        businesses = []
        lifetime_earned = 0
        for row in earned_rows:
            business = db.session.get(Business, row.business_id)
            earned = int(row.earned or 0)
            spent = self.spent_at_business(customer.id, row.business_id)
            lifetime_earned += earned
            businesses.append({
                'business_id': row.business_id,
                'business_name': business.business_name if business else None,
                'earned': earned,
                'redeemed': spent,
                'available': max(0, earned - spent),
            })

        businesses.sort(key=lambda b: b['available'], reverse=True)
        return {
            'customer_id': customer.id,
            'total_points': refresh_balance(customer),
            'lifetime_earned': lifetime_earned,
            'businesses': businesses,
        }

    # ==================== History & analytics ====================

    @staticmethod
    def list_transactions(customer_id: int = None, business_id: int = None,
                          limit: int = DEFAULT_TRANSACTIONS_LIMIT):
        query = PointsTransaction.query
        if customer_id is not None:
            query = query.filter(PointsTransaction.customer_id == customer_id)
        if business_id is not None:
            query = query.filter(PointsTransaction.business_id == business_id)
        limit = max(1, min(limit or DEFAULT_TRANSACTIONS_LIMIT, MAX_TRANSACTIONS_LIMIT))
        return query.order_by(
            PointsTransaction.created_at.desc(), PointsTransaction.id.desc()
        ).limit(limit).all()

    @staticmethod
    def business_analytics(business_id: int) -> Dict[str, Any]:
        key = points_analytics_key(business_id)
        cached = cache.get(key)
        if cached is not None:
            return cached

        totals = db.session.query(
            func.count(PointsTransaction.id),
            func.coalesce(func.sum(PointsTransaction.amount_spent), 0),
            func.coalesce(func.sum(PointsTransaction.points_earned), 0),
            func.count(func.distinct(PointsTransaction.customer_id)),
        ).filter(PointsTransaction.business_id == business_id).one()
        transaction_count, total_revenue, total_awarded, unique_customers = totals

        redeemed = db.session.query(func.coalesce(func.sum(Redemption.points_redeemed), 0)).filter(
            Redemption.business_id == business_id,
            Redemption.status != RedemptionStatus.CANCELLED.value,
        ).scalar() or 0
        deal_points = db.session.query(func.coalesce(func.sum(DealUsage.points_used), 0)).filter(
            DealUsage.business_id == business_id,
        ).scalar() or 0

        total_revenue = float(total_revenue or 0)
        total_awarded = int(total_awarded or 0)
        result = {
            'business_id': business_id,
            'total_revenue': round(total_revenue, 2),
            'total_points_awarded': total_awarded,
            'total_points_redeemed': int(redeemed) + int(deal_points),
            'unique_customers': int(unique_customers or 0),
            'transaction_count': int(transaction_count or 0),
            'average_transaction_value': round(total_revenue / transaction_count, 2) if transaction_count else 0,
            'average_points_per_transaction': round(total_awarded / transaction_count, 2) if transaction_count else 0,
        }
        cache.set(key, result, timeout=300)
        current_app.logger.debug(f'Computed points analytics for business {business_id}')
        return result
