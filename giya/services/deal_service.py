"""
Deal Service for Giya.

Discount and exclusive offers that a business redeems for a customer by
scanning the deal's QR code. Each customer can use a deal once
(deal_usages unique constraint); limits and point deductions use guarded
UPDATEs, and any failure rolls back the whole redemption.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Business,
    Customer,
    Deal,
    DealType,
    DealUsage,
    ScheduleType,
    User,
)
from ..utils.exceptions import (
    AuthorizationError,
    GiyaError,
    InsufficientPointsError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from ..utils.validation import (
    clean_text,
    parse_bool,
    parse_datetime,
    parse_decimal,
    parse_int,
    parse_positive_int,
    require_fields,
    validate_image_url,
    validate_length,
    validate_time_of_day,
)
from .notification_service import NotificationService
from .points_service import debit_points, get_total_points

logger = logging.getLogger(__name__)

DEAL_TYPES = [t.value for t in DealType]
SCHEDULE_TYPES = [s.value for s in ScheduleType]
TIME_SCHEDULES = (ScheduleType.TIME_BASED.value, ScheduleType.TIME_AND_DAY.value)
DAY_SCHEDULES = (ScheduleType.DAY_BASED.value, ScheduleType.TIME_AND_DAY.value)

CHECKED_COLUMNS = (
    'deal_type', 'discount_percentage', 'discount_value', 'product_name',
    'original_price', 'exclusive_price', 'validity_start', 'validity_end',
    'schedule_type', 'start_time', 'end_time', 'active_days',
)


def _parse_active_days(value) -> Optional[List[int]]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError('active_days must be an array of day numbers (0=Sunday)', field='active_days')
    days = sorted({parse_int(day, 'active_days', minimum=0, maximum=6) for day in value})
    return days


class DealService:

    # ==================== CRUD ====================

    @staticmethod
    def _deal_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        if not partial:
            require_fields(data, ('title',))

        fields = {}
        if 'title' in data:
            fields['title'] = clean_text(validate_length(data['title'], 'title', 1, 255))
        if 'description' in data:
            fields['description'] = clean_text(data['description'], max_length=1000)
        if 'image_url' in data:
            fields['image_url'] = validate_image_url(data['image_url'])
        if 'deal_type' in data:
            if data['deal_type'] not in DEAL_TYPES:
                raise ValidationError(f'deal_type must be one of: {", ".join(DEAL_TYPES)}', field='deal_type')
            fields['deal_type'] = data['deal_type']

        if data.get('discount_percentage') is not None:
            fields['discount_percentage'] = parse_decimal(
                data['discount_percentage'], 'discount_percentage',
                minimum=Decimal('0'), maximum=Decimal('100'), exclusive_minimum=True,
            )
        if data.get('discount_value') is not None:
            fields['discount_value'] = parse_decimal(
                data['discount_value'], 'discount_value', minimum=Decimal('0'), exclusive_minimum=True
            )
        if 'product_name' in data:
            fields['product_name'] = clean_text(data['product_name'], max_length=255)
        for price in ('original_price', 'exclusive_price'):
            if data.get(price) is not None:
                fields[price] = parse_decimal(data[price], price, minimum=Decimal('0'), exclusive_minimum=True)

        if 'points_required' in data:
            fields['points_required'] = parse_int(data['points_required'] or 0, 'points_required', minimum=0)
        if 'redemption_limit' in data:
            fields['redemption_limit'] = parse_positive_int(data['redemption_limit'], 'redemption_limit') \
                if data['redemption_limit'] is not None else None
        if 'validity_start' in data:
            fields['validity_start'] = parse_datetime(data['validity_start'], 'validity_start')
        if 'validity_end' in data:
            fields['validity_end'] = parse_datetime(data['validity_end'], 'validity_end')
        if 'is_active' in data:
            fields['is_active'] = parse_bool(data['is_active'], 'is_active')

        if 'schedule_type' in data:
            if data['schedule_type'] not in SCHEDULE_TYPES:
                raise ValidationError(
                    f'schedule_type must be one of: {", ".join(SCHEDULE_TYPES)}', field='schedule_type'
                )
            fields['schedule_type'] = data['schedule_type']
        if 'start_time' in data:
            fields['start_time'] = validate_time_of_day(data['start_time'], 'start_time')
        if 'end_time' in data:
            fields['end_time'] = validate_time_of_day(data['end_time'], 'end_time')
        if 'active_days' in data:
            fields['active_days'] = _parse_active_days(data['active_days'])
        return fields

    @staticmethod
    def _check_consistency(state: Dict[str, Any]) -> None:
        deal_type = state.get('deal_type') or DealType.DISCOUNT.value
        if deal_type == DealType.DISCOUNT.value:
            if state.get('discount_percentage') is None and state.get('discount_value') is None:
                raise ValidationError('discount_percentage or discount_value is required', field='discount_percentage')
        else:
            if not state.get('product_name'):
                raise ValidationError('product_name is required', field='product_name')
            original = state.get('original_price')
            exclusive = state.get('exclusive_price')
            if original is None:
                raise ValidationError('original_price is required', field='original_price')
            if exclusive is None:
                raise ValidationError('exclusive_price is required', field='exclusive_price')
            if Decimal(str(exclusive)) >= Decimal(str(original)):
                raise ValidationError('exclusive_price must be lower than original_price', field='exclusive_price')

        start, end = state.get('validity_start'), state.get('validity_end')
        if start and end and end <= start:
            raise ValidationError('validity_end must be after validity_start', field='validity_end')

        schedule = state.get('schedule_type') or ScheduleType.ALWAYS_AVAILABLE.value
        if schedule in TIME_SCHEDULES and not (state.get('start_time') and state.get('end_time')):
            raise ValidationError('start_time and end_time are required for time-based schedules', field='start_time')
        if schedule in DAY_SCHEDULES and not state.get('active_days'):
            raise ValidationError('active_days is required for day-based schedules', field='active_days')

    def create_deal(self, business: Business, data: Dict[str, Any]) -> Deal:
        fields = self._deal_fields(data)
        fields.setdefault('deal_type', DealType.DISCOUNT.value)
        fields.setdefault('schedule_type', ScheduleType.ALWAYS_AVAILABLE.value)
        self._check_consistency(fields)

        deal = Deal(business_id=business.id, redemption_count=0, **fields)
        db.session.add(deal)
        db.session.commit()
        logger.info(f'Business {business.id} created {deal.deal_type} deal {deal.id}')
        return deal

    @staticmethod
    def get_deal(deal_id: int) -> Deal:
        deal = db.session.get(Deal, deal_id)
        if not deal:
            raise NotFoundError('Deal')
        return deal

    def get_owned_deal(self, business: Business, deal_id: int) -> Deal:
        deal = self.get_deal(deal_id)
        if deal.business_id != business.id:
            raise AuthorizationError('You do not own this deal')
        return deal

    @staticmethod
    def list_deals(business_id: int = None, deal_type: str = None,
                   include_inactive: bool = False) -> List[Deal]:
        query = Deal.query
        if business_id is not None:
            query = query.filter(Deal.business_id == business_id)
        if deal_type:
            if deal_type not in DEAL_TYPES:
                raise ValidationError(f'deal_type must be one of: {", ".join(DEAL_TYPES)}', field='deal_type')
            query = query.filter(Deal.deal_type == deal_type)
        if not include_inactive:
            query = query.filter(Deal.is_active.is_(True))
        return query.order_by(Deal.created_at.desc(), Deal.id.desc()).all()

    def update_deal(self, business: Business, deal_id: int, data: Dict[str, Any]) -> Deal:
        deal = self.get_owned_deal(business, deal_id)
        fields = self._deal_fields(data, partial=True)

        state = {column: getattr(deal, column) for column in CHECKED_COLUMNS}
        state.update(fields)
        self._check_consistency(state)

        limit = fields.get('redemption_limit')
        if limit is not None and limit < deal.redemption_count:
            raise ValidationError(
                f'redemption_limit cannot be lower than redemptions so far ({deal.redemption_count})',
                field='redemption_limit'
            )

        for key, value in fields.items():
            setattr(deal, key, value)
        db.session.commit()
        return deal

    def delete_deal(self, business: Business, deal_id: int) -> bool:
        """
        Delete a deal. Deals with usages are deactivated instead; their usage
        rows are part of the points ledger.

        Returns:
            True if the row was deleted, False if it was deactivated
        """
        deal = self.get_owned_deal(business, deal_id)
        if deal.usages.count():
            deal.is_active = False
            db.session.commit()
            logger.info(f'Business {business.id} deactivated redeemed deal {deal_id}')
            return False
        db.session.delete(deal)
        db.session.commit()
        logger.info(f'Business {business.id} deleted deal {deal_id}')
        return True

    # ==================== Redemption ====================

    @staticmethod
    def _find_customer(data: Dict[str, Any]) -> Customer:
        if data.get('customer_id') is not None:
            customer = db.session.get(Customer, parse_positive_int(data['customer_id'], 'customer_id'))
        elif data.get('customer_qr'):
            customer = Customer.query.filter_by(qr_code_data=str(data['customer_qr']).strip()).first()
        else:
            raise ValidationError('customer_id is required', field='customer_id')
        if not customer:
            raise NotFoundError('Customer')
        return customer

    def redeem(self, business: Business, user: User, data: Dict[str, Any],
               now: datetime = None) -> Dict[str, Any]:
        """
        Business scans a deal QR for a customer.

        Returns:
            Dict with deal_usage and the customer's remaining points
        """
        require_fields(data, ('qr_code_data',))
        deal = Deal.query.filter_by(
            qr_code_data=str(data['qr_code_data']).strip(), business_id=business.id
        ).first()
        if not deal:
            raise NotFoundError('Deal')
        customer = self._find_customer(data)
        now = now or datetime.utcnow()

        used = DealUsage.query.filter_by(deal_id=deal.id, customer_id=customer.id).first()
        if used:
            raise ValidationError('Customer has already used this deal')
        if not deal.is_active:
            raise ValidationError('Deal is not active')
        if deal.validity_start and deal.validity_start > now:
            raise ValidationError('Deal has not started yet')
        if deal.validity_end and deal.validity_end < now:
            raise ValidationError('Deal has expired')
        if not deal.is_within_schedule(now):
            raise ValidationError('Deal is not available at this time')

        required = deal.points_required or 0
        available = get_total_points(customer.id)
        if available < required:
            raise InsufficientPointsError(
                available, required,
                message=f"Customer doesn't have enough points. Required: {required}, Available: {available}",
            )

        try:
            counted = Deal.query.filter(
                Deal.id == deal.id,
                or_(Deal.redemption_limit.is_(None), Deal.redemption_count < Deal.redemption_limit),
            ).update(
                {Deal.redemption_count: Deal.redemption_count + 1},
                synchronize_session=False,
            )
            if not counted:
                raise LimitExceededError('Deal redemption limit reached')

            usage = DealUsage(
                deal_id=deal.id,
                customer_id=customer.id,
                business_id=business.id,
                points_used=required,
                validated_by=user.id,
                used_at=now,
            )
            db.session.add(usage)
            db.session.flush()

            debit_points(customer.id, required)

            notifications = NotificationService()
            notifications.deal_redeemed(customer, deal.title, deal.id)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError('Customer has already used this deal')
        except GiyaError:
            db.session.rollback()
            raise

        notifications.deliver_pending()
        logger.info(f'Business {business.id} redeemed deal {deal.id} for customer {customer.id}')
        return {
            'deal_usage': usage,
            'remaining_points': get_total_points(customer.id),
        }
