"""
Reward Service for Giya.

Businesses publish rewards; customers spend points on them and receive a
single-use redemption code that the business scans at the counter.

SINGLE-USE CODES:
validate() flips a redemption with

    UPDATE redemptions SET status = 'validated', ...
     WHERE redemption_qr_code = :code AND status = 'pending'

Only one request can match that row. Everyone else gets a 409.

LIMITS AND BALANCES:
redemption_count is incremented with `WHERE redemption_count < redemption_limit`
and points leave the balance via debit_points() (`WHERE total_points >= n`),
all in one transaction that rolls back on any failure.

Rewards only spend points earned at their own business. The customer row is
locked with SELECT ... FOR UPDATE before the per-business balance is read, and
the balance is recomputed after the redemption row is flushed; a negative
result rolls the whole redemption back.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import or_

from ..extensions import db
from ..models import (
    Business,
    Customer,
    Redemption,
    RedemptionStatus,
    Reward,
    User,
)
from ..utils.exceptions import (
    AuthorizationError,
    ConcurrencyError,
    GiyaError,
    InsufficientPointsError,
    InvalidStatusTransitionError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from ..utils.validation import (
    clean_text,
    parse_bool,
    parse_positive_int,
    require_fields,
    validate_image_url,
    validate_length,
)
from .notification_service import NotificationService
from .points_service import PointsService, credit_points, debit_points, refresh_balance

logger = logging.getLogger(__name__)

REWARD_REQUIRED_FIELDS = ('reward_name', 'points_required')


class RewardService:

    def __init__(self):
        self.points = PointsService()

    # ==================== Catalog ====================

    @staticmethod
    def _reward_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        if not partial:
            require_fields(data, REWARD_REQUIRED_FIELDS)

        fields = {}
        if 'reward_name' in data:
            fields['reward_name'] = clean_text(validate_length(data['reward_name'], 'reward_name', 1, 255))
        if 'description' in data:
            fields['description'] = clean_text(
                validate_length(data['description'], 'description', 0, 1000)
            ) if data['description'] else None
        if 'points_required' in data:
            fields['points_required'] = parse_positive_int(data['points_required'], 'points_required')
        if 'redemption_limit' in data:
            fields['redemption_limit'] = parse_positive_int(data['redemption_limit'], 'redemption_limit') \
                if data['redemption_limit'] is not None else None
        if 'terms' in data:
            fields['terms'] = clean_text(data['terms'], max_length=2000)
        if 'image_url' in data:
            fields['image_url'] = validate_image_url(data['image_url'])
        if 'is_active' in data:
            fields['is_active'] = parse_bool(data['is_active'], 'is_active')
        return fields

    def create_reward(self, business: Business, data: Dict[str, Any]) -> Reward:
        reward = Reward(business_id=business.id, redemption_count=0, **self._reward_fields(data))
        db.session.add(reward)
        db.session.commit()
        logger.info(f'Business {business.id} created reward {reward.id}')
        return reward

    @staticmethod
    def get_reward(reward_id: int) -> Reward:
        reward = db.session.get(Reward, reward_id)
        if not reward:
            raise NotFoundError('Reward')
        return reward

    def get_owned_reward(self, business: Business, reward_id: int) -> Reward:
        reward = self.get_reward(reward_id)
        if reward.business_id != business.id:
            raise AuthorizationError('You do not own this reward')
        return reward

    @staticmethod
    def list_rewards(business_id: int, include_inactive: bool = False) -> List[Reward]:
        query = Reward.query.filter_by(business_id=business_id)
        if not include_inactive:
            query = query.filter_by(is_active=True)
        return query.order_by(Reward.points_required.asc(), Reward.id.asc()).all()

    def update_reward(self, business: Business, reward_id: int, data: Dict[str, Any]) -> Reward:
        reward = self.get_owned_reward(business, reward_id)
        fields = self._reward_fields(data, partial=True)
        limit = fields.get('redemption_limit')
        if limit is not None and limit < reward.redemption_count:
            raise ValidationError(
                f'redemption_limit cannot be lower than redemptions so far ({reward.redemption_count})',
                field='redemption_limit'
            )
        for key, value in fields.items():
            setattr(reward, key, value)
        db.session.commit()
        return reward

    def delete_reward(self, business: Business, reward_id: int) -> bool:
        """
        Delete a reward. Rewards with redemptions are deactivated instead so
        issued codes keep resolving.

        Returns:
            True if the row was deleted, False if it was deactivated
        """
        reward = self.get_owned_reward(business, reward_id)
        if reward.redemptions.count():
            reward.is_active = False
            db.session.commit()
            return False
        db.session.delete(reward)
        db.session.commit()
        return True

    # ==================== Redemption ====================

    def redeem(self, customer: Customer, reward_id: int) -> Redemption:
        """
        Spend points on a reward.

        Raises:
            NotFoundError: reward missing or inactive
            InsufficientPointsError: not enough points at this business
            LimitExceededError: reward redemption limit reached
        """
        reward = db.session.get(Reward, reward_id)
        if not reward or not reward.is_active:
            raise NotFoundError('Reward')

        required = reward.points_required
        try:
            # Row lock serializes redeems for one customer (no-op on SQLite)
            Customer.query.filter(Customer.id == customer.id).with_for_update().one()
            available = self.points.available_at_business(customer.id, reward.business_id)
            if available < required:
                raise InsufficientPointsError(available, required)

            counted = Reward.query.filter(
                Reward.id == reward.id,
                Reward.is_active.is_(True),
                or_(Reward.redemption_limit.is_(None), Reward.redemption_count < Reward.redemption_limit),
            ).update(
                {Reward.redemption_count: Reward.redemption_count + 1},
                synchronize_session=False,
            )
            if not counted:
                raise LimitExceededError('Reward redemption limit reached')

            debit_points(customer.id, required)

            redemption = Redemption(
                customer_id=customer.id,
                reward_id=reward.id,
                business_id=reward.business_id,
                points_redeemed=required,
                status=RedemptionStatus.PENDING.value,
            )
            db.session.add(redemption)
            db.session.flush()

            # The ledger must still balance once this redemption is in it
            remaining = (self.points.earned_at_business(customer.id, reward.business_id)
                         - self.points.spent_at_business(customer.id, reward.business_id))
            if remaining < 0:
                raise InsufficientPointsError(remaining + required, required)
            db.session.commit()
        except GiyaError:
            db.session.rollback()
            raise

        refresh_balance(customer)
        logger.info(f'Customer {customer.id} redeemed reward {reward.id} ({required} points)')
        return redemption

    @staticmethod
    def list_redemptions(customer_id: int = None, business_id: int = None) -> List[Redemption]:
        query = Redemption.query
        if customer_id is not None:
            query = query.filter(Redemption.customer_id == customer_id)
        if business_id is not None:
            query = query.filter(Redemption.business_id == business_id)
        return query.order_by(Redemption.created_at.desc(), Redemption.id.desc()).all()

    def validate(self, business: Business, user: User, code: str) -> Redemption:
        """
        Business scans a redemption code. Each code validates exactly once.

        Raises:
            NotFoundError: unknown code
            AuthorizationError: code belongs to another business
            ConcurrencyError: already validated (or cancelled)
        """
        if not code or not str(code).strip():
            raise ValidationError('code is required', field='code')
        redemption = Redemption.query.filter_by(redemption_qr_code=str(code).strip()).first()
        if not redemption:
            raise NotFoundError('Redemption')
        if redemption.business_id != business.id:
            raise AuthorizationError('This redemption belongs to another business')

        now = datetime.utcnow()
        validated = Redemption.query.filter(
            Redemption.id == redemption.id,
            Redemption.status == RedemptionStatus.PENDING.value,
        ).update(
            {
                Redemption.status: RedemptionStatus.VALIDATED.value,
                Redemption.validated_at: now,
                Redemption.validated_by: user.id,
            },
            synchronize_session=False,
        )
        if not validated:
            db.session.rollback()
            db.session.refresh(redemption)
            if redemption.status == RedemptionStatus.CANCELLED.value:
                raise ConcurrencyError('Redemption has been cancelled')
            logger.warning(f'Redemption code {redemption.redemption_qr_code} presented again')
            raise ConcurrencyError('Redemption already validated', extra={
                'validated_at': redemption.validated_at.isoformat() if redemption.validated_at else None,
            })

        notifications = NotificationService()
        notifications.reward_redeemed(redemption.customer, redemption.reward.reward_name, redemption.id)
        db.session.commit()
        notifications.deliver_pending()
        db.session.refresh(redemption)
        return redemption

    def cancel(self, customer: Customer, redemption_id: int) -> Redemption:
        """Cancel a pending redemption and refund its points."""
        redemption = db.session.get(Redemption, redemption_id)
        if not redemption:
            raise NotFoundError('Redemption')
        if redemption.customer_id != customer.id:
            raise AuthorizationError('You can only cancel your own redemptions')

        cancelled = Redemption.query.filter(
            Redemption.id == redemption.id,
            Redemption.status == RedemptionStatus.PENDING.value,
        ).update(
            {Redemption.status: RedemptionStatus.CANCELLED.value, Redemption.cancelled_at: datetime.utcnow()},
            synchronize_session=False,
        )
        if not cancelled:
            db.session.rollback()
            db.session.refresh(redemption)
            raise InvalidStatusTransitionError('redemption', redemption.status, RedemptionStatus.CANCELLED.value)

        credit_points(customer.id, redemption.points_redeemed)
        Reward.query.filter(
            Reward.id == redemption.reward_id,
            Reward.redemption_count > 0,
        ).update(
            {Reward.redemption_count: Reward.redemption_count - 1},
            synchronize_session=False,
        )
        db.session.commit()
        db.session.refresh(redemption)
        refresh_balance(customer)
        logger.info(f'Customer {customer.id} cancelled redemption {redemption.id}')
        return redemption
