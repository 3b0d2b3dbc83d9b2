"""
Punch Card Service for Giya.

Businesses define punch cards ("buy 9, get the 10th free"); customers join
them and the business records a punch per qualifying visit.

CONCURRENCY:
The punch counter never exceeds punches_required, even when two cashiers
scan the same card at the same moment. add_punch increments with a single
guarded UPDATE:

    UPDATE punch_card_customers
       SET punches_count = punches_count + 1
     WHERE id = :id AND is_completed = false AND punches_count < :required

Zero matched rows means another request completed the card first, so no
punch row is inserted. Joining twice is blocked by the
(punch_card_id, customer_id) unique constraint.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Business,
    Customer,
    PunchCard,
    PunchCardCustomer,
    PunchCardPunch,
    User,
)
from ..utils.cache import cache, punch_card_analytics_key, invalidate_business_analytics
from ..utils.exceptions import (
    AuthorizationError,
    DuplicateError,
    GiyaError,
    NotFoundError,
    ValidationError,
)
from ..utils.validation import (
    clean_text,
    parse_bool,
    parse_datetime,
    parse_int,
    parse_positive_int,
    require_fields,
    validate_length,
)
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

CARD_REQUIRED_FIELDS = ('title', 'reward_description', 'punches_required')
BULK_OPERATIONS = (
    'bulk_add_punches',
    'bulk_create_punch_cards',
    'bulk_update_punch_cards',
    'bulk_delete_punch_cards',
)

MESSAGE_COMPLETED = 'Punch card completed! Reward unlocked.'
MESSAGE_PUNCHED = 'Punch added successfully.'

# transaction_id on punch rows written by set_punch_count
MANUAL_ADJUSTMENT = 'manual-adjustment'


def completion_rate(completed: int, participants: int) -> int:
    """Whole-number percentage of participants who completed the card."""
    if not participants:
        return 0
    return round(completed / participants * 100)


class PunchCardService:
    """
    Usage:
        service = PunchCardService()
        card = service.create_card(business, {'title': 'Coffee', ...})
        result = service.add_punch(business, participation_id, validated_by=user.id)
    """

    # ==================== Cards ====================

    def _card_fields(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        if not partial:
            require_fields(data, CARD_REQUIRED_FIELDS)

        fields = {}
        if 'title' in data:
            fields['title'] = clean_text(validate_length(data['title'], 'title', 1, 255))
        if 'description' in data:
            fields['description'] = clean_text(data['description'], max_length=1000)
        if 'reward_description' in data:
            fields['reward_description'] = clean_text(
                validate_length(data['reward_description'], 'reward_description', 1, 500)
            )
        if 'punches_required' in data:
            fields['punches_required'] = parse_positive_int(data['punches_required'], 'punches_required')
        if 'is_active' in data:
            fields['is_active'] = parse_bool(data['is_active'], 'is_active')
        if 'valid_from' in data:
            fields['valid_from'] = parse_datetime(data['valid_from'], 'valid_from') or datetime.utcnow()
        if 'valid_until' in data:
            fields['valid_until'] = parse_datetime(data['valid_until'], 'valid_until')

        valid_from = fields.get('valid_from')
        valid_until = fields.get('valid_until')
        if valid_from and valid_until and valid_until <= valid_from:
            raise ValidationError('valid_until must be after valid_from', field='valid_until')
        return fields

    def create_card(self, business: Business, data: Dict[str, Any], commit: bool = True) -> PunchCard:
        fields = self._card_fields(data)
        fields.setdefault('is_active', True)
        fields.setdefault('valid_from', datetime.utcnow())

        card = PunchCard(business_id=business.id, **fields)
        db.session.add(card)
        if commit:
            db.session.commit()
            invalidate_business_analytics(business.id)
            logger.info(f'Business {business.id} created punch card {card.id}')
        return card

    @staticmethod
    def get_card(card_id: int) -> PunchCard:
        card = db.session.get(PunchCard, card_id)
        if not card:
            raise NotFoundError('Punch card')
        return card

    def get_owned_card(self, business: Business, card_id: int) -> PunchCard:
        card = self.get_card(card_id)
        if card.business_id != business.id:
            raise AuthorizationError('You do not own this punch card')
        return card

    @staticmethod
    def list_cards_for_business(business_id: int) -> List[PunchCard]:
        return PunchCard.query.filter_by(business_id=business_id).order_by(
            PunchCard.created_at.desc(), PunchCard.id.desc()
        ).all()

    def update_card(self, business: Business, card_id: int, data: Dict[str, Any],
                    commit: bool = True) -> PunchCard:
        card = self.get_owned_card(business, card_id)
        fields = self._card_fields(data, partial=True)

        if 'valid_until' in fields and 'valid_from' not in fields:
            if fields['valid_until'] and card.valid_from and fields['valid_until'] <= card.valid_from:
                raise ValidationError('valid_until must be after valid_from', field='valid_until')

        new_required = fields.get('punches_required')
        if new_required is not None and new_required < card.punches_required:
            highest = db.session.query(func.max(PunchCardCustomer.punches_count)).filter(
                PunchCardCustomer.punch_card_id == card.id
            ).scalar() or 0
            if new_required < highest:
                raise ValidationError(
                    f'punches_required cannot be lower than an existing participant\'s punches ({highest})',
                    field='punches_required'
                )

        lowered = new_required is not None and new_required < card.punches_required
        for key, value in fields.items():
            setattr(card, key, value)

        notifications = NotificationService()
        if lowered:
            self._complete_filled_participations(card, notifications)
        if commit:
            db.session.commit()
            notifications.deliver_pending()
            invalidate_business_analytics(business.id)
        return card

    @staticmethod
    def _complete_filled_participations(card: PunchCard, notifications: NotificationService) -> int:
        """Complete participations that already hold card.punches_required punches."""
        filled = PunchCardCustomer.query.filter(
            PunchCardCustomer.punch_card_id == card.id,
            PunchCardCustomer.is_completed.is_(False),
            PunchCardCustomer.punches_count >= card.punches_required,
        ).all()

        now = datetime.utcnow()
        completed = 0
        for participation in filled:
            updated = PunchCardCustomer.query.filter(
                PunchCardCustomer.id == participation.id,
                PunchCardCustomer.is_completed.is_(False),
            ).update(
                {PunchCardCustomer.is_completed: True, PunchCardCustomer.completed_at: now},
                synchronize_session=False,
            )
            if updated:
                completed += 1
                notifications.punch_card_completed(
                    participation.customer, card.title, card.reward_description, card.id
                )
        if completed:
            logger.info(f'Punch card {card.id}: {completed} participations completed by lowering punches_required')
        return completed

    def delete_card(self, business: Business, card_id: int, commit: bool = True) -> None:
        card = self.get_owned_card(business, card_id)
        db.session.delete(card)
        if commit:
            db.session.commit()
            invalidate_business_analytics(business.id)
            logger.info(f'Business {business.id} deleted punch card {card_id}')

    # ==================== Participation ====================

    def join(self, customer: Customer, card_id: int) -> PunchCardCustomer:
        card = self.get_card(card_id)
        if not card.is_available():
            raise ValidationError('Punch card is not available')

        existing = PunchCardCustomer.query.filter_by(
            punch_card_id=card.id, customer_id=customer.id
        ).first()
        if existing:
            raise DuplicateError('Already joined this punch card', status_code=400)

        participation = PunchCardCustomer(
            punch_card_id=card.id,
            customer_id=customer.id,
            punches_count=0,
            is_completed=False,
        )
        db.session.add(participation)
        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent join won the unique constraint
            db.session.rollback()
            raise DuplicateError('Already joined this punch card', status_code=400)

        invalidate_business_analytics(card.business_id)
        return participation

    @staticmethod
    def participations_for_customer(customer_id: int) -> List[PunchCardCustomer]:
        return PunchCardCustomer.query.filter_by(customer_id=customer_id).order_by(
            PunchCardCustomer.created_at.desc(), PunchCardCustomer.id.desc()
        ).all()

    @staticmethod
    def participation_for_card(customer_id: int, card_id: int) -> Optional[PunchCardCustomer]:
        return PunchCardCustomer.query.filter_by(
            customer_id=customer_id, punch_card_id=card_id
        ).first()

    @staticmethod
    def get_participation(participation_id: int) -> PunchCardCustomer:
        participation = db.session.get(PunchCardCustomer, participation_id)
        if not participation:
            raise NotFoundError('Punch card participation')
        return participation

    def set_punch_count(self, user: User, participation_id: int, punches_count) -> PunchCardCustomer:
        """
        Manual correction by the participant or the card's business.

        Punch rows are added (marked MANUAL_ADJUSTMENT) or the newest ones
        removed so the rows still add up to punches_count and
        `flask maintenance recount-punches` keeps the correction.
        """
        participation = self.get_participation(participation_id)
        card = participation.punch_card

        is_customer = user.customer is not None and user.customer.id == participation.customer_id
        is_owner = user.business is not None and user.business.id == card.business_id
        if not (is_customer or is_owner):
            raise AuthorizationError('You cannot update this punch card participation')

        count = parse_int(punches_count, 'punches_count', minimum=0, maximum=card.punches_required)
        now = datetime.utcnow()
        completed = count >= card.punches_required

        rows = participation.punches.count()
        if count > rows:
            db.session.add_all([
                PunchCardPunch(punch_card_customer_id=participation.id, validated_by=user.id,
                               transaction_id=MANUAL_ADJUSTMENT)
                for _ in range(count - rows)
            ])
        elif count < rows:
            newest = participation.punches.order_by(
                PunchCardPunch.created_at.desc(), PunchCardPunch.id.desc()
            ).limit(rows - count).all()
            for punch in newest:
                db.session.delete(punch)

        participation.punches_count = count
        if completed and not participation.is_completed:
            participation.completed_at = now
        elif not completed:
            participation.completed_at = None
        participation.is_completed = completed
        db.session.commit()
        invalidate_business_analytics(card.business_id)
        return participation

    def leave(self, customer: Customer, participation_id: int) -> None:
        participation = self.get_participation(participation_id)
        if participation.customer_id != customer.id:
            raise AuthorizationError('You can only leave your own punch cards')
        business_id = participation.punch_card.business_id
        db.session.delete(participation)
        db.session.commit()
        invalidate_business_analytics(business_id)

    # ==================== Punches ====================

    def add_punch(
        self,
        business: Business,
        participation_id: int,
        validated_by: int,
        transaction_id: Optional[str] = None,
        notifications: Optional[NotificationService] = None,
        commit: bool = True,
    ) -> Dict[str, Any]:
        """
        Record one punch.

        Returns:
            Dict with punch, participation, is_completed and message

        Raises:
            NotFoundError: participation missing
            AuthorizationError: caller does not own the card
            ValidationError: card already completed (including by a concurrent punch)
        """
        participation = self.get_participation(participation_id)
        card = participation.punch_card
        if card.business_id != business.id:
            raise AuthorizationError('You do not own this punch card')
        if participation.is_completed:
            raise ValidationError('Punch card already completed')

        now = datetime.utcnow()
        incremented = PunchCardCustomer.query.filter(
            PunchCardCustomer.id == participation.id,
            PunchCardCustomer.is_completed.is_(False),
            PunchCardCustomer.punches_count < card.punches_required,
        ).update(
            {
                PunchCardCustomer.punches_count: PunchCardCustomer.punches_count + 1,
                PunchCardCustomer.last_punch_at: now,
            },
            synchronize_session=False,
        )
        if not incremented:
            db.session.rollback()
            raise ValidationError('Punch card already completed')

        completed = PunchCardCustomer.query.filter(
            PunchCardCustomer.id == participation.id,
            PunchCardCustomer.is_completed.is_(False),
            PunchCardCustomer.punches_count >= card.punches_required,
        ).update(
            {
                PunchCardCustomer.is_completed: True,
                PunchCardCustomer.completed_at: now,
            },
            synchronize_session=False,
        ) > 0

        punch = PunchCardPunch(
            punch_card_customer_id=participation.id,
            validated_by=validated_by,
            transaction_id=clean_text(transaction_id, max_length=100) if transaction_id else None,
        )
        db.session.add(punch)

        own_notifications = notifications is None
        if own_notifications:
            notifications = NotificationService()
        if completed:
            notifications.punch_card_completed(
                participation.customer, card.title, card.reward_description, card.id
            )

        if commit:
            db.session.commit()
            if own_notifications:
                notifications.deliver_pending()
        else:
            db.session.flush()
        db.session.refresh(participation)
        invalidate_business_analytics(business.id)

        if completed:
            logger.info(f'Punch card {card.id} completed by customer {participation.customer_id}')

        return {
            'punch': punch,
            'participation': participation,
            'is_completed': completed,
            'message': MESSAGE_COMPLETED if completed else MESSAGE_PUNCHED,
        }

    @staticmethod
    def list_punches(customer_id: int = None, business_id: int = None,
                     card_id: int = None) -> List[PunchCardPunch]:
        query = PunchCardPunch.query.join(
            PunchCardCustomer, PunchCardPunch.punch_card_customer_id == PunchCardCustomer.id
        )
        if customer_id is not None:
            query = query.filter(PunchCardCustomer.customer_id == customer_id)
        if card_id is not None:
            query = query.filter(PunchCardCustomer.punch_card_id == card_id)
        if business_id is not None:
            query = query.join(PunchCard, PunchCardCustomer.punch_card_id == PunchCard.id).filter(
                PunchCard.business_id == business_id
            )
        return query.order_by(PunchCardPunch.created_at.desc(), PunchCardPunch.id.desc()).all()

    def delete_punch(self, business: Business, punch_id: int) -> PunchCardCustomer:
        """Remove a punch recorded in error and roll the counter back."""
        punch = db.session.get(PunchCardPunch, punch_id)
        if not punch:
            raise NotFoundError('Punch')
        participation = punch.participation
        card = participation.punch_card
        if card.business_id != business.id:
            raise AuthorizationError('You do not own this punch card')

        db.session.delete(punch)
        PunchCardCustomer.query.filter(
            PunchCardCustomer.id == participation.id,
            PunchCardCustomer.punches_count > 0,
        ).update(
            {PunchCardCustomer.punches_count: PunchCardCustomer.punches_count - 1},
            synchronize_session=False,
        )
        PunchCardCustomer.query.filter(
            PunchCardCustomer.id == participation.id,
            PunchCardCustomer.punches_count < card.punches_required,
        ).update(
            {PunchCardCustomer.is_completed: False, PunchCardCustomer.completed_at: None},
            synchronize_session=False,
        )
        db.session.commit()
        db.session.refresh(participation)
        invalidate_business_analytics(business.id)
        return participation

    # ==================== Bulk ====================

    def bulk(self, business: Business, user: User, operation: str, data: Any) -> Tuple[Dict[str, Any], int]:
        """
        Run a bulk operation.

        Item failures are collected and reported, they do not abort the batch
        (except bulk_create_punch_cards, which validates everything first and
        inserts all-or-nothing).

        Returns:
            (response body, HTTP status)
        """
        if not operation or data is None:
            raise ValidationError('Missing operation or data')
        if operation not in BULK_OPERATIONS:
            raise ValidationError('Invalid operation', field='operation')
        if not isinstance(data, list):
            raise ValidationError(f'Data must be an array for {operation} operation', field='data')

        handler = getattr(self, f'_{operation}')
        return handler(business, user, data)

    def _bulk_add_punches(self, business: Business, user: User, data: List[Any]):
        for item in data:
            if not isinstance(item, dict) or not item.get('punch_card_id') or not item.get('customer_id'):
                raise ValidationError('Each item must have punch_card_id and customer_id')

        results, errors = [], []
        notifications = NotificationService()
        for item in data:
            try:
                participation = PunchCardCustomer.query.filter_by(
                    punch_card_id=parse_int(item['punch_card_id'], 'punch_card_id'),
                    customer_id=parse_int(item['customer_id'], 'customer_id'),
                ).first()
                if not participation:
                    raise NotFoundError('Customer enrollment in this punch card')
                outcome = self.add_punch(
                    business, participation.id, validated_by=user.id,
                    transaction_id=item.get('transaction_id'),
                    notifications=notifications,
                )
                results.append({
                    'item': item,
                    'punch': outcome['punch'].to_dict(),
                    'message': outcome['message'],
                    'is_completed': outcome['is_completed'],
                })
            except GiyaError as e:
                db.session.rollback()
                errors.append({'item': item, 'error': e.message})

        notifications.deliver_pending()
        return {
            'success': True,
            'results': results,
            'errors': errors,
            'message': f'Processed {len(results)} punches successfully, {len(errors)} errors',
        }, 200

    def _bulk_create_punch_cards(self, business: Business, user: User, data: List[Any]):
        for item in data:
            if not isinstance(item, dict):
                raise ValidationError('Each item must have title, punches_required, and reward_description')
            try:
                require_fields(item, CARD_REQUIRED_FIELDS)
            except ValidationError:
                raise ValidationError('Each item must have title, punches_required, and reward_description')

        cards = [self.create_card(business, item, commit=False) for item in data]
        db.session.commit()
        invalidate_business_analytics(business.id)
        logger.info(f'Business {business.id} bulk-created {len(cards)} punch cards')
        return {
            'success': True,
            'results': [card.to_dict() for card in cards],
            'errors': [],
            'message': f'Created {len(cards)} punch cards successfully',
        }, 201

    def _bulk_update_punch_cards(self, business: Business, user: User, data: List[Any]):
        for item in data:
            if not isinstance(item, dict) or not item.get('id'):
                raise ValidationError('Each item must have an id')

        results, errors = [], []
        for item in data:
            try:
                updates = {k: v for k, v in item.items() if k != 'id'}
                card = self.update_card(business, parse_int(item['id'], 'id'), updates)
                results.append(card.to_dict())
            except GiyaError as e:
                db.session.rollback()
                errors.append({'id': item['id'], 'error': e.message})

        return {
            'success': True,
            'results': results,
            'errors': errors,
            'message': f'Updated {len(results)} punch cards successfully, {len(errors)} errors',
        }, 200

    def _bulk_delete_punch_cards(self, business: Business, user: User, data: List[Any]):
        for item in data:
            if isinstance(item, bool) or not isinstance(item, (int, str)) or not str(item).strip():
                raise ValidationError('All items must be punch card IDs')

        results, errors = [], []
        for item in data:
            try:
                self.delete_card(business, parse_int(item, 'id'))
                results.append(item)
            except GiyaError as e:
                db.session.rollback()
                errors.append({'id': item, 'error': e.message})

        return {
            'success': True,
            'results': results,
            'errors': errors,
            'message': f'Deleted {len(results)} punch cards successfully, {len(errors)} errors',
        }, 200

    # ==================== Reporting ====================

    def analytics(self, business_id: int) -> Dict[str, Any]:
        key = punch_card_analytics_key(business_id)
        cached = cache.get(key)
        if cached is not None:
            return cached

        cards = self.list_cards_for_business(business_id)
        stats = db.session.query(
            PunchCardCustomer.punch_card_id,
            func.count(PunchCardCustomer.id),
            func.coalesce(func.sum(PunchCardCustomer.punches_count), 0),
        ).join(PunchCard, PunchCardCustomer.punch_card_id == PunchCard.id).filter(
            PunchCard.business_id == business_id
        ).group_by(PunchCardCustomer.punch_card_id).all()
        completed_rows = db.session.query(
            PunchCardCustomer.punch_card_id,
            func.count(PunchCardCustomer.id),
        ).join(PunchCard, PunchCardCustomer.punch_card_id == PunchCard.id).filter(
            PunchCard.business_id == business_id,
            PunchCardCustomer.is_completed.is_(True),
        ).group_by(PunchCardCustomer.punch_card_id).all()

        participants_map = {row[0]: (int(row[1]), int(row[2])) for row in stats}
        completed_map = {row[0]: int(row[1]) for row in completed_rows}

        per_card = []
        totals = {'participants': 0, 'punches': 0, 'completed': 0}
        for card in cards:
            participants, punches = participants_map.get(card.id, (0, 0))
            completed = completed_map.get(card.id, 0)
            totals['participants'] += participants
            totals['punches'] += punches
            totals['completed'] += completed
            per_card.append({
                **card.to_dict(),
                'total_participants': participants,
                'completed_count': completed,
                'total_punches': punches,
                'completion_rate': completion_rate(completed, participants),
            })

        result = {
            'punch_cards': per_card,
            'business_stats': {
                'total_punch_cards': len(cards),
                'total_participants': totals['participants'],
                'total_punches': totals['punches'],
                'total_completed': totals['completed'],
                'completion_rate': completion_rate(totals['completed'], totals['participants']),
            },
        }
        cache.set(key, result, timeout=300)
        return result

    @staticmethod
    def customers_by_business(business_id: int) -> List[Dict[str, Any]]:
        participations = PunchCardCustomer.query.join(
            PunchCard, PunchCardCustomer.punch_card_id == PunchCard.id
        ).filter(PunchCard.business_id == business_id).order_by(
            PunchCardCustomer.created_at.desc(), PunchCardCustomer.id.desc()
        ).all()
        return [p.to_dict(include_card=True, include_customer=True) for p in participations]
