"""
Curated List Service for Giya.

Admin-managed featured lists shown on the customer home screen. The public
listing is cached and dropped on every write.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Business, CuratedList, CuratedListItem, User
from ..utils.cache import cache, PUBLIC_CURATED_LISTS_KEY, invalidate_curated_lists
from ..utils.exceptions import DuplicateError, NotFoundError, ValidationError
from ..utils.validation import (
    clean_text,
    parse_bool,
    parse_int,
    parse_positive_int,
    require_fields,
    validate_length,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = 'trending'
MOVE_DIRECTIONS = ('up', 'down')


class CuratedListService:

    @staticmethod
    def get_list(list_id: int) -> CuratedList:
        curated = db.session.get(CuratedList, list_id)
        if not curated:
            raise NotFoundError('Curated list')
        return curated

    @staticmethod
    def list_all() -> List[CuratedList]:
        return CuratedList.query.order_by(CuratedList.display_order.asc(), CuratedList.id.asc()).all()

    def create_list(self, admin: User, data: Dict[str, Any]) -> CuratedList:
        require_fields(data, ('title',))
        curated = CuratedList(
            title=clean_text(validate_length(data['title'], 'title', 1, 255)),
            description=clean_text(data.get('description'), max_length=1000),
            category=clean_text(data.get('category') or DEFAULT_CATEGORY, max_length=50),
            display_order=CuratedList.query.count(),
            is_active=parse_bool(data['is_active'], 'is_active') if 'is_active' in data else True,
            created_by=admin.id,
        )
        db.session.add(curated)
        db.session.commit()
        invalidate_curated_lists()
        logger.info(f'Admin {admin.id} created curated list {curated.id}')
        return curated

    def update_list(self, list_id: int, data: Dict[str, Any]) -> CuratedList:
        curated = self.get_list(list_id)
        if 'title' in data:
            curated.title = clean_text(validate_length(data['title'], 'title', 1, 255))
        if 'description' in data:
            curated.description = clean_text(data['description'], max_length=1000)
        if 'category' in data:
            curated.category = clean_text(data['category'] or DEFAULT_CATEGORY, max_length=50)
        if 'display_order' in data:
            curated.display_order = parse_int(data['display_order'], 'display_order', minimum=0)
        if 'is_active' in data:
            curated.is_active = parse_bool(data['is_active'], 'is_active')
        db.session.commit()
        invalidate_curated_lists()
        return curated

    def delete_list(self, list_id: int) -> None:
        db.session.delete(self.get_list(list_id))
        db.session.commit()
        invalidate_curated_lists()

    def toggle(self, list_id: int) -> CuratedList:
        curated = self.get_list(list_id)
        curated.is_active = not curated.is_active
        db.session.commit()
        invalidate_curated_lists()
        return curated

    # ==================== Items ====================

    def add_business(self, admin: User, list_id: int, business_id) -> CuratedListItem:
        curated = self.get_list(list_id)
        if business_id is None:
            raise ValidationError('business_id is required', field='business_id')
        business = db.session.get(Business, parse_positive_int(business_id, 'business_id'))
        if not business:
            raise NotFoundError('Business')
        if not business.is_approved:
            raise ValidationError('Only approved, active businesses can be added to a list')

        if curated.items.filter_by(business_id=business.id).first():
            raise DuplicateError('Business is already in this list')

        item = CuratedListItem(
            curated_list_id=curated.id,
            business_id=business.id,
            display_order=curated.items.count(),
            added_by=admin.id,
        )
        db.session.add(item)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateError('Business is already in this list')
        invalidate_curated_lists()
        return item

    def _get_item(self, list_id: int, business_id: int) -> CuratedListItem:
        curated = self.get_list(list_id)
        item = curated.items.filter_by(business_id=business_id).first()
        if not item:
            raise NotFoundError('Curated list item')
        return item

    def remove_business(self, list_id: int, business_id: int) -> None:
        item = self._get_item(list_id, business_id)
        db.session.delete(item)
        db.session.flush()
        # Close the gap
        for position, remaining in enumerate(self.get_list(list_id).items.all()):
            remaining.display_order = position
        db.session.commit()
        invalidate_curated_lists()

    def move_business(self, list_id: int, business_id: int, direction: str) -> List[CuratedListItem]:
        """Swap an item with its neighbour. Moving past either end does nothing."""
        if direction not in MOVE_DIRECTIONS:
            raise ValidationError('direction must be "up" or "down"', field='direction')
        item = self._get_item(list_id, business_id)
        items = item.curated_list.items.all()
        index = items.index(item)
        neighbour_index = index - 1 if direction == 'up' else index + 1

        if 0 <= neighbour_index < len(items):
            neighbour = items[neighbour_index]
            item.display_order, neighbour.display_order = neighbour.display_order, item.display_order
            if item.display_order == neighbour.display_order:
                # Orders were never normalised; fall back to positions
                item.display_order, neighbour.display_order = neighbour_index, index
            db.session.commit()
            invalidate_curated_lists()
        return item.curated_list.items.all()

    # ==================== Public ====================

    @staticmethod
    def public_lists() -> List[Dict[str, Any]]:
        cached = cache.get(PUBLIC_CURATED_LISTS_KEY)
        if cached is not None:
            return cached

        lists = CuratedList.query.filter_by(is_active=True).order_by(
            CuratedList.display_order.asc(), CuratedList.id.asc()
        ).all()
        result = []
        for curated in lists:
            businesses = [
                item.business.to_dict(include_approval=False)
                for item in curated.items
                if item.business and item.business.is_approved
            ]
            data = curated.to_dict()
            data['businesses'] = businesses
            result.append(data)

        cache.set(PUBLIC_CURATED_LISTS_KEY, result, timeout=600)
        return result
