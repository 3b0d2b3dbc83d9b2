"""
Business and customer profile updates, plus public business discovery.
"""
import logging
from typing import Any, Dict, List, Optional

from ..extensions import db
from ..models import Business, BusinessApprovalStatus, Customer, Deal, Reward
from ..utils.cache import invalidate_curated_lists
from ..utils.exceptions import NotFoundError
from ..utils.validation import (
    clean_text,
    parse_date,
    parse_positive_int,
    validate_image_url,
    validate_length,
    validate_phone_number,
)

logger = logging.getLogger(__name__)

DISCOVERY_LIMIT = 100


class ProfileService:

    # ==================== Business ====================

    @staticmethod
    def update_business(business: Business, data: Dict[str, Any]) -> Business:
        if 'business_name' in data:
            business.business_name = clean_text(
                validate_length(data['business_name'], 'business_name', 2, 255)
            )
        if 'business_category' in data:
            business.business_category = clean_text(
                validate_length(data['business_category'], 'business_category', 2, 100)
            )
        if 'address' in data:
            business.address = clean_text(validate_length(data['address'], 'address', 5, 500))
        if 'description' in data:
            business.description = clean_text(data['description'], max_length=1000)
        if 'gmaps_link' in data:
            business.gmaps_link = clean_text(data['gmaps_link'], max_length=500)
        if 'phone_number' in data:
            business.phone_number = validate_phone_number(data['phone_number']) if data['phone_number'] else None
        if 'profile_pic_url' in data:
            business.profile_pic_url = validate_image_url(data['profile_pic_url'], 'profile_pic_url')
        if 'points_per_currency' in data:
            business.points_per_currency = parse_positive_int(data['points_per_currency'], 'points_per_currency')
        db.session.commit()
        # Public curated lists embed business names and pictures
        invalidate_curated_lists()
        return business

    @staticmethod
    def discover_businesses(category: Optional[str] = None, q: Optional[str] = None) -> List[Business]:
        query = Business.query.filter(
            Business.approval_status == BusinessApprovalStatus.APPROVED.value,
            Business.is_active.is_(True),
        )
        if category:
            query = query.filter(Business.business_category == category)
        if q:
            query = query.filter(Business.business_name.ilike(f'%{q.strip()}%'))
        return query.order_by(Business.business_name.asc()).limit(DISCOVERY_LIMIT).all()

    @staticmethod
    def public_business(business_id: int) -> Dict[str, Any]:
        business = db.session.get(Business, business_id)
        if not business or not business.is_approved:
            raise NotFoundError('Business')

        data = business.to_dict(include_approval=False)
        data['rewards'] = [r.to_dict() for r in Reward.query.filter_by(
            business_id=business.id, is_active=True
        ).order_by(Reward.points_required.asc()).all()]
        data['deals'] = [d.to_dict() for d in Deal.query.filter_by(
            business_id=business.id, is_active=True
        ).order_by(Deal.created_at.desc()).all()]
        return data

    # ==================== Customer ====================

    @staticmethod
    def update_customer(customer: Customer, data: Dict[str, Any]) -> Customer:
        if 'full_name' in data:
            customer.full_name = clean_text(validate_length(data['full_name'], 'full_name', 2, 255))
        if 'nickname' in data:
            customer.nickname = clean_text(data['nickname'], max_length=100)
        if 'phone_number' in data:
            customer.phone_number = validate_phone_number(data['phone_number']) if data['phone_number'] else None
        if 'date_of_birth' in data:
            customer.date_of_birth = parse_date(data['date_of_birth'], 'date_of_birth')
        if 'profile_pic_url' in data:
            customer.profile_pic_url = validate_image_url(data['profile_pic_url'], 'profile_pic_url')
        if 'fcm_token' in data:
            customer.fcm_token = (data['fcm_token'] or None) and str(data['fcm_token'])[:500]
        db.session.commit()
        return customer
