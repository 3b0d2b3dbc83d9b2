"""
Affiliate Service for Giya.

Influencers share per-business referral links. A receipt uploaded with a
link's code earns the influencer a commission on the points the customer
receives.

The program is switched off unless AFFILIATES_ENABLED is set; every entry
point calls ensure_enabled() first.
"""
import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    AffiliateConversion,
    AffiliateLink,
    Business,
    ConversionType,
    Influencer,
    Receipt,
)
from ..utils.codes import affiliate_code
from ..utils.exceptions import (
    ConfigurationError,
    DuplicateError,
    FeatureDisabledError,
    NotFoundError,
    ValidationError,
)
from ..utils.validation import validate_affiliate_code

logger = logging.getLogger(__name__)

CODE_GENERATION_ATTEMPTS = 10
TOP_AFFILIATES_DAYS = 30
TOP_AFFILIATES_LIMIT = 10


def affiliates_enabled() -> bool:
    return bool(current_app.config.get('AFFILIATES_ENABLED'))


def ensure_enabled() -> None:
    if not affiliates_enabled():
        raise FeatureDisabledError('Affiliate program')


def commission_for(points: int) -> int:
    rate = Decimal(str(current_app.config.get('AFFILIATE_COMMISSION_RATE', 0.10)))
    return int(math.floor(Decimal(points) * rate))


class AffiliateService:

    # ==================== Links ====================

    @staticmethod
    def _unused_code(business_id: int) -> str:
        for _ in range(CODE_GENERATION_ATTEMPTS):
            code = affiliate_code()
            taken = AffiliateLink.query.filter_by(business_id=business_id, unique_code=code).first()
            if not taken:
                return code
        raise ConfigurationError('Could not generate a unique affiliate code')

    def create_link(self, influencer: Influencer, business_id) -> AffiliateLink:
        ensure_enabled()
        if business_id is None:
            raise ValidationError('business_id is required', field='business_id')
        business = db.session.get(Business, business_id)
        if not business or not business.is_approved:
            raise NotFoundError('Business')

        existing = AffiliateLink.query.filter_by(
            influencer_id=influencer.id, business_id=business.id
        ).first()
        if existing:
            raise DuplicateError('You already have a link for this business')

        link = AffiliateLink(
            influencer_id=influencer.id,
            business_id=business.id,
            unique_code=self._unused_code(business.id),
            commission_rate=Decimal(str(current_app.config.get('AFFILIATE_LINK_COMMISSION_RATE', 0.05))),
        )
        db.session.add(link)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateError('You already have a link for this business')

        logger.info(f'Influencer {influencer.id} created affiliate link {link.unique_code} for business {business.id}')
        return link

    @staticmethod
    def list_links(influencer: Influencer) -> List[AffiliateLink]:
        ensure_enabled()
        return influencer.affiliate_links.order_by(AffiliateLink.created_at.desc()).all()

    @staticmethod
    def track(code: str, business_id: Optional[int] = None) -> AffiliateLink:
        """Count a click on a shared link."""
        ensure_enabled()
        code = validate_affiliate_code(code)
        query = AffiliateLink.query.filter_by(unique_code=code, is_active=True)
        if business_id is not None:
            query = query.filter_by(business_id=business_id)
        link = query.order_by(AffiliateLink.id).first()
        if not link:
            raise NotFoundError('Affiliate link')

        AffiliateLink.query.filter(AffiliateLink.id == link.id).update(
            {AffiliateLink.click_count: AffiliateLink.click_count + 1},
            synchronize_session=False,
        )
        db.session.commit()
        db.session.refresh(link)
        return link

    # ==================== Attribution ====================

    @staticmethod
    def link_for_receipt(business_id: int, ref: Optional[str]) -> Optional[AffiliateLink]:
        """Resolve a receipt's ref code; None when the program is off or no ref was given."""
        if not ref or not affiliates_enabled():
            return None
        code = validate_affiliate_code(ref)
        link = AffiliateLink.query.filter_by(
            business_id=business_id, unique_code=code, is_active=True
        ).first()
        if not link:
            raise NotFoundError('Affiliate link')
        return link

    @staticmethod
    def record_receipt_conversion(receipt: Receipt, points: int) -> Optional[AffiliateConversion]:
        """
        Credit the influencer for a processed receipt (no commit).

        The unique receipt_id on affiliate_conversions stops a receipt from
        paying commission twice.
        """
        if not receipt.affiliate_link_id or not affiliates_enabled():
            return None
        link = db.session.get(AffiliateLink, receipt.affiliate_link_id)
        if not link or not link.is_active:
            return None

        commission = commission_for(points)
        conversion = AffiliateConversion(
            affiliate_link_id=link.id,
            receipt_id=receipt.id,
            customer_id=receipt.customer_id,
            conversion_type=ConversionType.RECEIPT.value,
            points_earned=points,
            commission_points=commission,
        )
        db.session.add(conversion)
        if commission > 0:
            Influencer.query.filter(Influencer.id == link.influencer_id).update(
                {Influencer.total_commission_points: Influencer.total_commission_points + commission},
                synchronize_session=False,
            )
        logger.info(f'Affiliate link {link.id} earned {commission} commission points on receipt {receipt.id}')
        return conversion

    # ==================== Reporting ====================

    @staticmethod
    def earnings(influencer: Influencer) -> Dict[str, Any]:
        ensure_enabled()
        rows = db.session.query(
            AffiliateLink,
            func.count(AffiliateConversion.id),
            func.coalesce(func.sum(AffiliateConversion.commission_points), 0),
        ).outerjoin(
            AffiliateConversion, AffiliateConversion.affiliate_link_id == AffiliateLink.id
        ).filter(
            AffiliateLink.influencer_id == influencer.id
        ).group_by(AffiliateLink.id).all()

        links = []
        for link, conversions, commission in rows:
            data = link.to_dict()
            data['conversions'] = int(conversions or 0)
            data['commission_points'] = int(commission or 0)
            links.append(data)

        db.session.refresh(influencer, ['total_commission_points'])
        return {
            'total_commission_points': influencer.total_commission_points,
            'total_conversions': sum(link['conversions'] for link in links),
            'links': links,
        }

    @staticmethod
    def top_affiliates(business: Business, days: int = TOP_AFFILIATES_DAYS,
                       limit: int = TOP_AFFILIATES_LIMIT) -> List[Dict[str, Any]]:
        ensure_enabled()
        since = datetime.utcnow() - timedelta(days=days)
        commission = func.coalesce(func.sum(AffiliateConversion.commission_points), 0)
        rows = db.session.query(
            Influencer,
            func.count(AffiliateConversion.id),
            commission,
        ).join(
            AffiliateLink, AffiliateLink.influencer_id == Influencer.id
        ).join(
            AffiliateConversion, AffiliateConversion.affiliate_link_id == AffiliateLink.id
        ).filter(
            AffiliateLink.business_id == business.id,
            AffiliateConversion.created_at >= since,
        ).group_by(Influencer.id).order_by(commission.desc()).limit(limit).all()

        return [{
            'influencer_id': influencer.id,
            'full_name': influencer.full_name,
            'conversions': int(conversions or 0),
            'commission_points': int(points or 0),
        } for influencer, conversions, points in rows]
