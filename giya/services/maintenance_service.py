"""
Housekeeping jobs shared by the scheduler and the `flask maintenance` CLI.
"""
import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import func

from ..extensions import db
from ..models import Deal, PunchCard, PunchCardCustomer, PunchCardPunch

logger = logging.getLogger(__name__)


class MaintenanceService:

    @staticmethod
    def expire_offers(now: datetime = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Deactivate deals and punch cards whose validity window has ended.

        Returns:
            Dict with expired deal and punch card counts
        """
        now = now or datetime.utcnow()
        deals = Deal.query.filter(
            Deal.is_active.is_(True),
            Deal.validity_end.isnot(None),
            Deal.validity_end < now,
        )
        cards = PunchCard.query.filter(
            PunchCard.is_active.is_(True),
            PunchCard.valid_until.isnot(None),
            PunchCard.valid_until < now,
        )

        if dry_run:
            return {'deals': deals.count(), 'punch_cards': cards.count(), 'dry_run': True}

        expired_deals = deals.update({Deal.is_active: False}, synchronize_session=False)
        expired_cards = cards.update({PunchCard.is_active: False}, synchronize_session=False)
        db.session.commit()

        logger.info(f'Expired {expired_deals} deals and {expired_cards} punch cards')
        return {'deals': expired_deals, 'punch_cards': expired_cards, 'dry_run': False}

    @staticmethod
    def recount_punches() -> Dict[str, Any]:
        """
        Rebuild punches_count from punch rows, capped at punches_required,
        and recompute completion.
        """
        counts = dict(
            db.session.query(PunchCardPunch.punch_card_customer_id, func.count(PunchCardPunch.id))
            .group_by(PunchCardPunch.punch_card_customer_id).all()
        )

        checked = 0
        repaired = 0
        now = datetime.utcnow()
        for participation in PunchCardCustomer.query.all():
            checked += 1
            required = participation.punch_card.punches_required
            expected = min(int(counts.get(participation.id, 0)), required)
            completed = expected >= required
            if participation.punches_count == expected and participation.is_completed == completed:
                continue

            participation.punches_count = expected
            if completed and not participation.is_completed:
                participation.completed_at = now
            elif not completed:
                participation.completed_at = None
            participation.is_completed = completed
            repaired += 1

        db.session.commit()
        if repaired:
            logger.warning(f'Repaired punch counts on {repaired} of {checked} participations')
        return {'checked': checked, 'repaired': repaired}
