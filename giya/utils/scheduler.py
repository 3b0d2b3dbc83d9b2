"""
Background scheduler for automated tasks.

Handles:
- Offer expiration: deactivates expired deals and punch cards (daily at 00:05 UTC)
"""
import os
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true.
    Only the first gunicorn process should run the scheduler.
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        return

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # Prevent one scheduler per gunicorn worker
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 3600,
        }
    )

    _scheduler.add_job(
        run_offer_expiration,
        trigger=CronTrigger(hour=0, minute=5),
        id='offer_expiration',
        name='Deactivate expired deals and punch cards',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'
    logger.info('[Scheduler] Started: offer expiration daily at 00:05 UTC')

    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_offer_expiration():
    """Deactivate expired deals and punch cards."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..extensions import db
        from ..services.maintenance_service import MaintenanceService

        try:
            result = MaintenanceService.expire_offers()
            logger.info(
                f'[Scheduler] Offer expiration complete: '
                f'{result["deals"]} deals, {result["punch_cards"]} punch cards'
            )
        except Exception:
            db.session.rollback()
            logger.exception('[Scheduler] Offer expiration failed')
