"""
Rate limiting with Flask-Limiter.

Named limits:
    ratelimit_auth     5 per 15 minutes  (login, signup)
    ratelimit_api      100 per minute    (authenticated API writes)
    ratelimit_general  20 per minute     (public endpoints)

Storage follows RATELIMIT_STORAGE_URI (Redis in production, memory locally).
Disabled with RATELIMIT_ENABLED=False (testing).
"""
import logging
from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)

AUTH_LIMIT = '5 per 15 minutes'
API_LIMIT = '100 per minute'
GENERAL_LIMIT = '20 per minute'

limiter = Limiter(key_func=get_remote_address)

ratelimit_auth = limiter.shared_limit(AUTH_LIMIT, scope='auth')
ratelimit_api = limiter.shared_limit(API_LIMIT, scope='api')
ratelimit_general = limiter.shared_limit(GENERAL_LIMIT, scope='general')


def init_rate_limiter(app: Flask) -> None:
    limiter.init_app(app)
    if app.config.get('RATELIMIT_ENABLED', True):
        logger.info('Rate limiting enabled (storage: %s)',
                    app.config.get('RATELIMIT_STORAGE_URI', 'memory://').split('@')[-1])
    else:
        logger.info('Rate limiting disabled')
