"""
Cache utilities for Giya.

Redis-backed caching with fallback to simple in-memory caching, through
Flask-Caching.

Usage:
    from giya.utils.cache import cache, cache_key

    key = cache_key('punch_card_analytics', business_id=12)
    data = cache.get(key)
    cache.set(key, data, timeout=300)

Environment Variables:
    REDIS_URL: Redis connection URL (e.g., redis://localhost:6379/0)
              Falls back to simple cache if not set or unavailable.
"""
import os
import logging

import redis
from flask_caching import Cache

logger = logging.getLogger(__name__)

cache = Cache()

DEFAULT_TIMEOUT = 300  # 5 minutes


def init_cache(app):
    """
    Initialize Flask-Caching with Redis or fallback to simple cache.

    Returns:
        bool: True if Redis connected, False if using fallback
    """
    redis_url = os.getenv('REDIS_URL')

    if redis_url and not app.config.get('TESTING'):
        try:
            r = redis.from_url(redis_url, socket_connect_timeout=2)
            r.ping()

            app.config['CACHE_TYPE'] = 'RedisCache'
            app.config['CACHE_REDIS_URL'] = redis_url
            app.config['CACHE_DEFAULT_TIMEOUT'] = DEFAULT_TIMEOUT
            app.config['CACHE_KEY_PREFIX'] = 'giya:'

            cache.init_app(app)
            logger.info('[Giya] Redis cache connected: %s', redis_url.split('@')[-1])
            return True

        except redis.RedisError as e:
            logger.warning('[Giya] Redis unavailable (%s), using simple cache', str(e))

    app.config['CACHE_TYPE'] = 'SimpleCache'
    app.config['CACHE_DEFAULT_TIMEOUT'] = DEFAULT_TIMEOUT

    cache.init_app(app)
    logger.info('[Giya] Using simple in-memory cache (no Redis)')
    return False


def cache_key(*args, **kwargs):
    """
    Generate a cache key from arguments.

        key = cache_key('curated_lists', active=True)
    """
    parts = list(args)
    for k, v in sorted(kwargs.items()):
        parts.append(f'{k}={v}')
    return ':'.join(str(p) for p in parts)


def punch_card_analytics_key(business_id: int) -> str:
    return cache_key('punch_card_analytics', business_id=business_id)


def points_analytics_key(business_id: int) -> str:
    return cache_key('points_analytics', business_id=business_id)


PUBLIC_CURATED_LISTS_KEY = cache_key('curated_lists', scope='public')


def invalidate_business_analytics(business_id: int) -> None:
    """Drop cached analytics for one business after a write."""
    cache.delete_many(
        punch_card_analytics_key(business_id),
        points_analytics_key(business_id),
    )


def invalidate_curated_lists() -> None:
    cache.delete(PUBLIC_CURATED_LISTS_KEY)
