"""
Cache utilities for Loyalty Hub.

Provides Redis-backed caching with graceful fallback to simple in-memory caching.
Used for read-mostly catalog data (programs and their rewards). Point balances
are never cached: every mutation re-reads the ledger.

Environment Variables:
    REDIS_URL: Redis connection URL (e.g., redis://localhost:6379/0)
              Falls back to simple cache if not set or unavailable.
"""
import os
import logging
from flask_caching import Cache

logger = logging.getLogger(__name__)

# Global cache instance - initialized in init_cache()
cache = Cache()

CATALOG_TIMEOUT = 300  # 5 minutes


def init_cache(app):
    """
    Initialize Flask-Caching with Redis or fallback to simple cache.

    Returns:
        bool: True if Redis connected, False if using fallback
    """
    redis_url = app.config.get('REDIS_URL') or os.getenv('REDIS_URL')

    if redis_url and not app.config.get('TESTING'):
        try:
            import redis
            r = redis.from_url(redis_url, socket_connect_timeout=2)
            r.ping()

            app.config['CACHE_TYPE'] = 'RedisCache'
            app.config['CACHE_REDIS_URL'] = redis_url
            app.config['CACHE_DEFAULT_TIMEOUT'] = CATALOG_TIMEOUT
            app.config['CACHE_KEY_PREFIX'] = 'loyaltyhub:'

            cache.init_app(app)
            logger.info('[LoyaltyHub] Redis cache connected: %s', redis_url.split('@')[-1])
            return True

        except Exception as e:
            logger.warning('[LoyaltyHub] Redis unavailable (%s), using simple cache', str(e))

    app.config['CACHE_TYPE'] = 'SimpleCache'
    app.config['CACHE_DEFAULT_TIMEOUT'] = CATALOG_TIMEOUT

    cache.init_app(app)
    logger.info('[LoyaltyHub] Using simple in-memory cache (no Redis)')
    return False


def cache_key(*args, **kwargs):
    """
    Generate a cache key from arguments.

        key = cache_key('program', program_id=12)
    """
    parts = list(args)
    for k, v in sorted(kwargs.items()):
        parts.append(f'{k}={v}')
    return ':'.join(str(p) for p in parts)


def program_cache_key(program_id: int) -> str:
    return cache_key('program', program_id=program_id)


def invalidate_program(program_id: int) -> None:
    """Drop the cached catalog entry for a program."""
    try:
        cache.delete(program_cache_key(program_id))
    except Exception as e:
        logger.warning('Cache invalidation failed for program %s: %s', program_id, e)
