"""
Redis Connection

One client per process, shared by the auction repository and the user
store. Only created when ``STORAGE_BACKEND`` is "redis".
"""
from typing import Optional

import redis

from auction_engine.core.config import Settings, get_settings
from auction_engine.core.logger import get_logger

logger = get_logger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis_client(settings: Optional[Settings] = None) -> redis.Redis:
    """Get Redis client (singleton)"""
    global _redis_client

    if _redis_client is None:
        settings = settings or get_settings()
        _redis_client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            decode_responses=True,
        )
        logger.info("Redis client created", host=settings.REDIS_HOST, port=settings.REDIS_PORT)

    return _redis_client


def ping_redis(settings: Optional[Settings] = None) -> bool:
    """True when the storage Redis answers a PING"""
    try:
        return bool(get_redis_client(settings).ping())
    except redis.RedisError as e:
        logger.error("Redis ping failed", error=str(e))
        return False
