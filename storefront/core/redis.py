"""
Redis client for the token blacklist.

Logged-out tokens are stored until their natural expiry. When Redis is not
reachable a bounded in-process set is used instead, which only protects the
current worker and is cleared once it grows past TOKEN_BLACKLIST_MAX_SIZE.
"""
from typing import Optional, Set
import hashlib
import logging
from redis.asyncio import Redis, ConnectionPool
from storefront.config import settings

logger = logging.getLogger(__name__)


def _token_key(token: str) -> str:
    return "blacklist:token:" + hashlib.sha256(token.encode()).hexdigest()


class RedisClient:
    """Async Redis client wrapper with blacklist helpers"""

    def __init__(self):
        self._redis: Optional[Redis] = None
        self._pool: Optional[ConnectionPool] = None
        self._local_blacklist: Set[str] = set()

    async def connect(self):
        """Initialize Redis connection pool"""
        try:
            self._pool = ConnectionPool.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                max_connections=10
            )
            self._redis = Redis(connection_pool=self._pool)

            # Test connection
            await self._redis.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            logger.warning("Running without Redis - token blacklist is kept in process memory")
            self._redis = None

    async def disconnect(self):
        """Close Redis connection"""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis disconnected")

    @property
    def is_connected(self) -> bool:
        """Check if Redis is available"""
        return self._redis is not None

    def _remember_locally(self, key: str):
        if len(self._local_blacklist) >= settings.TOKEN_BLACKLIST_MAX_SIZE:
            logger.warning("In-memory token blacklist full, clearing it")
            self._local_blacklist.clear()
        self._local_blacklist.add(key)

    async def blacklist_token(self, token: str, expiry_seconds: int) -> bool:
        """Add token to blacklist. Returns True when stored in Redis."""
        key = _token_key(token)
        if not self._redis:
            self._remember_locally(key)
            return False
        try:
            await self._redis.setex(key, expiry_seconds, "1")
            return True
        except Exception as e:
            logger.error(f"Failed to blacklist token: {e}")
            self._remember_locally(key)
            return False

    async def is_token_blacklisted(self, token: str) -> bool:
        """Check if token is blacklisted"""
        key = _token_key(token)
        if key in self._local_blacklist:
            return True
        if not self._redis:
            return False
        try:
            result = await self._redis.exists(key)
            return bool(result)
        except Exception as e:
            logger.error(f"Failed to check token blacklist: {e}")
            return False

    def clear_local_blacklist(self):
        self._local_blacklist.clear()


# Singleton instance
redis_client = RedisClient()


# Convenience functions
async def init_redis():
    """Initialize Redis connection on startup"""
    await redis_client.connect()


async def close_redis():
    """Close Redis connection on shutdown"""
    await redis_client.disconnect()
