"""
Hybrid in-memory + Redis rate limiting utilities
Counts live in process memory and are synced to Redis periodically, so
limits survive restarts without a Redis round-trip on every request.
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import Depends, HTTPException, Request, status

from .auth import get_current_user
from .models import User

logger = logging.getLogger(__name__)

# Configuration
MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds


def get_redis_client() -> redis.Redis:
    """
    Create a Redis client from REDIS_URL, or from the individual REDIS_* settings
    """
    logger.info("🔄 Initializing Redis connection for rate limiting...")
    redis_url = os.getenv("REDIS_URL")

    if redis_url:
        # Mask password in URL for logging
        if "@" in redis_url:
            url_parts = redis_url.split("@")
            protocol = url_parts[0].split(":")[0]
            masked_url = f"{protocol}:****@{url_parts[1]}"
        else:
            masked_url = "****"
        logger.info(f"📡 Using Redis URL connection: {masked_url}")

        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
            client.ping()
            logger.info("✅ Redis connected successfully via URL")
            return client
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
            raise

    redis_host = os.getenv("REDIS_HOST", "localhost")
    redis_port = int(os.getenv("REDIS_PORT", "6379"))
    redis_password = os.getenv("REDIS_PASSWORD", None)
    redis_db = int(os.getenv("REDIS_DB", "0"))
    redis_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"

    logger.info(f"📡 Using Redis at {redis_host}:{redis_port} (db {redis_db}, ssl={redis_ssl})")

    try:
        client = redis.Redis(
            host=redis_host,
            port=redis_port,
            password=redis_password,
            db=redis_db,
            ssl=redis_ssl,
            decode_responses=True,
            socket_connect_timeout=15,
            socket_timeout=30,
            retry_on_timeout=True,
            health_check_interval=30,
            max_connections=20,
        )
        client.ping()
        logger.info(f"✅ Redis connected successfully at {redis_host}:{redis_port}")
        return client
    except Exception as e:
        logger.error(f"❌ Failed to connect to Redis: {str(e)}")
        raise


class RateLimiter:
    """
    Per-process limiter state.

    With use_redis=False the limiter runs from memory alone, which is what a
    single-process deployment or a test needs.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, use_redis: bool = True):
        self._redis = redis_client
        self.use_redis = use_redis
        # Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
        self.memory_cache: dict[str, dict] = {}
        self.cache_lock = Lock()
        self.last_cleanup_time = 0

    @property
    def redis(self) -> Optional[redis.Redis]:
        if self.use_redis and self._redis is None:
            self._redis = get_redis_client()
        return self._redis

    def cleanup_expired_cache(self) -> None:
        """Remove expired entries from memory cache"""
        current_time = int(time.time())
        if current_time - self.last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
            return

        with self.cache_lock:
            expired_keys = [
                k for k, v in self.memory_cache.items() if current_time >= v.get("reset_time", 0)
            ]
            for k in expired_keys:
                del self.memory_cache[k]
            if expired_keys:
                logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

        self.last_cleanup_time = current_time

    def check(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int, int]:
        """Check and count one request against the limit

        Returns:
            Tuple of (is_allowed, current_count, ttl_seconds)
        """
        client = self.redis
        current_time = int(time.time())
        self.cleanup_expired_cache()

        with self.cache_lock:
            if key not in self.memory_cache:
                entry = {
                    "count": 0,
                    "reset_time": current_time + window_seconds,
                    "last_redis_sync": current_time,
                }
                if client is not None:
                    # Initialize from Redis if a window is already open there
                    try:
                        redis_count = client.get(key)
                        redis_ttl = client.ttl(key)
                        if redis_count and redis_ttl > 0:
                            entry["count"] = int(redis_count)
                            entry["reset_time"] = current_time + redis_ttl
                    except Exception as e:
                        logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")
                self.memory_cache[key] = entry

            cache_entry = self.memory_cache[key]

            if current_time >= cache_entry["reset_time"]:
                cache_entry["count"] = 0
                cache_entry["reset_time"] = current_time + window_seconds
                cache_entry["last_redis_sync"] = 0

            is_allowed = cache_entry["count"] < limit
            if is_allowed:
                cache_entry["count"] += 1

            # Sync to Redis periodically (not on every request!)
            if client is not None and current_time - cache_entry.get("last_redis_sync", 0) >= MEMORY_CACHE_SYNC_INTERVAL:
                try:
                    client.set(key, cache_entry["count"], ex=window_seconds)
                    cache_entry["last_redis_sync"] = current_time
                    logger.debug(f"📡 Synced {key} to Redis: {cache_entry['count']}/{limit}")
                except Exception as e:
                    logger.warning(f"⚠️ Failed to sync to Redis: {e}")

            ttl = cache_entry["reset_time"] - current_time
            return is_allowed, cache_entry["count"], max(0, ttl)


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def create_user_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a per-user rate limiter dependency

    Example usage:
        chat_send_limit = create_user_rate_limiter(limit=30, window_seconds=60, key_prefix="chat_send")

        @router.post("/rooms/{room_id}/messages")
        async def send(..., _: None = Depends(chat_send_limit)):
            ...
    """

    async def rate_limiter(
        request: Request,
        current_user: User = Depends(get_current_user),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ):
        key = f"{key_prefix}:user:{current_user.id}"
        try:
            is_allowed, current_count, ttl = limiter.check(key, limit, window_seconds)
        except Exception as e:
            logger.error(f"❌ Rate limiting error: {str(e)}")
            logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Rate limiting service temporarily unavailable",
            ) from e

        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
            raise HTTPException(
                status_code=429,
                detail={
                    "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                    "retry_after": ttl,
                    "limit": limit,
                    "window_seconds": window_seconds,
                },
                headers={"Retry-After": str(ttl)},
            )

        request.state.rate_limit_remaining = limit - current_count
        request.state.rate_limit_limit = limit

    return rate_limiter
