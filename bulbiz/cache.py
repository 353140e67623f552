"""
Redis caching for dashboard counters and geocoding lookups
Fails open: without Redis every read is a miss and the database is queried
"""

import json
import logging
import os
from typing import Any, Optional

import redis

from .loaders import LazyResource

logger = logging.getLogger(__name__)


def _create_redis_client() -> Optional[redis.Redis]:
    redis_url = os.getenv("REDIS_URL")
    redis_host = os.getenv("REDIS_HOST")

    if redis_url:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
    elif redis_host:
        client = redis.Redis(
            host=redis_host,
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWORD"),
            ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    else:
        return None

    # Test connection
    client.ping()
    return client


redis_loader: LazyResource[redis.Redis] = LazyResource("Redis cache", _create_redis_client)


def get_redis_client() -> Optional[redis.Redis]:
    return redis_loader.get()


class Cache:
    """Redis cache wrapper with JSON serialization"""

    def __init__(self, loader: LazyResource = redis_loader):
        self.loader = loader

    def get(self, key: str) -> Optional[Any]:
        client = self.loader.get()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        client = self.loader.get()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = self.loader.get()
        if not client:
            return False

        try:
            client.delete(key)
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()


def dashboard_key(user_id: str) -> str:
    return f"dashboard:{user_id}:counters"


def invalidate_dashboard(user_id: str) -> None:
    """Drop the cached dashboard counters (call after commit)"""
    cache.delete(dashboard_key(user_id))
