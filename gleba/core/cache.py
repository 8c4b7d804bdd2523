"""
@file cache.py
@brief Redis cache manager singleton
@details
Unified interface over an async Redis client for reference data that rarely
changes: the municipality list and municipality boundaries (as GeoJSON).
Every operation degrades to a cache miss when Redis is unreachable.

@author Gleba Project
@date 2026-10-18
"""

import json
import logging
import os
from functools import wraps
from typing import Any, Callable, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)

## @brief Arguments never included in cache keys (sessions, settings objects)
UNKEYED_ARGUMENTS = {"db", "settings"}


class RedisCache:
    """
    @brief Singleton wrapper for the async Redis client
    """
    _instance: Optional['RedisCache'] = None
    client: Optional[redis.Redis] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisCache, cls).__new__(cls)
        return cls._instance

    async def connect(self):
        """
        @brief Initialize the connection pool from REDIS_URL
        @details A failed ping leaves the client unset (cache disabled).
        """
        redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        try:
            self.client = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
            await self.client.ping()
            logger.info(f"Connected to Redis at {redis_url}")
        except (redis.RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self.client = None

    async def close(self):
        if self.client:
            await self.client.close()
            logger.info("Redis connection closed")

    async def get(self, key: str) -> Optional[Any]:
        """
        @brief Retrieve a JSON value; None on miss or error
        """
        if not self.client:
            return None
        try:
            value = await self.client.get(key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600):
        """
        @brief Store a JSON-serializable value with a TTL in seconds
        """
        if not self.client:
            return
        try:
            await self.client.setex(key, ttl, json.dumps(value))
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.warning(f"Redis set error for {key}: {e}")

    async def delete(self, key: str):
        if not self.client:
            return
        try:
            await self.client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"Redis delete error for {key}: {e}")


cache = RedisCache()


def build_cache_key(prefix: str, name: str, args: tuple, kwargs: dict) -> str:
    arg_str = ":".join(str(a) for a in args)
    kwarg_str = ":".join(f"{k}={v}" for k, v in sorted(kwargs.items()) if k not in UNKEYED_ARGUMENTS)
    return f"{prefix}:{name}:{arg_str}:{kwarg_str}"


def cache_response(ttl: int = 3600, key_prefix: str = ""):
    """
    @brief Decorator caching the JSON result of an async function
    @details
    The key is built from the positional and keyword arguments, leaving out
    database sessions. The decorated function must return JSON-serializable
    data.
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            cache_key = build_cache_key(key_prefix, func.__name__, args, kwargs)

            cached_val = await cache.get(cache_key)
            if cached_val is not None:
                logger.debug(f"Cache hit for {cache_key}")
                return cached_val

            result = await func(*args, **kwargs)
            await cache.set(cache_key, result, ttl)
            return result
        return wrapper
    return decorator
