"""Caching layer with Redis support and in-memory fallback.

Backs the directory query cache and invocation de-duplication.
"""
from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class CacheUnavailableError(Exception):
    """The cache backend could not be reached."""


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get a value from cache."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Set a value in cache with optional TTL in seconds."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key from cache."""

    @abstractmethod
    async def acquire_lock(self, resource: str, ttl_seconds: int = 30) -> Optional[str]:
        """Take a short-lived lock; returns an owner token or None if held.

        Raises:
            CacheUnavailableError: if the backend cannot answer.
        """

    @abstractmethod
    async def release_lock(self, resource: str, owner: str) -> bool:
        """Release a lock previously returned by acquire_lock."""

    async def close(self) -> None:
        return None


class InMemoryCache(CacheBackend):
    """In-memory cache for development and single-process deployments."""

    def __init__(self, clock=time.monotonic):
        self._store: Dict[str, tuple[str, Optional[float]]] = {}  # key -> (value, expires_at)
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        if key not in self._store:
            return None
        value, expires_at = self._store[key]
        if expires_at and self._clock() > expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        self._store[key] = (value, expires_at)
        return True

    async def delete(self, key: str) -> bool:
        if key in self._store:
            del self._store[key]
            return True
        return False

    async def acquire_lock(self, resource: str, ttl_seconds: int = 30) -> Optional[str]:
        lock_key = f"lock:{resource}"
        if await self.get(lock_key) is not None:
            return None
        owner = uuid.uuid4().hex
        await self.set(lock_key, owner, ttl_seconds)
        return owner

    async def release_lock(self, resource: str, owner: str) -> bool:
        lock_key = f"lock:{resource}"
        if await self.get(lock_key) == owner:
            return await self.delete(lock_key)
        return False


class RedisCache(CacheBackend):
    """Redis cache backend."""

    def __init__(self, url: str):
        self._url = url
        self._client = None

    async def _get_client(self):
        """Lazy initialization of Redis client."""
        if self._client is None:
            import redis.asyncio as redis
            self._client = redis.from_url(self._url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[str]:
        try:
            client = await self._get_client()
            return await client.get(key)
        except Exception as e:
            logger.error(f"Redis get error: {e}")
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        try:
            client = await self._get_client()
            if ttl:
                await client.setex(key, ttl, value)
            else:
                await client.set(key, value)
            return True
        except Exception as e:
            logger.error(f"Redis set error: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            client = await self._get_client()
            return await client.delete(key) > 0
        except Exception as e:
            logger.error(f"Redis delete error: {e}")
            return False

    async def acquire_lock(self, resource: str, ttl_seconds: int = 30) -> Optional[str]:
        owner = uuid.uuid4().hex
        try:
            client = await self._get_client()
            acquired = await client.set(f"lock:{resource}", owner, nx=True, ex=ttl_seconds)
        except Exception as e:
            logger.error(f"Redis lock error: {e}")
            raise CacheUnavailableError(str(e)) from e
        return owner if acquired else None

    async def release_lock(self, resource: str, owner: str) -> bool:
        lock_key = f"lock:{resource}"
        try:
            client = await self._get_client()
            if await client.get(lock_key) == owner:
                return await client.delete(lock_key) > 0
        except Exception as e:
            logger.error(f"Redis unlock error: {e}")
        return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


def create_cache(redis_url: Optional[str] = None) -> CacheBackend:
    """Pick a cache backend: Redis when a URL is configured, else in-memory."""
    if redis_url:
        logger.info("Using Redis cache backend")
        return RedisCache(redis_url)
    logger.info("Using in-memory cache (no Redis URL provided)")
    return InMemoryCache()
