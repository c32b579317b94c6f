"""De-duplication of paid invocations retried with the same payment proof."""
from __future__ import annotations

import hashlib
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Optional

from .cache import CacheBackend, CacheUnavailableError
from .exceptions import InvocationInProgressError

logger = logging.getLogger(__name__)


def _proof_digest(proof: str | Mapping[str, Any]) -> str:
    if isinstance(proof, Mapping):
        raw = json.dumps(proof, sort_keys=True, separators=(",", ":"), default=str)
    else:
        raw = proof.strip()
    return hashlib.sha256(raw.encode()).hexdigest()


def invocation_key(agent_id: str, skill: str, proof: str | Mapping[str, Any]) -> str:
    material = f"{agent_id}|{skill}|{_proof_digest(proof)}"
    return hashlib.sha256(material.encode()).hexdigest()


def _cache_key(key: str, suffix: str) -> str:
    return f"clawdnet:idem:invoke:{key}:{suffix}"


class InvocationIdempotencyGuard:
    """Stores the first successful response per (agent, skill, proof).

    A replay returns the stored response without re-verifying the payment
    or writing new records. A duplicate that arrives while the first call is
    still running is rejected with InvocationInProgressError.
    """

    def __init__(
        self,
        cache: CacheBackend,
        ttl_seconds: int = 24 * 60 * 60,
        lock_ttl_seconds: int = 60,
    ) -> None:
        self._cache = cache
        self._ttl = ttl_seconds
        self._lock_ttl = lock_ttl_seconds

    async def lookup(self, key: str) -> Optional[dict[str, Any]]:
        raw = await self._cache.get(_cache_key(key, "record"))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            # Corrupted entry; treat as absent.
            logger.warning("Discarding unreadable idempotency record %s", key)
            return None

    async def store(self, key: str, response: dict[str, Any]) -> None:
        await self._cache.set(_cache_key(key, "record"), json.dumps(response, default=str), ttl=self._ttl)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = _cache_key(key, "lock")
        try:
            owner = await self._cache.acquire_lock(lock, ttl_seconds=self._lock_ttl)
        except CacheUnavailableError:
            # No de-duplication while the cache is down.
            logger.warning("Idempotency lock unavailable for %s; proceeding unguarded", key)
            yield
            return
        if not owner:
            raise InvocationInProgressError()
        try:
            yield
        finally:
            await self._cache.release_lock(lock, owner)
