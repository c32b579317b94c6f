"""Dependency container for the ClawdNet API.

Builds every collaborator of the invocation core from settings, lazily and
once. Tests and alternative deployments pass their own collaborators in;
anything not passed is built from the defaults below.
"""
from __future__ import annotations

import logging
from functools import cached_property
from typing import Optional

from clawdnet_core.agents import AgentDirectory, CachedAgentDirectory, InMemoryAgentDirectory
from clawdnet_core.cache import CacheBackend, create_cache
from clawdnet_core.config import ClawdnetSettings
from clawdnet_core.effects import NonCriticalEffects
from clawdnet_core.forwarder import AgentForwarder
from clawdnet_core.idempotency import InvocationIdempotencyGuard
from clawdnet_core.invocation import InvocationOrchestrator, PaymentVerifier
from clawdnet_core.transactions import InMemoryTransactionRecorder, TransactionRecorder
from clawdnet_core.webhooks import AgentWebhookDispatcher, InMemoryWebhookRepository
from clawdnet_protocol.facilitator import FacilitatorClient

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Central dependency container.

    Usage:
        container = ServiceContainer(settings)
        orchestrator = container.orchestrator
    """

    def __init__(
        self,
        settings: ClawdnetSettings,
        *,
        directory: Optional[AgentDirectory] = None,
        recorder: Optional[TransactionRecorder] = None,
        facilitator: Optional[PaymentVerifier] = None,
        forwarder: Optional[AgentForwarder] = None,
        cache: Optional[CacheBackend] = None,
        webhook_repository: Optional[InMemoryWebhookRepository] = None,
    ) -> None:
        self.settings = settings
        self._directory = directory
        self._recorder = recorder
        self._facilitator = facilitator
        self._forwarder = forwarder
        self._cache = cache
        self._webhook_repository = webhook_repository

    @cached_property
    def cache(self) -> CacheBackend:
        return self._cache or create_cache(self.settings.redis_url or None)

    @cached_property
    def directory(self) -> AgentDirectory:
        if self._directory is not None:
            return self._directory
        logger.info("Using seeded in-memory agent directory")
        return CachedAgentDirectory(
            InMemoryAgentDirectory(seed=True),
            cache=self.cache,
            ttl_seconds=self.settings.agent_cache_ttl_seconds,
        )

    @cached_property
    def recorder(self) -> TransactionRecorder:
        return self._recorder or InMemoryTransactionRecorder()

    @cached_property
    def facilitator(self) -> PaymentVerifier:
        return self._facilitator or FacilitatorClient(
            base_url=self.settings.x402_facilitator_url,
            timeout_seconds=self.settings.facilitator_timeout_seconds,
        )

    @cached_property
    def forwarder(self) -> AgentForwarder:
        return self._forwarder or AgentForwarder()

    @cached_property
    def effects(self) -> NonCriticalEffects:
        return NonCriticalEffects()

    @cached_property
    def webhook_repository(self) -> InMemoryWebhookRepository:
        return self._webhook_repository or InMemoryWebhookRepository()

    @cached_property
    def webhooks(self) -> AgentWebhookDispatcher:
        return AgentWebhookDispatcher(self.webhook_repository)

    @cached_property
    def idempotency(self) -> Optional[InvocationIdempotencyGuard]:
        if not self.settings.invoke_idempotency_enabled:
            return None
        return InvocationIdempotencyGuard(
            self.cache,
            ttl_seconds=self.settings.invoke_idempotency_ttl_seconds,
        )

    @cached_property
    def orchestrator(self) -> InvocationOrchestrator:
        return InvocationOrchestrator(
            directory=self.directory,
            recorder=self.recorder,
            facilitator=self.facilitator,
            forwarder=self.forwarder,
            settings=self.settings,
            effects=self.effects,
            webhooks=self.webhooks,
            idempotency=self.idempotency,
        )

    def component_status(self) -> dict[str, str]:
        return {
            "directory": type(self.directory).__name__,
            "recorder": type(self.recorder).__name__,
            "cache": type(self.cache).__name__,
            "facilitator": self.settings.x402_facilitator_url,
            "forward_failure_policy": self.settings.effective_forward_failure_policy.value,
        }

    async def close(self) -> None:
        """Drain background effects and release HTTP clients and cache connections."""
        await self.effects.drain(timeout=5)
        for name in ("facilitator", "forwarder", "webhooks"):
            component = self.__dict__.get(name)
            close = getattr(component, "close", None)
            if close is not None:
                await close()
        if "cache" in self.__dict__:
            await self.cache.close()
