"""Agent webhooks: owners subscribe URLs to events about their agents."""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import uuid4

import httpx

logger = logging.getLogger(__name__)

EVENT_INVOCATION = "invocation"
EVENT_PAYMENT = "payment"
EVENT_REVIEW = "review"

SIGNATURE_HEADER = "X-Webhook-Signature"
WEBHOOK_ID_HEADER = "X-Webhook-Id"


@dataclass
class AgentWebhook:
    agent_id: str
    url: str
    events: List[str] = field(default_factory=lambda: [EVENT_INVOCATION])
    secret: str = field(default_factory=lambda: f"whsec_{uuid4().hex}")
    id: str = field(default_factory=lambda: f"wh_{uuid4().hex[:16]}")
    is_active: bool = True
    failure_count: int = 0
    last_triggered_at: Optional[datetime] = None

    def subscribes_to(self, event: str) -> bool:
        return event in self.events


class InMemoryWebhookRepository:
    """In-memory webhook store (swap for PostgreSQL in production)."""

    def __init__(self) -> None:
        self._webhooks: dict[str, AgentWebhook] = {}

    async def create(self, webhook: AgentWebhook) -> AgentWebhook:
        self._webhooks[webhook.id] = webhook
        return webhook

    async def get(self, webhook_id: str) -> Optional[AgentWebhook]:
        return self._webhooks.get(webhook_id)

    async def list_active(self, agent_id: str, event: str) -> List[AgentWebhook]:
        return [
            w for w in self._webhooks.values()
            if w.agent_id == agent_id and w.is_active and w.subscribes_to(event)
        ]

    async def record_success(self, webhook_id: str) -> None:
        webhook = self._webhooks.get(webhook_id)
        if webhook:
            webhook.failure_count = 0
            webhook.last_triggered_at = datetime.now(timezone.utc)

    async def record_failure(self, webhook_id: str, max_failures: int) -> None:
        webhook = self._webhooks.get(webhook_id)
        if webhook:
            webhook.failure_count += 1
            webhook.is_active = webhook.failure_count < max_failures


def sign_payload(payload: str, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 over ``"<timestamp>.<payload>"``, formatted ``t=<ts>,v1=<hex>``."""
    sig = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={sig}"


def verify_webhook_signature(
    payload: str,
    signature: str,
    secret: str,
    tolerance: int = 300,
    now: Optional[int] = None,
) -> bool:
    parts = {}
    for part in signature.split(","):
        if "=" in part:
            k, v = part.split("=", 1)
            parts[k.strip()] = v.strip()

    ts_str = parts.get("t")
    sig_hex = parts.get("v1")
    if not ts_str or not sig_hex:
        return False
    try:
        ts = int(ts_str)
    except ValueError:
        return False

    current = now if now is not None else int(time.time())
    if abs(current - ts) > tolerance:
        return False

    expected = sign_payload(payload, secret, ts).split("v1=", 1)[1]
    return hmac.compare_digest(expected, sig_hex)


class AgentWebhookDispatcher:
    """Delivers agent events to subscribed webhooks, one attempt each."""

    DELIVERY_TIMEOUT = 10  # seconds
    MAX_CONSECUTIVE_FAILURES = 10

    def __init__(
        self,
        repository: InMemoryWebhookRepository,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._repo = repository
        self._http = http_client
        self._owns_client = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.DELIVERY_TIMEOUT)
        return self._http

    async def trigger(
        self,
        agent_id: str,
        agent_handle: str,
        event: str,
        data: dict[str, Any],
    ) -> int:
        """Deliver ``event`` to every active subscriber; returns successful deliveries."""
        webhooks = await self._repo.list_active(agent_id, event)
        if not webhooks:
            return 0

        payload = json.dumps({
            "event": event,
            "agentId": agent_id,
            "agentHandle": agent_handle,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }, default=str)

        delivered = 0
        for webhook in webhooks:
            if await self._send(webhook, payload):
                delivered += 1
        logger.debug("Delivered %s to %d/%d webhooks", event, delivered, len(webhooks))
        return delivered

    async def _send(self, webhook: AgentWebhook, payload: str) -> bool:
        timestamp = int(time.time())
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign_payload(payload, webhook.secret, timestamp),
            WEBHOOK_ID_HEADER: webhook.id,
        }
        try:
            response = await self._client().post(
                webhook.url,
                content=payload,
                headers=headers,
                timeout=self.DELIVERY_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.error(f"Webhook {webhook.id} failed: {e}")
            await self._repo.record_failure(webhook.id, self.MAX_CONSECUTIVE_FAILURES)
            return False

        if response.is_success:
            await self._repo.record_success(webhook.id)
            return True

        logger.warning(f"Webhook {webhook.id} returned {response.status_code}")
        await self._repo.record_failure(webhook.id, self.MAX_CONSECUTIVE_FAILURES)
        return False

    async def close(self) -> None:
        if self._http is not None and self._owns_client:
            await self._http.aclose()
            self._http = None
