"""Relay invocations to an agent's own HTTP endpoint."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_FORWARD_TIMEOUT_MS = 30_000

FORWARDED_HEADER = "X-ClawdNet-Forwarded"
REQUEST_ID_HEADER = "X-ClawdNet-Request-Id"
CALLER_HANDLE_HEADER = "X-Caller-Handle"


class ForwardFailureReason(str, Enum):
    AGENT_ERROR = "agent_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"


@dataclass(slots=True)
class ForwardResult:
    """Either ``body`` (success) or ``failure`` (with optional agent status) is set."""
    ok: bool
    body: Any = None
    failure: Optional[ForwardFailureReason] = None
    status: Optional[int] = None
    status_text: Optional[str] = None
    error: Optional[str] = None
    elapsed_ms: int = 0

    def describe_failure(self) -> str:
        if self.ok:
            return ""
        if self.failure == ForwardFailureReason.AGENT_ERROR:
            return f"agent_error: {self.status} {self.status_text or ''}".strip()
        if self.error:
            return f"{self.failure.value}: {self.error}"
        return self.failure.value


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _parse_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            logger.debug("Agent declared JSON but sent unparseable body")
    return {"text": response.text}


class AgentForwarder:
    """POSTs invocation payloads to real agent endpoints with a bounded timeout."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._http = http_client
        self._owns_client = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def forward(
        self,
        endpoint: str,
        payload: dict[str, Any],
        timeout_ms: int = DEFAULT_FORWARD_TIMEOUT_MS,
        request_id: Optional[str] = None,
        caller_handle: Optional[str] = None,
    ) -> ForwardResult:
        headers = {
            "Content-Type": "application/json",
            FORWARDED_HEADER: "true",
        }
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id
        if caller_handle:
            headers[CALLER_HANDLE_HEADER] = caller_handle

        started = time.perf_counter()
        try:
            response = await self._client().post(
                endpoint,
                json=payload,
                headers=headers,
                timeout=timeout_ms / 1000,
            )
        except httpx.TimeoutException as exc:
            logger.warning("Forward to %s timed out after %sms", endpoint, timeout_ms)
            return ForwardResult(
                ok=False,
                failure=ForwardFailureReason.TIMEOUT,
                error=str(exc) or None,
                elapsed_ms=_elapsed_ms(started),
            )
        except httpx.HTTPError as exc:
            logger.warning("Forward to %s failed: %s", endpoint, exc)
            return ForwardResult(
                ok=False,
                failure=ForwardFailureReason.NETWORK_ERROR,
                error=str(exc),
                elapsed_ms=_elapsed_ms(started),
            )

        elapsed_ms = _elapsed_ms(started)
        if not response.is_success:
            logger.warning("Agent at %s answered %s", endpoint, response.status_code)
            return ForwardResult(
                ok=False,
                failure=ForwardFailureReason.AGENT_ERROR,
                status=response.status_code,
                status_text=response.reason_phrase,
                elapsed_ms=elapsed_ms,
            )

        return ForwardResult(ok=True, body=_parse_body(response), status=response.status_code, elapsed_ms=elapsed_ms)

    async def close(self) -> None:
        if self._http is not None and self._owns_client:
            await self._http.aclose()
            self._http = None

