"""Tests for agent webhook signing and delivery."""
import json
import time

import httpx
import pytest

from clawdnet_core.webhooks import (
    EVENT_INVOCATION,
    EVENT_REVIEW,
    AgentWebhook,
    AgentWebhookDispatcher,
    InMemoryWebhookRepository,
    sign_payload,
    verify_webhook_signature,
)

HOOK_URL = "https://hooks.example.com/clawdnet"


class TestSignatures:
    def test_sign_and_verify(self):
        ts = int(time.time())
        signature = sign_payload('{"a":1}', "whsec_test", ts)

        assert signature.startswith(f"t={ts},v1=")
        assert verify_webhook_signature('{"a":1}', signature, "whsec_test") is True

    def test_wrong_secret(self):
        signature = sign_payload("{}", "whsec_a", int(time.time()))
        assert verify_webhook_signature("{}", signature, "whsec_b") is False

    def test_tampered_payload(self):
        signature = sign_payload('{"a":1}', "s", int(time.time()))
        assert verify_webhook_signature('{"a":2}', signature, "s") is False

    def test_stale_timestamp(self):
        signature = sign_payload("{}", "s", 1_000)
        assert verify_webhook_signature("{}", signature, "s", now=1_000 + 301) is False
        assert verify_webhook_signature("{}", signature, "s", now=1_000 + 300) is True

    @pytest.mark.parametrize("signature", ["", "t=abc,v1=00", "v1=00", "t=1"])
    def test_malformed_header(self, signature):
        assert verify_webhook_signature("{}", signature, "s") is False


@pytest.fixture
def repository():
    return InMemoryWebhookRepository()


@pytest.fixture
async def dispatcher(repository):
    d = AgentWebhookDispatcher(repository)
    yield d
    await d.close()


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_delivers_signed_payload(self, repository, dispatcher, httpx_mock):
        hook = await repository.create(AgentWebhook(agent_id="1", url=HOOK_URL, secret="whsec_x"))
        httpx_mock.add_response(url=HOOK_URL, method="POST", status_code=200)

        delivered = await dispatcher.trigger("1", "sol", EVENT_INVOCATION, {"transactionId": "txn_1"})

        assert delivered == 1
        request = httpx_mock.get_request()
        body = request.content.decode()
        payload = json.loads(body)
        assert payload["event"] == "invocation"
        assert payload["agentId"] == "1"
        assert payload["agentHandle"] == "sol"
        assert payload["data"] == {"transactionId": "txn_1"}
        assert request.headers["X-Webhook-Id"] == hook.id
        assert verify_webhook_signature(body, request.headers["X-Webhook-Signature"], "whsec_x")
        assert hook.last_triggered_at is not None

    @pytest.mark.asyncio
    async def test_skips_unsubscribed_and_other_agents(self, repository, dispatcher, httpx_mock):
        await repository.create(AgentWebhook(agent_id="1", url=HOOK_URL, events=[EVENT_REVIEW]))
        await repository.create(AgentWebhook(agent_id="2", url=HOOK_URL))

        assert await dispatcher.trigger("1", "sol", EVENT_INVOCATION, {}) == 0
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_failure_count_and_deactivation(self, repository, dispatcher, httpx_mock):
        hook = await repository.create(AgentWebhook(agent_id="1", url=HOOK_URL))
        hook.failure_count = AgentWebhookDispatcher.MAX_CONSECUTIVE_FAILURES - 2
        httpx_mock.add_response(url=HOOK_URL, status_code=500)
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=HOOK_URL)

        assert await dispatcher.trigger("1", "sol", EVENT_INVOCATION, {}) == 0
        assert hook.is_active is True
        assert await dispatcher.trigger("1", "sol", EVENT_INVOCATION, {}) == 0

        assert hook.failure_count == AgentWebhookDispatcher.MAX_CONSECUTIVE_FAILURES
        assert hook.is_active is False

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, repository, dispatcher, httpx_mock):
        hook = await repository.create(AgentWebhook(agent_id="1", url=HOOK_URL))
        hook.failure_count = 3
        httpx_mock.add_response(url=HOOK_URL)

        await dispatcher.trigger("1", "sol", EVENT_INVOCATION, {})

        assert hook.failure_count == 0
