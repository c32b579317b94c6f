"""Tests for settings resolution and the discovery document."""
import pytest

from clawdnet_core.agents import InMemoryAgentDirectory
from clawdnet_core.cache import CacheUnavailableError, RedisCache
from clawdnet_core.config import ClawdnetSettings, ForwardFailurePolicy
from clawdnet_core.discovery import build_registration_document
from clawdnet_core.idempotency import InvocationIdempotencyGuard, invocation_key


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("X402_FACILITATOR_URL", raising=False)
        settings = ClawdnetSettings(_env_file=None)

        assert settings.x402_facilitator_url == "https://x402.org/facilitator"
        assert settings.x402_network == "eip155:84532"
        assert settings.default_skill_price == "0.01"
        assert settings.forward_timeout_ms == 30_000
        assert settings.invoke_idempotency_enabled is False
        assert settings.effective_forward_failure_policy == ForwardFailurePolicy.FALLBACK
        assert settings.use_json_logs is False

    def test_facilitator_url_from_unprefixed_env(self, monkeypatch):
        monkeypatch.setenv("X402_FACILITATOR_URL", "https://facilitator.example.com/")

        settings = ClawdnetSettings(_env_file=None)

        assert settings.x402_facilitator_url == "https://facilitator.example.com"

    def test_prefixed_env_and_csv(self, monkeypatch):
        monkeypatch.setenv("CLAWDNET_ENVIRONMENT", "prod")
        monkeypatch.setenv("CLAWDNET_PLACEHOLDER_ENDPOINT_HOSTS", "clawdnet.xyz, localhost")

        settings = ClawdnetSettings(_env_file=None)

        assert settings.environment == "prod"
        assert settings.placeholder_endpoint_hosts == ["clawdnet.xyz", "localhost"]
        assert settings.effective_forward_failure_policy == ForwardFailurePolicy.ERROR
        assert settings.use_json_logs is True

    def test_allowed_origins_from_csv_env(self, monkeypatch):
        monkeypatch.setenv("CLAWDNET_ALLOWED_ORIGINS", "https://a.example,https://b.example")

        settings = ClawdnetSettings(_env_file=None)

        assert settings.allowed_origins == ["https://a.example", "https://b.example"]

    def test_list_values_pass_through(self):
        settings = ClawdnetSettings(allowed_origins=["https://c.example"], _env_file=None)

        assert settings.allowed_origins == ["https://c.example"]

    def test_explicit_policy_wins(self):
        settings = ClawdnetSettings(
            environment="prod", forward_failure_policy="fallback", _env_file=None,
        )
        assert settings.effective_forward_failure_policy == ForwardFailurePolicy.FALLBACK


class TestRegistrationDocument:
    @pytest.mark.asyncio
    async def test_shape(self):
        agents = await InMemoryAgentDirectory(seed=True).list_agents()

        doc = build_registration_document(agents, "clawdnet.xyz")

        assert doc["domain"] == "clawdnet.xyz"
        assert doc["protocol"] == "clawdnet-v1"
        assert doc["totalAgents"] == 5
        assert doc["onChainRegistry"] is None
        assert doc["registrations"][0] == {"agentId": 1, "agentRegistry": "clawdnet:directory:clawdnet.xyz"}
        assert doc["agents"][0] == {
            "agentId": 1,
            "agentRegistry": "clawdnet:directory:clawdnet.xyz",
            "handle": "sol",
            "name": "Sol",
            "registrationUrl": "https://clawdnet.xyz/api/agents/sol/registration",
        }

    def test_empty_directory(self):
        doc = build_registration_document([], "example.org")
        assert doc["registrations"] == []
        assert doc["totalAgents"] == 0


class TestInvocationKey:
    def test_stable_and_proof_sensitive(self):
        assert invocation_key("1", "s", "proof") == invocation_key("1", "s", "proof")
        assert invocation_key("1", "s", "proof") != invocation_key("1", "s", "other")
        assert invocation_key("1", "s", {"b": 1, "a": 2}) == invocation_key("1", "s", {"a": 2, "b": 1})


class UnreachableRedisCache(RedisCache):
    async def _get_client(self):
        raise ConnectionError("Error 111 connecting to 127.0.0.1:1")


class TestIdempotencyGuardOutage:
    @pytest.mark.asyncio
    async def test_lock_error_is_not_a_held_lock(self):
        with pytest.raises(CacheUnavailableError):
            await UnreachableRedisCache("redis://127.0.0.1:1/0").acquire_lock("resource")

    @pytest.mark.asyncio
    async def test_hold_proceeds_without_lock(self):
        guard = InvocationIdempotencyGuard(UnreachableRedisCache("redis://127.0.0.1:1/0"))
        entered = False

        async with guard.hold("key"):
            entered = True

        assert entered
        assert await guard.lookup("key") is None
