"""Pytest configuration and fixtures for ClawdNet core tests."""
from __future__ import annotations

import random
from typing import Any, Mapping, Optional

import pytest

from clawdnet_core.agents import Agent, AgentSkill, InMemoryAgentDirectory
from clawdnet_core.config import ClawdnetSettings
from clawdnet_core.effects import NonCriticalEffects
from clawdnet_core.forwarder import ForwardResult
from clawdnet_core.invocation import InvocationOrchestrator
from clawdnet_core.transactions import InMemoryTransactionRecorder
from clawdnet_protocol.facilitator import VerificationResult
from clawdnet_protocol.x402 import PaymentRequirement

WALLET = "0x1111111111111111111111111111111111111111"
PAYER = "0x2222222222222222222222222222222222222222"


class StubFacilitator:
    """Records verify calls and answers with a fixed result."""

    def __init__(self, result: Optional[VerificationResult] = None):
        self.result = result or VerificationResult(
            valid=True, payer_address=PAYER, settlement_reference="stl_abc123",
        )
        self.calls: list[tuple[Any, PaymentRequirement]] = []

    async def verify(self, proof: str | Mapping[str, Any], requirement: PaymentRequirement) -> VerificationResult:
        self.calls.append((proof, requirement))
        return self.result


class StubForwarder:
    """Answers every forward with a fixed result."""

    def __init__(self, result: ForwardResult):
        self.result = result
        self.calls: list[dict[str, Any]] = []

    async def forward(self, endpoint, payload, timeout_ms=30_000, request_id=None, caller_handle=None):
        self.calls.append({
            "endpoint": endpoint,
            "payload": payload,
            "timeout_ms": timeout_ms,
            "request_id": request_id,
            "caller_handle": caller_handle,
        })
        return self.result


def paid_agent() -> Agent:
    return Agent(
        id="10",
        handle="scribe",
        name="Scribe",
        agent_wallet=WALLET,
        x402_support=True,
        skills=[AgentSkill(skill_id="text-generation", price="0.05")],
    )


def free_x402_agent() -> Agent:
    return Agent(
        id="11",
        handle="freebie",
        name="Freebie",
        x402_support=True,
        skills=[AgentSkill(skill_id="translation", price="0")],
    )


def forwarding_agent() -> Agent:
    return Agent(
        id="12",
        handle="remote",
        name="Remote",
        endpoint="https://agent.example.com/invoke",
        x402_support=True,
        capabilities=["text-generation"],
    )


@pytest.fixture
def settings() -> ClawdnetSettings:
    return ClawdnetSettings(environment="dev", _env_file=None)


@pytest.fixture
def directory() -> InMemoryAgentDirectory:
    return InMemoryAgentDirectory(
        agents=[paid_agent(), free_x402_agent(), forwarding_agent()],
        seed=True,
    )


@pytest.fixture
def recorder() -> InMemoryTransactionRecorder:
    return InMemoryTransactionRecorder()


@pytest.fixture
def effects() -> NonCriticalEffects:
    return NonCriticalEffects()


@pytest.fixture
def facilitator() -> StubFacilitator:
    return StubFacilitator()


@pytest.fixture
def forwarder() -> StubForwarder:
    return StubForwarder(ForwardResult(ok=True, body={"answer": 42}, status=200, elapsed_ms=120))


@pytest.fixture
def make_orchestrator(directory, recorder, facilitator, forwarder, settings, effects):
    def factory(**overrides) -> InvocationOrchestrator:
        params = dict(
            directory=directory,
            recorder=recorder,
            facilitator=facilitator,
            forwarder=forwarder,
            settings=settings,
            effects=effects,
            rng=random.Random(7),
        )
        params.update(overrides)
        return InvocationOrchestrator(**params)

    return factory
