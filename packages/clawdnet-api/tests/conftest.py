"""Pytest configuration and fixtures for ClawdNet API tests."""
from __future__ import annotations

import base64
import json
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from clawdnet_api.dependencies import ServiceContainer
from clawdnet_api.main import create_app
from clawdnet_core.agents import Agent, AgentSkill, InMemoryAgentDirectory
from clawdnet_core.config import ClawdnetSettings
from clawdnet_protocol.facilitator import FacilitatorClient

FACILITATOR_URL = "https://facilitator.test"
AGENT_WALLET = "0x1111111111111111111111111111111111111111"
PAYER = "0x2222222222222222222222222222222222222222"


@pytest.fixture
def settings() -> ClawdnetSettings:
    return ClawdnetSettings(
        environment="dev",
        x402_facilitator_url=FACILITATOR_URL,
        log_json=False,
        _env_file=None,
    )


@pytest.fixture
def directory() -> InMemoryAgentDirectory:
    return InMemoryAgentDirectory(
        agents=[
            Agent(
                id="10",
                handle="scribe",
                name="Scribe",
                agent_wallet=AGENT_WALLET,
                x402_support=True,
                skills=[AgentSkill(skill_id="text-generation", price="0.05")],
            ),
            Agent(
                id="12",
                handle="remote",
                name="Remote",
                endpoint="https://agent.example.com/invoke",
                capabilities=["text-generation"],
            ),
        ],
        seed=True,
    )


@pytest.fixture
def container(settings, directory) -> ServiceContainer:
    return ServiceContainer(
        settings,
        directory=directory,
        facilitator=FacilitatorClient(base_url=FACILITATOR_URL, timeout_seconds=2),
    )


@pytest.fixture
def app(container):
    """Create a test application instance."""
    return create_app(container=container)


@pytest.fixture
async def client(app, container) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    await container.close()


@pytest.fixture
def payment_header() -> str:
    proof = {
        "x402Version": 1,
        "scheme": "exact",
        "network": "eip155:84532",
        "payload": {"signature": "0xsig", "authorization": {"from": PAYER}},
    }
    return base64.b64encode(json.dumps(proof).encode()).decode()
