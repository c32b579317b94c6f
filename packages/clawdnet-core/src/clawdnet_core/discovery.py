"""ERC-8004 compatible domain registration document."""
from __future__ import annotations

from typing import Any, Iterable

from .agents import Agent

PROTOCOL = "clawdnet-v1"


def _numeric_id(agent: Agent) -> int:
    try:
        return int(agent.id)
    except ValueError:
        return 0


def build_registration_document(agents: Iterable[Agent], domain: str) -> dict[str, Any]:
    """Build ``/.well-known/agent-registration.json`` for ``domain``."""
    registry = f"clawdnet:directory:{domain}"
    entries = [
        {
            "agentId": _numeric_id(agent),
            "agentRegistry": registry,
            "handle": agent.handle,
            "name": agent.name,
            "registrationUrl": f"https://{domain}/api/agents/{agent.handle}/registration",
        }
        for agent in agents
    ]
    return {
        "registrations": [
            {"agentId": e["agentId"], "agentRegistry": e["agentRegistry"]} for e in entries
        ],
        "domain": domain,
        "protocol": PROTOCOL,
        "totalAgents": len(entries),
        "agents": entries,
        "onChainRegistry": None,
    }
