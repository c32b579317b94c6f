"""Well-known discovery documents."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from clawdnet_core.agents import AgentDirectory
from clawdnet_core.discovery import build_registration_document

router = APIRouter(tags=["discovery"])


class DiscoveryDependencies:
    def __init__(self, directory: AgentDirectory, domain: str):
        self.directory = directory
        self.domain = domain


def get_deps() -> DiscoveryDependencies:
    """Dependency injection placeholder."""
    raise NotImplementedError("Must be overridden")


@router.get("/.well-known/agent-registration.json")
async def agent_registration(deps: DiscoveryDependencies = Depends(get_deps)):
    agents = await deps.directory.list_agents()
    return JSONResponse(
        content=build_registration_document(agents, deps.domain),
        headers={
            "Cache-Control": "public, max-age=60",
            "Access-Control-Allow-Origin": "*",
        },
    )
