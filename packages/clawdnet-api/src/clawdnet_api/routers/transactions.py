"""Agent transaction history."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from clawdnet_core.agents import AgentDirectory
from clawdnet_core.exceptions import AgentNotFoundError
from clawdnet_core.transactions import TransactionRecorder, TransactionStatus

router = APIRouter(tags=["transactions"])

MAX_PAGE_SIZE = 100


class TransactionDependencies:
    """Dependencies for transaction routes."""
    def __init__(self, directory: AgentDirectory, recorder: TransactionRecorder):
        self.directory = directory
        self.recorder = recorder


def get_deps() -> TransactionDependencies:
    """Dependency injection placeholder."""
    raise NotImplementedError("Must be overridden")


@router.get("/{handle}/transactions")
async def list_agent_transactions(
    handle: str,
    limit: int = Query(default=20, ge=1),
    offset: int = Query(default=0, ge=0),
    status: Optional[TransactionStatus] = Query(default=None),
    deps: TransactionDependencies = Depends(get_deps),
):
    """List an agent's transactions, newest first. Input and output are not exposed."""
    agent = await deps.directory.get_by_handle(handle)
    if agent is None:
        raise AgentNotFoundError(handle)

    limit = min(limit, MAX_PAGE_SIZE)
    items, total = await deps.recorder.list_transactions(
        agent.id, status=status, limit=limit, offset=offset,
    )
    return {
        "transactions": [tx.to_summary() for tx in items],
        "pagination": {
            "limit": limit,
            "offset": offset,
            "total": total,
            "hasMore": total > offset + limit,
        },
    }
