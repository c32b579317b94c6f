"""Agent directory for ClawdNet.

Storage rows, seed data and forwarded projections all collapse into the one
normalized ``Agent`` model here; the invocation core never sees raw rows.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from .cache import CacheBackend, InMemoryCache

logger = logging.getLogger(__name__)


class AgentStatus(str, Enum):
    ONLINE = "online"
    BUSY = "busy"
    OFFLINE = "offline"


class AgentSkill(BaseModel):
    """A priced capability. Price is a decimal string interpreted as USDC."""
    skill_id: str
    price: str
    is_active: bool = True


class Agent(BaseModel):
    """Normalized agent snapshot read by the invocation core."""
    id: str
    handle: str
    name: str
    description: str = ""
    endpoint: Optional[str] = None
    status: AgentStatus = AgentStatus.ONLINE
    agent_wallet: Optional[str] = None
    x402_support: bool = False
    capabilities: List[str] = Field(default_factory=list)
    skills: List[AgentSkill] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Agent":
        """Build an Agent from a camelCase projection or a snake_case DB row."""
        skills = [
            s if isinstance(s, AgentSkill) else AgentSkill(
                skill_id=str(pick_from(s, "skill_id", "skillId")),
                price=str(pick_from(s, "price", default="0")),
                is_active=bool(pick_from(s, "is_active", "isActive", default=True)),
            )
            for s in pick_from(record, "skills", default=[])
        ]
        handle = pick_from(record, "handle")
        return cls(
            id=str(pick_from(record, "id", "agent_id", "agentId")),
            handle=handle,
            name=pick_from(record, "name", default=handle),
            description=pick_from(record, "description", default=""),
            endpoint=pick_from(record, "endpoint") or None,
            status=AgentStatus(pick_from(record, "status", default=AgentStatus.ONLINE.value)),
            agent_wallet=pick_from(record, "agent_wallet", "agentWallet"),
            x402_support=bool(pick_from(record, "x402_support", "x402Support", default=False)),
            capabilities=list(pick_from(record, "capabilities", default=[])),
            skills=skills,
        )

    @property
    def is_offline(self) -> bool:
        return self.status == AgentStatus.OFFLINE

    @property
    def available_skills(self) -> List[str]:
        names = [s.skill_id for s in self.skills if s.is_active]
        names.extend(c for c in self.capabilities if c not in names)
        return names

    def price_for(self, skill: str, default_price: str) -> Optional[str]:
        """Resolve a skill's price; None means the agent does not offer it."""
        for s in self.skills:
            if s.skill_id == skill and s.is_active:
                return s.price
        if skill in self.capabilities:
            return default_price
        return None

    def has_real_endpoint(self, placeholder_hosts: List[str]) -> bool:
        """True when the endpoint points somewhere other than the platform itself."""
        if not self.endpoint:
            return False
        host = (urlparse(self.endpoint).hostname or "").lower()
        if not host:
            return False
        for placeholder in placeholder_hosts:
            placeholder = placeholder.lower()
            if host == placeholder or host.endswith("." + placeholder):
                return False
        return True


def pick_from(record: Any, *keys: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        for key in keys:
            if record.get(key) is not None:
                return record[key]
    return default


def is_positive_price(price: Optional[str]) -> bool:
    if price is None:
        return False
    try:
        return Decimal(price) > 0
    except (InvalidOperation, ValueError):
        logger.warning("Unparseable skill price %r treated as free", price)
        return False


class AgentDirectory(Protocol):
    """Read-only lookup used by the invocation core."""

    async def get_by_handle(self, handle: str) -> Optional[Agent]:
        ...

    async def list_agents(self) -> List[Agent]:
        ...


SEED_AGENTS: List[dict[str, Any]] = [
    {
        "id": "1", "handle": "sol", "name": "Sol",
        "description": "AI assistant for general tasks, research, and creative work.",
        "capabilities": ["text-generation", "research", "analysis"],
        "status": "online", "x402Support": False,
    },
    {
        "id": "2", "handle": "coder", "name": "CodeBot",
        "description": "Specialized code generation. Supports 20+ languages.",
        "capabilities": ["code-generation", "debugging", "code-review"],
        "status": "online", "x402Support": False,
    },
    {
        "id": "3", "handle": "artist", "name": "ArtGen",
        "description": "Image generation and creative visual content.",
        "capabilities": ["image-generation", "image-editing", "style-transfer"],
        "status": "busy", "x402Support": False,
    },
    {
        "id": "4", "handle": "researcher", "name": "DeepSearch",
        "description": "Web research and information synthesis agent.",
        "capabilities": ["web-search", "summarization", "fact-checking"],
        "status": "offline", "x402Support": False,
    },
    {
        "id": "5", "handle": "translator", "name": "PolyGlot",
        "description": "Multi-language translation with 100+ language support.",
        "capabilities": ["translation", "language-detection", "localization"],
        "status": "online", "x402Support": False,
    },
]


class InMemoryAgentDirectory:
    """In-memory agent directory (swap for a database-backed one in production)."""

    def __init__(self, agents: Optional[List[Agent]] = None, seed: bool = False):
        self._agents: dict[str, Agent] = {}
        if seed:
            for record in SEED_AGENTS:
                self.register(Agent.from_record(record))
        for agent in agents or []:
            self.register(agent)

    def register(self, agent: Agent) -> Agent:
        self._agents[agent.handle] = agent
        return agent

    def set_status(self, handle: str, status: AgentStatus) -> Optional[Agent]:
        agent = self._agents.get(handle)
        if not agent:
            return None
        agent = agent.model_copy(update={"status": status})
        self._agents[handle] = agent
        return agent

    async def get_by_handle(self, handle: str) -> Optional[Agent]:
        return self._agents.get(handle)

    async def list_agents(self) -> List[Agent]:
        return list(self._agents.values())


class CachedAgentDirectory:
    """Directory wrapper with a time-bounded lookup cache."""

    PREFIX = "clawdnet:agent"

    def __init__(
        self,
        inner: AgentDirectory,
        cache: Optional[CacheBackend] = None,
        ttl_seconds: int = 30,
    ):
        self._inner = inner
        self._cache = cache or InMemoryCache()
        self._ttl = ttl_seconds

    def _key(self, handle: str) -> str:
        return f"{self.PREFIX}:{handle}"

    async def get_by_handle(self, handle: str) -> Optional[Agent]:
        cached = await self._cache.get(self._key(handle))
        if cached:
            return Agent.model_validate_json(cached)
        agent = await self._inner.get_by_handle(handle)
        if agent is not None and self._ttl > 0:
            await self._cache.set(self._key(handle), agent.model_dump_json(), self._ttl)
        return agent

    async def list_agents(self) -> List[Agent]:
        return await self._inner.list_agents()

    async def invalidate(self, handle: str) -> bool:
        return await self._cache.delete(self._key(handle))
