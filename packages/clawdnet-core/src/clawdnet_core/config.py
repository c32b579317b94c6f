"""Canonical configuration surface for ClawdNet services."""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from clawdnet_protocol.facilitator import DEFAULT_FACILITATOR_URL
from clawdnet_protocol.x402 import DEFAULT_MAX_TIMEOUT_SECONDS, DEFAULT_NETWORK


class ForwardFailurePolicy(str, Enum):
    """What to do when a real agent endpoint cannot serve an invocation."""
    FALLBACK = "fallback"  # serve mock output instead
    ERROR = "error"  # surface ForwardFailureError to the caller


class ClawdnetSettings(BaseSettings):
    """Main ClawdNet configuration."""

    # Environment
    environment: Literal["dev", "sandbox", "prod"] = "dev"

    # Public identity
    public_domain: str = "clawdnet.xyz"

    # CORS - allowed origins for API
    allowed_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: [
        "http://localhost:3000",
    ])

    # x402
    x402_facilitator_url: str = Field(
        default=DEFAULT_FACILITATOR_URL,
        validation_alias=AliasChoices("X402_FACILITATOR_URL", "CLAWDNET_X402_FACILITATOR_URL"),
    )
    x402_network: str = DEFAULT_NETWORK
    x402_max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    facilitator_timeout_seconds: float = 15.0
    platform_fee_percent: float = 5.0

    # Skills advertised as capabilities but without a priced skill row
    default_skill_price: str = "0.01"

    # Forwarding
    forward_timeout_ms: int = 30_000
    forward_failure_policy: Optional[ForwardFailurePolicy] = None
    placeholder_endpoint_hosts: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["clawdnet.xyz"])

    # Redis for caching (optional, in-memory otherwise)
    redis_url: str = ""

    # Directory query cache
    agent_cache_ttl_seconds: int = 30

    # Invocation de-duplication (off by default)
    invoke_idempotency_enabled: bool = False
    invoke_idempotency_ttl_seconds: int = 24 * 60 * 60

    # Logging
    log_level: str = "INFO"
    log_json: Optional[bool] = None

    class Config:
        env_prefix = "CLAWDNET_"
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True

    @field_validator("allowed_origins", "placeholder_endpoint_hosts", mode="before")
    @classmethod
    def parse_csv(cls, v):
        """Parse comma-separated lists from env vars."""
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v

    @field_validator("x402_facilitator_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def effective_forward_failure_policy(self) -> ForwardFailurePolicy:
        """Explicit policy if configured, else mock fallback everywhere but prod."""
        if self.forward_failure_policy is not None:
            return self.forward_failure_policy
        if self.environment == "prod":
            return ForwardFailurePolicy.ERROR
        return ForwardFailurePolicy.FALLBACK

    @property
    def use_json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.environment != "dev"


@lru_cache
def load_settings(env_file: str | None = None) -> ClawdnetSettings:
    """Load ClawdnetSettings once per process to keep services consistent."""
    env_path = Path(env_file) if env_file else None
    return ClawdnetSettings(_env_file=env_path)
