"""ClawdNet invocation core: directory, payment gate, forwarding and bookkeeping."""
from .agents import (
    Agent,
    AgentDirectory,
    AgentSkill,
    AgentStatus,
    CachedAgentDirectory,
    InMemoryAgentDirectory,
)
from .cache import CacheBackend, CacheUnavailableError, InMemoryCache, RedisCache, create_cache
from .config import ClawdnetSettings, ForwardFailurePolicy, load_settings
from .discovery import build_registration_document
from .effects import NonCriticalEffects
from .exceptions import (
    AgentNotFoundError,
    AgentUnavailableError,
    ClawdnetException,
    ForwardFailureError,
    InvocationInProgressError,
    PaymentInvalidError,
    PaymentRequiredError,
    RecorderError,
    SkillNotAvailableError,
)
from .forwarder import AgentForwarder, ForwardFailureReason, ForwardResult
from .idempotency import InvocationIdempotencyGuard, invocation_key
from .invocation import (
    InvocationOrchestrator,
    InvocationRequest,
    InvocationResult,
    InvocationSource,
    InvocationState,
)
from .transactions import (
    InMemoryTransactionRecorder,
    Payment,
    PaymentStatus,
    Transaction,
    TransactionRecorder,
    TransactionStatus,
)
from .webhooks import (
    AgentWebhook,
    AgentWebhookDispatcher,
    InMemoryWebhookRepository,
    verify_webhook_signature,
)

__all__ = [
    "Agent",
    "AgentDirectory",
    "AgentSkill",
    "AgentStatus",
    "CachedAgentDirectory",
    "InMemoryAgentDirectory",
    "CacheBackend",
    "CacheUnavailableError",
    "InMemoryCache",
    "RedisCache",
    "create_cache",
    "ClawdnetSettings",
    "ForwardFailurePolicy",
    "load_settings",
    "build_registration_document",
    "NonCriticalEffects",
    "AgentNotFoundError",
    "AgentUnavailableError",
    "ClawdnetException",
    "ForwardFailureError",
    "InvocationInProgressError",
    "PaymentInvalidError",
    "PaymentRequiredError",
    "RecorderError",
    "SkillNotAvailableError",
    "AgentForwarder",
    "ForwardFailureReason",
    "ForwardResult",
    "InvocationIdempotencyGuard",
    "invocation_key",
    "InvocationOrchestrator",
    "InvocationRequest",
    "InvocationResult",
    "InvocationSource",
    "InvocationState",
    "InMemoryTransactionRecorder",
    "Payment",
    "PaymentStatus",
    "Transaction",
    "TransactionRecorder",
    "TransactionStatus",
    "AgentWebhook",
    "AgentWebhookDispatcher",
    "InMemoryWebhookRepository",
    "verify_webhook_signature",
]
