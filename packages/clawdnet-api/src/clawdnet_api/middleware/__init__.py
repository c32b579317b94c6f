"""ClawdNet API middleware."""
from .exceptions import register_exception_handlers
from .logging import (
    CorrelationIdFilter,
    JSONFormatter,
    StructuredLoggingMiddleware,
    get_correlation_id,
    setup_logging,
)

__all__ = [
    "register_exception_handlers",
    "CorrelationIdFilter",
    "JSONFormatter",
    "StructuredLoggingMiddleware",
    "get_correlation_id",
    "setup_logging",
]
