"""Unified exception hierarchy for ClawdNet.

All ClawdNet-specific exceptions inherit from ClawdnetException, enabling:
- Consistent error handling across packages
- HTTP status code mapping in the API layer
- Wire-compatible error bodies via to_dict()

Only the invocation-shaping errors (not found, unavailable, payment required,
payment invalid, forward failure) ever reach a caller. RecorderError is
raised by storage collaborators and absorbed by the orchestrator.
"""
from __future__ import annotations

from typing import Any, Optional


class ClawdnetException(Exception):
    """Base exception for all ClawdNet errors.

    Attributes:
        message: Human-readable error message, also the ``error`` field on the wire
        error_code: Machine-readable error code (e.g., "AGENT_NOT_FOUND")
        details: Optional additional context
    """

    error_code: str = "CLAWDNET_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    @property
    def headers(self) -> dict[str, str]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class AgentNotFoundError(ClawdnetException):
    """Unknown agent handle."""

    error_code = "AGENT_NOT_FOUND"
    http_status = 404

    def __init__(self, handle: str) -> None:
        super().__init__("Agent not found")
        self.handle = handle


class AgentUnavailableError(ClawdnetException):
    """Agent is marked offline."""

    error_code = "AGENT_UNAVAILABLE"
    http_status = 503

    def __init__(self, handle: str) -> None:
        super().__init__("Agent is offline")
        self.handle = handle


class SkillNotAvailableError(ClawdnetException):
    """Agent does not offer the requested skill."""

    error_code = "SKILL_NOT_AVAILABLE"
    http_status = 400

    def __init__(self, skill: str, available_skills: list[str]) -> None:
        super().__init__("Skill not available")
        self.skill = skill
        self.available_skills = available_skills

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "availableSkills": self.available_skills}


class PaymentRequiredError(ClawdnetException):
    """Priced skill invoked without a payment proof; carries the 402 challenge."""

    error_code = "PAYMENT_REQUIRED"
    http_status = 402

    def __init__(self, challenge: dict[str, Any], headers: Optional[dict[str, str]] = None) -> None:
        super().__init__(challenge.get("error", "Payment required"))
        self.challenge = challenge
        self._headers = headers or {}

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def to_dict(self) -> dict[str, Any]:
        return self.challenge


class PaymentInvalidError(ClawdnetException):
    """Payment proof supplied but rejected by the facilitator."""

    error_code = "PAYMENT_INVALID"
    http_status = 402

    def __init__(self, reason: Optional[str]) -> None:
        super().__init__("Payment verification failed")
        self.reason = reason or "Payment rejected"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "details": self.reason}


class ForwardFailureError(ClawdnetException):
    """Real agent endpoint errored, timed out or was unreachable."""

    error_code = "FORWARD_FAILURE"
    http_status = 502

    def __init__(
        self,
        reason: str,
        transaction_id: Optional[str] = None,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
    ) -> None:
        details: dict[str, Any] = {"reason": reason}
        if status is not None:
            details["status"] = status
        if status_text:
            details["statusText"] = status_text
        if transaction_id:
            details["transactionId"] = transaction_id
        super().__init__("Agent forwarding failed", details=details)
        self.reason = reason


class InvocationInProgressError(ClawdnetException):
    """A duplicate invocation with the same payment proof is still running."""

    error_code = "INVOCATION_IN_PROGRESS"
    http_status = 409

    def __init__(self) -> None:
        super().__init__("Invocation already in progress")


class RecorderError(ClawdnetException):
    """Transaction/payment bookkeeping failed. Never surfaced to callers."""

    error_code = "RECORDER_ERROR"
    http_status = 500

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details)


__all__ = [
    "ClawdnetException",
    "AgentNotFoundError",
    "AgentUnavailableError",
    "SkillNotAvailableError",
    "PaymentRequiredError",
    "PaymentInvalidError",
    "ForwardFailureError",
    "InvocationInProgressError",
    "RecorderError",
]
