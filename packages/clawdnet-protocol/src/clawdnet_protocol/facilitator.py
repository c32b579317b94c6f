"""x402 facilitator client.

Delegates payment proof verification to an external facilitator service
and normalizes its (not perfectly uniform) responses.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from .proof import PaymentProofDecodeError, decode_payment_proof
from .x402 import PaymentRequirement

logger = logging.getLogger(__name__)

DEFAULT_FACILITATOR_URL = "https://x402.org/facilitator"
DEFAULT_VERIFY_TIMEOUT_SECONDS = 15.0


@dataclass(slots=True)
class VerificationResult:
    """Outcome of a facilitator verification. Never persisted directly."""
    valid: bool
    payer_address: Optional[str] = None
    settlement_reference: Optional[str] = None
    error_reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str) -> "VerificationResult":
        return cls(valid=False, error_reason=reason)


def build_verification_request(
    payment: Mapping[str, Any],
    requirement: PaymentRequirement,
) -> dict[str, Any]:
    return {
        "payment": dict(payment),
        "paymentRequirements": requirement.to_dict(),
    }


def _extract_payer(payment: Mapping[str, Any], result: Mapping[str, Any]) -> Optional[str]:
    for source in (result, payment):
        for key in ("payer", "payerAddress", "from"):
            value = source.get(key)
            if isinstance(value, str) and value:
                return value
    # EIP-3009 style proofs nest the payer under payload.authorization.from
    inner = payment.get("payload")
    if isinstance(inner, Mapping):
        authorization = inner.get("authorization")
        if isinstance(authorization, Mapping) and isinstance(authorization.get("from"), str):
            return authorization["from"]
    return None


class FacilitatorClient:
    """HTTP client for an x402 facilitator's ``/verify`` endpoint.

    ``verify`` never raises: network errors, non-2xx responses and malformed
    bodies all come back as a rejected ``VerificationResult``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_FACILITATOR_URL,
        timeout_seconds: float = DEFAULT_VERIFY_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._http = http_client
        self._owns_client = http_client is None

    @property
    def verify_url(self) -> str:
        return f"{self._base_url}/verify"

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        return self._http

    async def verify(
        self,
        proof: str | Mapping[str, Any],
        requirement: PaymentRequirement,
    ) -> VerificationResult:
        try:
            payment = decode_payment_proof(proof)
        except PaymentProofDecodeError as exc:
            logger.info("x402 proof rejected before facilitator call: %s", exc)
            return VerificationResult.rejected(str(exc))

        body = build_verification_request(payment, requirement)
        try:
            response = await self._client().post(
                self.verify_url,
                json=body,
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            logger.warning("x402 facilitator timed out after %ss", self._timeout)
            return VerificationResult.rejected("Payment verification failed: facilitator timeout")
        except httpx.HTTPError as exc:
            logger.warning("x402 facilitator unreachable: %s", exc)
            return VerificationResult.rejected(f"Payment verification failed: {exc}")

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            reason = None
            if isinstance(data, Mapping):
                reason = data.get("error") or data.get("invalidReason")
            return VerificationResult.rejected(
                reason or f"Facilitator returned {response.status_code}"
            )

        if not isinstance(data, Mapping):
            return VerificationResult.rejected("Facilitator returned malformed response")

        valid = data.get("valid") is True or data.get("success") is True or data.get("isValid") is True
        settlement = data.get("settlementId") or data.get("transactionHash")
        if not valid:
            return VerificationResult.rejected(
                data.get("error") or data.get("invalidReason") or "Payment rejected by facilitator"
            )

        return VerificationResult(
            valid=True,
            payer_address=_extract_payer(payment, data),
            settlement_reference=settlement,
            error_reason=data.get("error"),
        )

    async def close(self) -> None:
        if self._http is not None and self._owns_client:
            await self._http.aclose()
            self._http = None


__all__ = [
    "DEFAULT_FACILITATOR_URL",
    "DEFAULT_VERIFY_TIMEOUT_SECONDS",
    "VerificationResult",
    "FacilitatorClient",
    "build_verification_request",
]
