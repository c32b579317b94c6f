"""x402 HTTP 402 Payment Required support for agent invocations.

Implements:
- Payment requirement construction (deterministic per agent/skill/price)
- 402 challenge body construction (server -> client)
- PAYMENT-RESPONSE header encoding for settled invocations

Reference: https://www.x402.org/
"""
from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Optional


# Headers that may carry a payment proof, in lookup order
X402_PAYMENT_HEADERS = ("X-PAYMENT", "x-payment", "payment-signature")
X402_PAYMENT_REQUIRED_MARKER = "X-PAYMENT-REQUIRED"
X402_PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

X402_VERSION = "1"
X402_SCHEME_EXACT = "exact"

BASE_SEPOLIA = "eip155:84532"
BASE_MAINNET = "eip155:8453"
DEFAULT_NETWORK = BASE_SEPOLIA

# USDC contract addresses by network
USDC_ASSETS: dict[str, str] = {
    BASE_SEPOLIA: "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    BASE_MAINNET: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DEFAULT_MAX_TIMEOUT_SECONDS = 300


@dataclass(frozen=True, slots=True)
class PaymentRequirement:
    """One entry of the ``accepts`` list of a 402 challenge."""
    network: str
    asset: str
    pay_to: str
    amount: str  # Decimal string, USDC units as configured on the skill
    resource: str
    description: str
    timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    scheme: str = X402_SCHEME_EXACT
    mime_type: str = "application/json"

    def to_dict(self) -> dict[str, Any]:
        """Wire shape, key order fixed so repeated challenges serialize identically."""
        return {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.amount,
            "resource": self.resource,
            "description": self.description,
            "mimeType": self.mime_type,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": self.timeout_seconds,
            "asset": self.asset,
        }


def resolve_asset(network: str) -> str:
    """Look up the USDC contract for a network, falling back to the test network."""
    return USDC_ASSETS.get(network, USDC_ASSETS[DEFAULT_NETWORK])


def invoke_resource(handle: str) -> str:
    return f"/api/agents/{handle}/invoke"


def build_requirement(
    *,
    handle: str,
    agent_name: str,
    skill: str,
    price: str,
    pay_to: Optional[str],
    network: str = DEFAULT_NETWORK,
    timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS,
) -> PaymentRequirement:
    """Build the payment requirement for invoking ``skill`` on an agent.

    Pure function: the same inputs always yield an equal requirement, so the
    challenge and the later verification request never drift apart.
    """
    return PaymentRequirement(
        network=network,
        asset=resolve_asset(network),
        pay_to=pay_to or ZERO_ADDRESS,
        amount=price,
        resource=invoke_resource(handle),
        description=f"Invoke {skill} on {agent_name}",
        timeout_seconds=timeout_seconds,
    )


def build_challenge_body(
    requirement: PaymentRequirement,
    error: str = "Payment required to invoke this skill",
) -> dict[str, Any]:
    """Build the JSON body of a 402 Payment Required response."""
    return {
        "version": X402_VERSION,
        "accepts": [requirement.to_dict()],
        "error": error,
    }


def build_challenge_headers() -> dict[str, str]:
    return {X402_PAYMENT_REQUIRED_MARKER: "true"}


def encode_payment_response(settlement: dict[str, Any]) -> str:
    """Encode settlement data for the PAYMENT-RESPONSE header (base64 JSON)."""
    raw = json.dumps(settlement, separators=(",", ":"), sort_keys=True)
    return base64.b64encode(raw.encode()).decode()


def decode_payment_response(header_value: str) -> dict[str, Any]:
    try:
        return json.loads(base64.b64decode(header_value))
    except Exception as exc:
        raise ValueError(f"invalid_payment_response_header: {exc}") from exc


__all__ = [
    "X402_PAYMENT_HEADERS",
    "X402_PAYMENT_REQUIRED_MARKER",
    "X402_PAYMENT_RESPONSE_HEADER",
    "X402_VERSION",
    "X402_SCHEME_EXACT",
    "BASE_SEPOLIA",
    "BASE_MAINNET",
    "DEFAULT_NETWORK",
    "USDC_ASSETS",
    "ZERO_ADDRESS",
    "DEFAULT_MAX_TIMEOUT_SECONDS",
    "PaymentRequirement",
    "resolve_asset",
    "invoke_resource",
    "build_requirement",
    "build_challenge_body",
    "build_challenge_headers",
    "encode_payment_response",
    "decode_payment_response",
]
