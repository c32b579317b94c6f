"""x402 payment protocol helpers for ClawdNet agent invocations."""
from .facilitator import (
    DEFAULT_FACILITATOR_URL,
    FacilitatorClient,
    VerificationResult,
    build_verification_request,
)
from .proof import (
    Base64JsonDecoder,
    PaymentProofDecodeError,
    RawJsonDecoder,
    decode_payment_proof,
)
from .x402 import (
    DEFAULT_NETWORK,
    USDC_ASSETS,
    X402_PAYMENT_HEADERS,
    X402_PAYMENT_REQUIRED_MARKER,
    X402_PAYMENT_RESPONSE_HEADER,
    PaymentRequirement,
    build_challenge_body,
    build_challenge_headers,
    build_requirement,
    encode_payment_response,
    resolve_asset,
)

__all__ = [
    "DEFAULT_FACILITATOR_URL",
    "FacilitatorClient",
    "VerificationResult",
    "build_verification_request",
    "Base64JsonDecoder",
    "PaymentProofDecodeError",
    "RawJsonDecoder",
    "decode_payment_proof",
    "DEFAULT_NETWORK",
    "USDC_ASSETS",
    "X402_PAYMENT_HEADERS",
    "X402_PAYMENT_REQUIRED_MARKER",
    "X402_PAYMENT_RESPONSE_HEADER",
    "PaymentRequirement",
    "build_challenge_body",
    "build_challenge_headers",
    "build_requirement",
    "encode_payment_response",
    "resolve_asset",
]
