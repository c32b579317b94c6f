"""Payment proof decoding.

A proof arrives either as a header string (base64-encoded JSON, or raw JSON)
or as an already-parsed body object. Decoders are tried in order and the
first one that yields a JSON object wins.
"""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Mapping, Protocol, Sequence


_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


class PaymentProofDecodeError(ValueError):
    """Raised when no decoder could turn the proof into a JSON object."""


class ProofDecoder(Protocol):
    name: str

    def decode(self, raw: str) -> dict[str, Any]:
        ...


class Base64JsonDecoder:
    name = "base64_json"

    @staticmethod
    def _normalize(raw: str) -> str:
        """Map base64url to the standard alphabet and restore stripped padding."""
        text = raw.strip().translate(_URLSAFE_TO_STANDARD)
        return text + "=" * (-len(text) % 4)

    def decode(self, raw: str) -> dict[str, Any]:
        try:
            decoded = base64.b64decode(self._normalize(raw), validate=True)
            data = json.loads(decoded.decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PaymentProofDecodeError(f"{self.name}: {exc}") from exc
        return _require_object(data, self.name)


class RawJsonDecoder:
    name = "raw_json"

    def decode(self, raw: str) -> dict[str, Any]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PaymentProofDecodeError(f"{self.name}: {exc}") from exc
        return _require_object(data, self.name)


DEFAULT_DECODERS: tuple[ProofDecoder, ...] = (Base64JsonDecoder(), RawJsonDecoder())


def _require_object(data: Any, decoder: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise PaymentProofDecodeError(f"{decoder}: proof is not a JSON object")
    return data


def decode_payment_proof(
    proof: str | Mapping[str, Any],
    decoders: Sequence[ProofDecoder] = DEFAULT_DECODERS,
) -> dict[str, Any]:
    """Decode a payment proof into a JSON object.

    Raises:
        PaymentProofDecodeError: if the proof is empty or every decoder fails.
    """
    if isinstance(proof, Mapping):
        return dict(proof)
    if not isinstance(proof, str) or not proof.strip():
        raise PaymentProofDecodeError("empty payment proof")

    failures: list[str] = []
    for decoder in decoders:
        try:
            return decoder.decode(proof)
        except PaymentProofDecodeError as exc:
            failures.append(str(exc))
    raise PaymentProofDecodeError("invalid payment proof (" + "; ".join(failures) + ")")


__all__ = [
    "PaymentProofDecodeError",
    "ProofDecoder",
    "Base64JsonDecoder",
    "RawJsonDecoder",
    "DEFAULT_DECODERS",
    "decode_payment_proof",
]
