"""Tests for x402 requirement and challenge construction."""
import json

import pytest

from clawdnet_protocol.facilitator import build_verification_request
from clawdnet_protocol.x402 import (
    BASE_MAINNET,
    BASE_SEPOLIA,
    USDC_ASSETS,
    ZERO_ADDRESS,
    build_challenge_body,
    build_challenge_headers,
    build_requirement,
    decode_payment_response,
    encode_payment_response,
    resolve_asset,
)

WALLET = "0x1111111111111111111111111111111111111111"


def _requirement(**overrides):
    params = dict(
        handle="sol",
        agent_name="Sol",
        skill="text-generation",
        price="0.05",
        pay_to=WALLET,
        network=BASE_SEPOLIA,
    )
    params.update(overrides)
    return build_requirement(**params)


class TestAssetResolution:
    def test_known_networks(self):
        assert resolve_asset(BASE_SEPOLIA) == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
        assert resolve_asset(BASE_MAINNET) == "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"

    def test_unknown_network_falls_back_to_test_network(self):
        assert resolve_asset("eip155:999999") == USDC_ASSETS[BASE_SEPOLIA]


class TestBuildRequirement:
    def test_wire_shape(self):
        req = _requirement().to_dict()

        assert req == {
            "scheme": "exact",
            "network": BASE_SEPOLIA,
            "maxAmountRequired": "0.05",
            "resource": "/api/agents/sol/invoke",
            "description": "Invoke text-generation on Sol",
            "mimeType": "application/json",
            "payTo": WALLET,
            "maxTimeoutSeconds": 300,
            "asset": USDC_ASSETS[BASE_SEPOLIA],
        }

    def test_missing_wallet_pays_zero_address(self):
        assert _requirement(pay_to=None).pay_to == ZERO_ADDRESS

    def test_deterministic(self):
        first = json.dumps(build_challenge_body(_requirement())["accepts"][0])
        second = json.dumps(build_challenge_body(_requirement())["accepts"][0])
        assert first == second

    def test_unknown_network_keeps_network_but_uses_fallback_asset(self):
        req = _requirement(network="eip155:1")
        assert req.network == "eip155:1"
        assert req.asset == USDC_ASSETS[BASE_SEPOLIA]

    def test_verification_request_carries_same_fields(self):
        req = _requirement()
        body = build_verification_request({"signature": "0xabc"}, req)

        sent = body["paymentRequirements"]
        assert sent["resource"] == req.resource
        assert sent["payTo"] == req.pay_to
        assert sent["asset"] == req.asset
        assert body["payment"] == {"signature": "0xabc"}


class TestChallenge:
    def test_challenge_body(self):
        body = build_challenge_body(_requirement())

        assert body["version"] == "1"
        assert len(body["accepts"]) == 1
        assert body["error"] == "Payment required to invoke this skill"

    def test_challenge_headers(self):
        assert build_challenge_headers() == {"X-PAYMENT-REQUIRED": "true"}


class TestPaymentResponseHeader:
    def test_encode_decode(self):
        settlement = {"success": True, "settlementId": "0xdead", "payer": WALLET, "network": BASE_SEPOLIA}
        assert decode_payment_response(encode_payment_response(settlement)) == settlement

    def test_decode_garbage_raises_value_error(self):
        with pytest.raises(ValueError, match="invalid_payment_response_header"):
            decode_payment_response("@@not base64@@")
