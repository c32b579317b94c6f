"""Invocation orchestration: agent lookup, payment gate, execution, bookkeeping.

One call to ``InvocationOrchestrator.invoke`` walks the states

    RESOLVE_AGENT -> CHECK_AVAILABILITY -> RESOLVE_SKILL
        -> FORWARD | PAY_GATE -> EXECUTE -> RECORD -> RESPOND

Only not-found, unavailable, skill-not-available, payment-required,
payment-invalid, forward-failure (under the ``error`` policy) and
in-progress duplicates are raised to the caller. Bookkeeping failures are
logged and absorbed; stat increments and webhook dispatch run through the
non-critical effect sink.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Protocol

from clawdnet_protocol.facilitator import VerificationResult
from clawdnet_protocol.x402 import (
    PaymentRequirement,
    build_challenge_body,
    build_challenge_headers,
    build_requirement,
    encode_payment_response,
)

from . import mock_executor
from .agents import Agent, AgentDirectory, is_positive_price
from .config import ClawdnetSettings, ForwardFailurePolicy
from .effects import NonCriticalEffects
from .exceptions import (
    AgentNotFoundError,
    AgentUnavailableError,
    ForwardFailureError,
    PaymentInvalidError,
    PaymentRequiredError,
    SkillNotAvailableError,
)
from .forwarder import AgentForwarder, ForwardResult
from .idempotency import InvocationIdempotencyGuard, invocation_key
from .transactions import (
    Payment,
    Transaction,
    TransactionRecorder,
    TransactionStatus,
    new_transaction_id,
)
from .webhooks import EVENT_INVOCATION, AgentWebhookDispatcher

logger = logging.getLogger(__name__)


class InvocationState(str, Enum):
    RESOLVE_AGENT = "resolve_agent"
    CHECK_AVAILABILITY = "check_availability"
    RESOLVE_SKILL = "resolve_skill"
    FORWARD = "forward"
    PAY_GATE = "pay_gate"
    EXECUTE = "execute"
    RECORD = "record"
    RESPOND = "respond"


class InvocationSource(str, Enum):
    FORWARDED = "forwarded"
    PAID = "paid"
    FREE = "free"
    MOCK = "mock"


class PaymentVerifier(Protocol):
    async def verify(
        self,
        proof: str | Mapping[str, Any],
        requirement: PaymentRequirement,
    ) -> VerificationResult:
        ...


@dataclass(slots=True)
class InvocationRequest:
    """Per-call value object; discarded once the response is produced."""
    handle: str
    skill: str
    input: Any = None
    message: Optional[str] = None
    payment_proof: str | Mapping[str, Any] | None = None
    caller_handle: Optional[str] = None
    request_id: Optional[str] = None

    def normalized_input(self) -> Any:
        if self.input is None and self.message is not None:
            return {"prompt": self.message}
        return self.input


@dataclass(slots=True)
class InvocationResult:
    agent_handle: str
    skill: str
    output: Any
    execution_time_ms: int
    transaction_id: str
    source: InvocationSource
    settlement_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    payment_response: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": True,
            "agentHandle": self.agent_handle,
            "skill": self.skill,
            "output": self.output,
            "executionTimeMs": self.execution_time_ms,
            "transactionId": self.transaction_id,
        }
        if self.settlement_id:
            body["settlementId"] = self.settlement_id
        body["timestamp"] = self.timestamp.isoformat()
        body["source"] = self.source.value
        return body

    @property
    def payment_response_header(self) -> Optional[str]:
        if self.payment_response is None:
            return None
        return encode_payment_response(self.payment_response)

    def to_record(self) -> dict[str, Any]:
        """Serializable form stored by the idempotency guard."""
        return {"body": self.to_dict(), "paymentResponse": self.payment_response}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "InvocationResult":
        body = record["body"]
        return cls(
            agent_handle=body["agentHandle"],
            skill=body["skill"],
            output=body["output"],
            execution_time_ms=body["executionTimeMs"],
            transaction_id=body["transactionId"],
            source=InvocationSource(body["source"]),
            settlement_id=body.get("settlementId"),
            timestamp=datetime.fromisoformat(body["timestamp"]),
            payment_response=record.get("paymentResponse"),
        )


class InvocationOrchestrator:
    """Sequences directory, payment gate, forwarder, executor and recorder."""

    def __init__(
        self,
        *,
        directory: AgentDirectory,
        recorder: TransactionRecorder,
        facilitator: PaymentVerifier,
        forwarder: AgentForwarder,
        settings: ClawdnetSettings,
        effects: Optional[NonCriticalEffects] = None,
        webhooks: Optional[AgentWebhookDispatcher] = None,
        idempotency: Optional[InvocationIdempotencyGuard] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._directory = directory
        self._recorder = recorder
        self._facilitator = facilitator
        self._forwarder = forwarder
        self._settings = settings
        self._effects = effects or NonCriticalEffects()
        self._webhooks = webhooks
        self._idempotency = idempotency
        self._rng = rng

    @property
    def forward_failure_policy(self) -> ForwardFailurePolicy:
        return self._settings.effective_forward_failure_policy

    def build_requirement(self, agent: Agent, skill: str, price: str) -> PaymentRequirement:
        return build_requirement(
            handle=agent.handle,
            agent_name=agent.name,
            skill=skill,
            price=price,
            pay_to=agent.agent_wallet,
            network=self._settings.x402_network,
            timeout_seconds=self._settings.x402_max_timeout_seconds,
        )

    async def invoke(self, request: InvocationRequest) -> InvocationResult:
        self._enter(InvocationState.RESOLVE_AGENT, request)
        agent = await self._directory.get_by_handle(request.handle)
        if agent is None:
            logger.info("Invocation of unknown agent %s", request.handle)
            raise AgentNotFoundError(request.handle)

        self._enter(InvocationState.CHECK_AVAILABILITY, request)
        if agent.is_offline:
            logger.info("Invocation of offline agent %s", agent.handle)
            raise AgentUnavailableError(agent.handle)

        self._enter(InvocationState.RESOLVE_SKILL, request)
        price = agent.price_for(request.skill, self._settings.default_skill_price)
        if price is None:
            raise SkillNotAvailableError(request.skill, agent.available_skills)

        input = request.normalized_input()

        if agent.has_real_endpoint(self._settings.placeholder_endpoint_hosts):
            return await self._forward(agent, request, input)

        if agent.x402_support and is_positive_price(price):
            return await self._pay_gate(agent, request, input, price)

        source = InvocationSource.FREE if agent.x402_support else InvocationSource.MOCK
        return await self._execute_and_record(agent, request, input, source)

    async def _pay_gate(
        self,
        agent: Agent,
        request: InvocationRequest,
        input: Any,
        price: str,
    ) -> InvocationResult:
        self._enter(InvocationState.PAY_GATE, request)
        requirement = self.build_requirement(agent, request.skill, price)
        proof = request.payment_proof
        if proof is None:
            raise PaymentRequiredError(build_challenge_body(requirement), build_challenge_headers())

        if self._idempotency is None:
            return await self._settle_and_execute(agent, request, input, requirement, proof)

        key = invocation_key(agent.id, request.skill, proof)
        replay = await self._idempotency.lookup(key)
        if replay is not None:
            logger.info("Replaying stored invocation for %s/%s", agent.handle, request.skill)
            return InvocationResult.from_record(replay)

        async with self._idempotency.hold(key):
            # A concurrent holder may have finished between lookup and lock.
            replay = await self._idempotency.lookup(key)
            if replay is not None:
                return InvocationResult.from_record(replay)
            result = await self._settle_and_execute(agent, request, input, requirement, proof)
            try:
                await self._idempotency.store(key, result.to_record())
            except Exception:
                logger.error("Failed to store idempotency record for %s", result.transaction_id, exc_info=True)
            return result

    async def _settle_and_execute(
        self,
        agent: Agent,
        request: InvocationRequest,
        input: Any,
        requirement: PaymentRequirement,
        proof: str | Mapping[str, Any],
    ) -> InvocationResult:
        verification = await self._facilitator.verify(proof, requirement)
        if not verification.valid:
            logger.warning(
                "Payment rejected for %s/%s: %s",
                agent.handle, request.skill, verification.error_reason,
            )
            raise PaymentInvalidError(verification.error_reason)

        transaction_id = new_transaction_id()
        logger.info(
            "Payment verified for %s/%s settlement=%s",
            agent.handle, request.skill, verification.settlement_reference,
        )
        payment = Payment.settled_x402(
            to_agent_id=agent.id,
            amount=requirement.amount,
            settlement_reference=verification.settlement_reference,
            payer=verification.payer_address,
            skill=request.skill,
            network=requirement.network,
            platform_fee_percent=self._settings.platform_fee_percent,
            transaction_id=transaction_id,
        )
        await self._bookkeep("record_payment", self._recorder.record_payment(payment))

        result = await self._execute_and_record(
            agent,
            request,
            input,
            InvocationSource.PAID,
            transaction_id=transaction_id,
            amount=requirement.amount,
            settlement_id=verification.settlement_reference,
        )
        result.payment_response = {
            "success": True,
            "settlementId": verification.settlement_reference,
            "payer": verification.payer_address,
            "network": requirement.network,
        }
        return result

    async def _forward(self, agent: Agent, request: InvocationRequest, input: Any) -> InvocationResult:
        self._enter(InvocationState.FORWARD, request)
        transaction_id = new_transaction_id()
        payload: dict[str, Any] = {
            "skill": request.skill,
            "input": input,
            "transactionId": transaction_id,
        }
        if request.caller_handle:
            payload["callerHandle"] = request.caller_handle

        forwarded = await self._forwarder.forward(
            agent.endpoint,
            payload,
            timeout_ms=self._settings.forward_timeout_ms,
            request_id=request.request_id or transaction_id,
            caller_handle=request.caller_handle,
        )
        if forwarded.ok:
            tx = Transaction(
                id=transaction_id,
                agent_id=agent.id,
                skill=request.skill,
                input=input,
                status=TransactionStatus.COMPLETED,
                output=forwarded.body,
                execution_time_ms=forwarded.elapsed_ms,
                caller_handle=request.caller_handle,
            )
            await self._record(agent, tx, InvocationSource.FORWARDED)
            return self._respond(agent, request, tx, InvocationSource.FORWARDED)

        return await self._forward_failed(agent, request, input, transaction_id, forwarded)

    async def _forward_failed(
        self,
        agent: Agent,
        request: InvocationRequest,
        input: Any,
        transaction_id: str,
        forwarded: ForwardResult,
    ) -> InvocationResult:
        reason = forwarded.describe_failure()
        policy = self.forward_failure_policy
        logger.warning("Forward to %s failed (%s), policy=%s", agent.handle, reason, policy.value)

        if policy == ForwardFailurePolicy.FALLBACK:
            return await self._execute_and_record(
                agent,
                request,
                input,
                InvocationSource.MOCK,
                transaction_id=transaction_id,
                error_message=reason,
            )

        tx = Transaction(
            id=transaction_id,
            agent_id=agent.id,
            skill=request.skill,
            input=input,
            status=TransactionStatus.FAILED,
            execution_time_ms=forwarded.elapsed_ms,
            error_message=reason,
            caller_handle=request.caller_handle,
        )
        await self._record(agent, tx, InvocationSource.FORWARDED)
        raise ForwardFailureError(
            forwarded.failure.value,
            transaction_id=transaction_id,
            status=forwarded.status,
            status_text=forwarded.status_text,
        )

    async def _execute_and_record(
        self,
        agent: Agent,
        request: InvocationRequest,
        input: Any,
        source: InvocationSource,
        *,
        transaction_id: Optional[str] = None,
        amount: Optional[str] = None,
        settlement_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> InvocationResult:
        self._enter(InvocationState.EXECUTE, request)
        output = mock_executor.generate(request.skill, input)
        tx = Transaction(
            id=transaction_id or new_transaction_id(),
            agent_id=agent.id,
            skill=request.skill,
            input=input,
            status=TransactionStatus.COMPLETED,
            output=output,
            execution_time_ms=mock_executor.simulated_execution_time_ms(self._rng),
            error_message=error_message,
            amount=amount,
            currency="USDC" if amount else None,
            caller_handle=request.caller_handle,
        )
        await self._record(agent, tx, source)
        return self._respond(agent, request, tx, source, settlement_id=settlement_id)

    async def _record(self, agent: Agent, tx: Transaction, source: InvocationSource) -> None:
        logger.debug("state=%s tx=%s status=%s", InvocationState.RECORD.value, tx.id, tx.status.value)
        await self._bookkeep("record_transaction", self._recorder.record_transaction(tx))

        success = tx.status == TransactionStatus.COMPLETED
        self._effects.submit(
            "increment_agent_stats",
            self._recorder.increment_agent_stats(
                agent.id,
                success=success,
                execution_time_ms=tx.execution_time_ms,
                revenue=tx.amount if success else None,
            ),
        )
        if self._webhooks is not None:
            self._effects.submit(
                "webhook:invocation",
                self._webhooks.trigger(agent.id, agent.handle, EVENT_INVOCATION, {
                    "transactionId": tx.id,
                    "skill": tx.skill,
                    "status": tx.status.value,
                    "executionTimeMs": tx.execution_time_ms,
                    "source": source.value,
                    "callerHandle": tx.caller_handle,
                }),
            )

    def _respond(
        self,
        agent: Agent,
        request: InvocationRequest,
        tx: Transaction,
        source: InvocationSource,
        settlement_id: Optional[str] = None,
    ) -> InvocationResult:
        self._enter(InvocationState.RESPOND, request)
        logger.info(
            "Invoked %s/%s source=%s tx=%s in %sms",
            agent.handle, request.skill, source.value, tx.id, tx.execution_time_ms,
        )
        return InvocationResult(
            agent_handle=agent.handle,
            skill=request.skill,
            output=tx.output,
            execution_time_ms=tx.execution_time_ms,
            transaction_id=tx.id,
            source=source,
            settlement_id=settlement_id,
        )

    async def _bookkeep(self, operation: str, write) -> None:
        """Await a recorder write; failures are logged, never raised."""
        try:
            await write
        except Exception:
            logger.error("Bookkeeping operation %s failed", operation, exc_info=True)

    @staticmethod
    def _enter(state: InvocationState, request: InvocationRequest) -> None:
        logger.debug("state=%s handle=%s skill=%s", state.value, request.handle, request.skill)
