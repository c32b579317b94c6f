"""Append-only transaction and payment records for agent invocations."""
from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Protocol
from uuid import uuid4

from .exceptions import RecorderError


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def new_transaction_id() -> str:
    return f"txn_{uuid4().hex[:12]}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Transaction:
    """One row per invocation attempt, written once at its terminal point."""
    id: str
    agent_id: str
    skill: str
    input: Any
    status: TransactionStatus
    output: Any = None
    execution_time_ms: int = 0
    error_message: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    caller_handle: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    def to_summary(self) -> dict[str, Any]:
        """List-view projection; full input/output are not exposed."""
        return {
            "id": self.id,
            "skill": self.skill,
            "status": self.status.value,
            "executionTimeMs": self.execution_time_ms,
            "amount": self.amount,
            "currency": self.currency,
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "hasInput": self.input is not None,
            "hasOutput": self.output is not None,
            "errorMessage": self.error_message,
        }


@dataclass
class Payment:
    """Settled x402 payment, stored independently of its Transaction."""
    to_agent_id: str
    amount: str
    currency: str
    status: PaymentStatus
    external_id: Optional[str]
    platform_fee: str = "0"
    net_amount: str = "0"
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"pay_{uuid4().hex[:16]}")
    created_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    @classmethod
    def settled_x402(
        cls,
        *,
        to_agent_id: str,
        amount: str,
        settlement_reference: Optional[str],
        payer: Optional[str],
        skill: str,
        network: str,
        platform_fee_percent: float,
        transaction_id: Optional[str] = None,
    ) -> "Payment":
        gross = Decimal(amount)
        fee = (gross * Decimal(str(platform_fee_percent)) / Decimal(100)).quantize(Decimal("0.000001"))
        return cls(
            to_agent_id=to_agent_id,
            amount=amount,
            currency="USDC",
            status=PaymentStatus.COMPLETED,
            external_id=settlement_reference,
            platform_fee=str(fee),
            net_amount=str(gross - fee),
            metadata={
                "payer": payer,
                "skill": skill,
                "protocol": "x402",
                "network": network,
                "transactionId": transaction_id,
            },
            completed_at=_now(),
        )


@dataclass
class AgentStats:
    total_transactions: int = 0
    successful_transactions: int = 0
    total_revenue: Decimal = Decimal("0")
    avg_response_ms: int = 0


class TransactionRecorder(Protocol):
    """Storage collaborator for invocation bookkeeping."""

    async def record_transaction(self, tx: Transaction) -> Transaction:
        ...

    async def mark_failed(self, transaction_id: str, error_message: str) -> Transaction:
        ...

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        ...

    async def list_transactions(
        self,
        agent_id: str,
        status: Optional[TransactionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[List[Transaction], int]:
        ...

    async def record_payment(self, payment: Payment) -> Payment:
        ...

    async def list_payments(self, agent_id: Optional[str] = None) -> List[Payment]:
        ...

    async def increment_agent_stats(
        self,
        agent_id: str,
        success: bool,
        execution_time_ms: int,
        revenue: Optional[str] = None,
    ) -> None:
        ...


class InMemoryTransactionRecorder:
    """In-memory recorder (swap for PostgreSQL in production).

    Record writes are plain dict operations. Only the per-agent stats
    read-modify-write is serialized.
    """

    def __init__(self) -> None:
        self._transactions: dict[str, Transaction] = {}
        self._payments: dict[str, Payment] = {}
        self._stats: dict[str, AgentStats] = defaultdict(AgentStats)
        self._stats_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def record_transaction(self, tx: Transaction) -> Transaction:
        if tx.id in self._transactions:
            raise RecorderError(
                f"Transaction {tx.id} already recorded",
                operation="record_transaction",
            )
        if tx.completed_at is None:
            tx.completed_at = _now()
        self._transactions[tx.id] = tx
        return tx

    async def mark_failed(self, transaction_id: str, error_message: str) -> Transaction:
        tx = self._transactions.get(transaction_id)
        if tx is None:
            raise RecorderError(
                f"Transaction {transaction_id} not found",
                operation="mark_failed",
            )
        tx.status = TransactionStatus.FAILED
        tx.error_message = error_message
        return tx

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def list_transactions(
        self,
        agent_id: str,
        status: Optional[TransactionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[List[Transaction], int]:
        items = [t for t in self._transactions.values() if t.agent_id == agent_id]
        if status is not None:
            items = [t for t in items if t.status == status]
        items.sort(key=lambda t: t.created_at, reverse=True)
        return items[offset : offset + limit], len(items)

    async def record_payment(self, payment: Payment) -> Payment:
        if payment.id in self._payments:
            raise RecorderError(
                f"Payment {payment.id} already recorded",
                operation="record_payment",
            )
        self._payments[payment.id] = payment
        return payment

    async def list_payments(self, agent_id: Optional[str] = None) -> List[Payment]:
        payments = list(self._payments.values())
        if agent_id:
            payments = [p for p in payments if p.to_agent_id == agent_id]
        return payments

    async def increment_agent_stats(
        self,
        agent_id: str,
        success: bool,
        execution_time_ms: int,
        revenue: Optional[str] = None,
    ) -> None:
        async with self._stats_locks[agent_id]:
            stats = self._stats[agent_id]
            previous_total = stats.total_transactions
            stats.total_transactions += 1
            if success:
                stats.successful_transactions += 1
            if revenue:
                stats.total_revenue += Decimal(revenue)
            stats.avg_response_ms = int(
                (stats.avg_response_ms * previous_total + execution_time_ms) / stats.total_transactions
            )

    async def get_agent_stats(self, agent_id: str) -> AgentStats:
        return self._stats.get(agent_id) or AgentStats()
