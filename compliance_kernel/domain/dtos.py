"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures returned by the engine: balances,
    banking results, pools and their members, activity inputs and fleet
    summaries.  Callers never receive ORM instances.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service and selector layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from compliance_kernel.models.compliance_balance import ComplianceBalanceModel
    from compliance_kernel.models.pool import PoolMemberModel, PoolModel


class ComplianceStatus(str, Enum):
    """Sign of a compliance balance."""

    SURPLUS = "surplus"
    DEFICIT = "deficit"
    NEUTRAL = "neutral"

    @classmethod
    def of(cls, value: Decimal) -> ComplianceStatus:
        if value > 0:
            return cls.SURPLUS
        if value < 0:
            return cls.DEFICIT
        return cls.NEUTRAL


@dataclass(frozen=True)
class ActivityData:
    """
    One reporting activity: the inputs of the balance formula.

    intensity_actual is gCO2e/MJ, throughput is MJ in scope.
    """

    intensity_actual: Decimal
    throughput: Decimal
    source_ref: str | None = None
    source_period: int | None = None


@dataclass(frozen=True)
class ComplianceBalance:
    """Current ledger balance for one (entity_id, period)."""

    entity_id: str
    period: int
    value: Decimal
    updated_at: datetime | None = None

    @property
    def status(self) -> ComplianceStatus:
        return ComplianceStatus.of(self.value)

    @classmethod
    def from_model(cls, model: ComplianceBalanceModel) -> ComplianceBalance:
        return cls(
            entity_id=model.entity_id,
            period=model.period,
            value=model.value,
            updated_at=model.updated_at,
        )


@dataclass(frozen=True)
class BankingResult:
    """Outcome of a bank or apply operation."""

    entity_id: str
    period: int
    balance_before: Decimal
    applied: Decimal
    balance_after: Decimal
    banked_total_after: Decimal


@dataclass(frozen=True)
class PoolMember:
    """One member's balances inside a pool."""

    entity_id: str
    balance_before: Decimal
    balance_after: Decimal

    @classmethod
    def from_model(cls, model: PoolMemberModel) -> PoolMember:
        return cls(
            entity_id=model.entity_id,
            balance_before=model.balance_before,
            balance_after=model.balance_after,
        )


@dataclass(frozen=True)
class Pool:
    """A recorded pooling event."""

    pool_id: UUID
    name: str | None
    period: int
    created_at: datetime
    sum_before_pool: Decimal
    members: tuple[PoolMember, ...]

    @property
    def sum_after_pool(self) -> Decimal:
        return sum((m.balance_after for m in self.members), Decimal("0"))

    @classmethod
    def from_model(cls, model: PoolModel) -> Pool:
        return cls(
            pool_id=model.id,
            name=model.name,
            period=model.period,
            created_at=model.created_at,
            sum_before_pool=model.sum_before_pool,
            members=tuple(PoolMember.from_model(m) for m in model.members),
        )


@dataclass(frozen=True)
class FleetSummary:
    """Aggregate view of all balances in one period."""

    period: int
    total_balance: Decimal
    total_banked: Decimal
    surplus_count: int
    deficit_count: int
    neutral_count: int

    @property
    def entity_count(self) -> int:
        return self.surplus_count + self.deficit_count + self.neutral_count
