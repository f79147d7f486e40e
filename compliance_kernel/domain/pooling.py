"""
Pooling -- equal-split allocation and Article 21 fairness rules.

Responsibility:
    Given the ledger balances of the pool members, computes the pool sum,
    the equal share each member leaves with, and checks the fairness rules.
    Pure functions; PoolAllocationEngine supplies the balances and persists
    the result.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - sum_before_pool < 0 is rejected (NegativePoolSumError).
    - A deficit entrant (before < 0) must leave with after >= before.
    - A surplus entrant (before > 0) must leave with after >= 0.
    - Every member is checked and every violation is reported.
    - The share is rounded toward negative infinity at the configured
      precision and applied identically to every member, so
      sum(after) <= sum_before_pool and the shortfall is below
      |members| quanta.

Entities entering at exactly zero carry no rule beyond the pool sum check.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from compliance_kernel.db.types import SHARE_ROUNDING, round_quantity
from compliance_kernel.domain.dtos import PoolMember
from compliance_kernel.exceptions import (
    Article21ViolationError,
    InvalidArgumentError,
    NegativePoolSumError,
)


class FairnessRule(str, Enum):
    """Article 21 protections for pool members."""

    DEFICIT_MUST_NOT_EXIT_WORSE = "deficit_must_not_exit_worse"
    SURPLUS_MUST_NOT_EXIT_NEGATIVE = "surplus_must_not_exit_negative"


@dataclass(frozen=True)
class MemberBalance:
    """A member's ledger balance at pool creation time."""

    entity_id: str
    balance_before: Decimal


@dataclass(frozen=True)
class FairnessViolation:
    entity_id: str
    rule: FairnessRule
    balance_before: Decimal
    balance_after: Decimal

    def describe(self) -> str:
        if self.rule is FairnessRule.DEFICIT_MUST_NOT_EXIT_WORSE:
            what = f"Deficit entity {self.entity_id} cannot exit worse"
        else:
            what = f"Surplus entity {self.entity_id} cannot exit negative"
        return f"{what}: balance before {self.balance_before}, after {self.balance_after}"


@dataclass(frozen=True)
class PoolAllocation:
    """Validated result of an equal split, ready to persist."""

    period: int
    sum_before_pool: Decimal
    share: Decimal
    members: tuple[PoolMember, ...]


def pool_sum(balances: Iterable[MemberBalance]) -> Decimal:
    return sum((b.balance_before for b in balances), Decimal("0"))


def equal_share(total: Decimal, member_count: int, decimal_places: int) -> Decimal:
    """``total / member_count`` rounded down to ``decimal_places``."""
    if member_count < 1:
        raise InvalidArgumentError("member_entity_ids", "at least one member is required")
    return round_quantity(
        total / Decimal(member_count),
        decimal_places,
        rounding=SHARE_ROUNDING,
    )


def check_fairness(members: Iterable[PoolMember]) -> tuple[FairnessViolation, ...]:
    """Return every violated rule, in member order. Empty means fair."""
    violations = []
    for member in members:
        before = member.balance_before
        after = member.balance_after
        if before < 0 and after < before:
            violations.append(
                FairnessViolation(
                    member.entity_id,
                    FairnessRule.DEFICIT_MUST_NOT_EXIT_WORSE,
                    before,
                    after,
                )
            )
        elif before > 0 and after < 0:
            violations.append(
                FairnessViolation(
                    member.entity_id,
                    FairnessRule.SURPLUS_MUST_NOT_EXIT_NEGATIVE,
                    before,
                    after,
                )
            )
    return tuple(violations)


def allocate_equal_split(
    period: int,
    balances: Sequence[MemberBalance],
    decimal_places: int = 2,
) -> PoolAllocation:
    """
    Split the members' combined balance equally and validate the result.

    Raises:
        NegativePoolSumError: if the members' balances sum below zero.
        Article21ViolationError: if any member breaks a fairness rule;
            carries every violation.
    """
    total = pool_sum(balances)
    if total < 0:
        raise NegativePoolSumError(period, total)

    share = equal_share(total, len(balances), decimal_places)
    members = tuple(
        PoolMember(
            entity_id=b.entity_id,
            balance_before=b.balance_before,
            balance_after=share,
        )
        for b in balances
    )

    violations = check_fairness(members)
    if violations:
        raise Article21ViolationError(period, violations)

    return PoolAllocation(
        period=period,
        sum_before_pool=total,
        share=share,
        members=members,
    )
