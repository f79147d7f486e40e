"""
Module: compliance_kernel.selectors.ledger_selector
Responsibility: Read-only views over the compliance ledger and the bank:
    per-period balance listings, outstanding bank entries, and the fleet
    summary for a period.
Architecture position: Kernel > Selectors.

Failure modes:
    - Returns empty lists and zero totals when nothing is recorded.

Amounts are summed in Python over Decimal values so totals are exact on
every backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from compliance_kernel.domain.dtos import (
    ComplianceBalance,
    ComplianceStatus,
    FleetSummary,
)
from compliance_kernel.models.bank_entry import BankEntryModel
from compliance_kernel.models.compliance_balance import ComplianceBalanceModel
from compliance_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class BankEntry:
    """One outstanding slice of banked surplus."""

    entity_id: str
    period: int
    seq: int
    amount: Decimal
    created_at: datetime


class LedgerSelector(BaseSelector[ComplianceBalanceModel]):
    """Read-only queries over balances and bank entries."""

    def balance(self, entity_id: str, period: int) -> ComplianceBalance | None:
        model = self.session.execute(
            select(ComplianceBalanceModel).where(
                ComplianceBalanceModel.entity_id == entity_id,
                ComplianceBalanceModel.period == period,
            )
        ).scalar_one_or_none()
        return ComplianceBalance.from_model(model) if model else None

    def balances(self, period: int) -> list[ComplianceBalance]:
        """All balances in ``period``, ordered by entity_id."""
        models = self.session.execute(
            select(ComplianceBalanceModel)
            .where(ComplianceBalanceModel.period == period)
            .order_by(ComplianceBalanceModel.entity_id)
        ).scalars()
        return [ComplianceBalance.from_model(m) for m in models]

    def bank_entries(self, entity_id: str, period: int) -> list[BankEntry]:
        """Outstanding entries in FIFO order."""
        models = self.session.execute(
            select(BankEntryModel)
            .where(
                BankEntryModel.entity_id == entity_id,
                BankEntryModel.period == period,
            )
            .order_by(BankEntryModel.seq)
        ).scalars()
        return [
            BankEntry(
                entity_id=m.entity_id,
                period=m.period,
                seq=m.seq,
                amount=m.amount,
                created_at=m.created_at,
            )
            for m in models
        ]

    def banked_total(self, entity_id: str, period: int) -> Decimal:
        return sum(
            (e.amount for e in self.bank_entries(entity_id, period)),
            Decimal("0"),
        )

    def fleet_summary(self, period: int) -> FleetSummary:
        """Totals and surplus/deficit counts across every entity in ``period``."""
        balances = self.balances(period)
        banked = self.session.execute(
            select(BankEntryModel.amount).where(BankEntryModel.period == period)
        ).scalars()

        counts = {status: 0 for status in ComplianceStatus}
        for b in balances:
            counts[b.status] += 1

        return FleetSummary(
            period=period,
            total_balance=sum((b.value for b in balances), Decimal("0")),
            total_banked=sum(banked, Decimal("0")),
            surplus_count=counts[ComplianceStatus.SURPLUS],
            deficit_count=counts[ComplianceStatus.DEFICIT],
            neutral_count=counts[ComplianceStatus.NEUTRAL],
        )
