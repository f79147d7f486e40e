"""
BankingEngine -- reserve surplus into the bank and apply it back.

Responsibility:
    ``bank`` moves surplus from the ledger into a new FIFO bank entry.
    ``apply`` moves banked amounts back into the ledger, consuming entries
    oldest first.  Both run inside the caller's transaction and flush only.

Invariants enforced:
    - Conservation: for every (entity_id, period),
      ledger + sum(bank entries) is unchanged by bank and apply.
    - bank requires a positive ledger balance of at least the amount.
    - apply requires banked total of at least the amount.
    - FIFO: entries are consumed in seq order.  A fully consumed entry is
      deleted; a partially consumed one keeps its seq with a reduced amount.
    - The ledger row is locked (SELECT ... FOR UPDATE) before any check, so
      the check and the write see the same state.

Failure modes:
    - BalanceNotFoundError: no ledger row for (entity_id, period).
    - InsufficientSurplusError / InsufficientBankedBalanceError.
    Nothing is written when any of these is raised.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.dtos import BankingResult
from compliance_kernel.exceptions import (
    BalanceNotFoundError,
    InsufficientBankedBalanceError,
    InsufficientSurplusError,
)
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.bank_entry import BankEntryModel
from compliance_kernel.models.compliance_balance import ComplianceBalanceModel
from compliance_kernel.services.base import BaseService
from compliance_kernel.services.compliance_ledger import ComplianceLedger
from compliance_kernel.services.sequence_service import (
    SequenceService,
    bank_entry_sequence,
)

logger = get_logger("services.banking_engine")


class BankingEngine(BaseService):
    """Bank and apply surplus for one ledger cell at a time."""

    def __init__(
        self,
        session: Session,
        ledger: ComplianceLedger,
        sequence_service: SequenceService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._ledger = ledger
        self._sequence = sequence_service or SequenceService(session)
        self._clock = clock or SystemClock()

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def _entries(self, entity_id: str, period: int, for_update: bool = False):
        stmt = (
            select(BankEntryModel)
            .where(
                BankEntryModel.entity_id == entity_id,
                BankEntryModel.period == period,
            )
            .order_by(BankEntryModel.seq)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def get_banked_total(self, entity_id: str, period: int) -> Decimal:
        """Sum of outstanding bank entries; zero when there are none."""
        return sum(
            (e.amount for e in self._entries(entity_id, period)),
            Decimal("0"),
        )

    def _locked_balance(self, entity_id: str, period: int) -> ComplianceBalanceModel:
        row = self._ledger.get_for_update(entity_id, period)
        if row is None:
            raise BalanceNotFoundError(entity_id, period)
        return row

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def bank(self, entity_id: str, period: int, amount: Decimal) -> BankingResult:
        """Reserve ``amount`` of surplus. ``amount`` is already validated > 0."""
        row = self._locked_balance(entity_id, period)
        before = row.value

        if before <= 0 or before < amount:
            logger.warning(
                "bank_rejected",
                extra={
                    "entity_id": entity_id,
                    "period": period,
                    "requested": amount,
                    "available": before,
                },
            )
            raise InsufficientSurplusError(entity_id, period, amount, before)

        now = self._clock.now()
        seq = self._sequence.next_value(bank_entry_sequence(entity_id, period))
        self.session.add(
            BankEntryModel(
                entity_id=entity_id,
                period=period,
                seq=seq,
                amount=amount,
                created_at=now,
            )
        )
        row.value = before - amount
        row.updated_at = now
        self.session.flush()

        result = BankingResult(
            entity_id=entity_id,
            period=period,
            balance_before=before,
            applied=amount,
            balance_after=row.value,
            banked_total_after=self.get_banked_total(entity_id, period),
        )
        logger.info(
            "surplus_banked",
            extra={
                "entity_id": entity_id,
                "period": period,
                "amount": amount,
                "seq": seq,
                "balance_before": result.balance_before,
                "balance_after": result.balance_after,
                "banked_total_after": result.banked_total_after,
            },
        )
        return result

    def apply(self, entity_id: str, period: int, amount: Decimal) -> BankingResult:
        """Apply ``amount`` of banked surplus, oldest entries first."""
        row = self._locked_balance(entity_id, period)
        entries = self._entries(entity_id, period, for_update=True)
        available = sum((e.amount for e in entries), Decimal("0"))

        if available < amount:
            logger.warning(
                "apply_rejected",
                extra={
                    "entity_id": entity_id,
                    "period": period,
                    "requested": amount,
                    "available": available,
                },
            )
            raise InsufficientBankedBalanceError(entity_id, period, amount, available)

        remaining = amount
        for entry in entries:
            if remaining <= 0:
                break
            if entry.amount <= remaining:
                remaining -= entry.amount
                logger.debug(
                    "bank_entry_consumed",
                    extra={
                        "entity_id": entity_id,
                        "period": period,
                        "seq": entry.seq,
                        "consumed": entry.amount,
                        "fully_consumed": True,
                    },
                )
                self.session.delete(entry)
            else:
                entry.amount = entry.amount - remaining
                logger.debug(
                    "bank_entry_consumed",
                    extra={
                        "entity_id": entity_id,
                        "period": period,
                        "seq": entry.seq,
                        "consumed": remaining,
                        "fully_consumed": False,
                    },
                )
                remaining = Decimal("0")

        before = row.value
        row.value = before + amount
        row.updated_at = self._clock.now()
        self.session.flush()

        result = BankingResult(
            entity_id=entity_id,
            period=period,
            balance_before=before,
            applied=amount,
            balance_after=row.value,
            banked_total_after=available - amount,
        )
        logger.info(
            "banked_applied",
            extra={
                "entity_id": entity_id,
                "period": period,
                "amount": amount,
                "balance_before": result.balance_before,
                "balance_after": result.balance_after,
                "banked_total_after": result.banked_total_after,
            },
        )
        return result
