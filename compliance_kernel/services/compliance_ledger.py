"""
ComplianceLedger -- authoritative current balance per (entity, period).

Responsibility:
    Reads and writes ComplianceBalanceModel rows.  The only code that
    mutates balances is BalanceComputer (recompute) and BankingEngine
    (bank/apply); both go through ``set_value`` or mutate a row obtained
    from ``get_for_update`` inside their own transaction.

Invariants enforced:
    - One row per (entity_id, period); set_value updates in place.
    - Rows are never deleted.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.dtos import ComplianceBalance
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.compliance_balance import ComplianceBalanceModel
from compliance_kernel.services.base import BaseService

logger = get_logger("services.compliance_ledger")


class ComplianceLedger(BaseService):
    """Current balance store, one row per (entity_id, period)."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _select(self, entity_id: str, period: int):
        return select(ComplianceBalanceModel).where(
            ComplianceBalanceModel.entity_id == entity_id,
            ComplianceBalanceModel.period == period,
        )

    def get(self, entity_id: str, period: int) -> ComplianceBalance | None:
        model = self.session.execute(
            self._select(entity_id, period).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return ComplianceBalance.from_model(model) if model else None

    def get_all(self, period: int) -> list[ComplianceBalance]:
        models = self.session.execute(
            select(ComplianceBalanceModel)
            .where(ComplianceBalanceModel.period == period)
            .order_by(ComplianceBalanceModel.entity_id)
            .execution_options(populate_existing=True)
        ).scalars()
        return [ComplianceBalance.from_model(m) for m in models]

    def get_for_update(self, entity_id: str, period: int) -> ComplianceBalanceModel | None:
        """Load the row with an exclusive row lock held until commit."""
        return self.session.execute(
            self._select(entity_id, period)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def set_value(
        self,
        entity_id: str,
        period: int,
        new_value: Decimal,
    ) -> ComplianceBalance:
        """
        Overwrite the balance, creating the row on first write.

        Internal to the engine: outside callers go through BankingEngine or
        BalanceComputer so the surplus/deficit protocol holds.
        """
        now = self._clock.now()
        model = self.get_for_update(entity_id, period)
        if model is None:
            model = ComplianceBalanceModel(
                entity_id=entity_id,
                period=period,
                value=new_value,
                created_at=now,
                updated_at=now,
            )
            self.session.add(model)
            previous = None
        else:
            previous = model.value
            model.value = new_value
            model.updated_at = now
        self.session.flush()

        logger.debug(
            "ledger_value_set",
            extra={
                "entity_id": entity_id,
                "period": period,
                "previous_value": previous,
                "new_value": new_value,
            },
        )
        return ComplianceBalance.from_model(model)
