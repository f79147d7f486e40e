"""
BalanceComputer -- derives an entity's compliance balance from activity data.

Responsibility:
    Applies the balance formula to an activity and writes the result to the
    ComplianceLedger, replacing any previous value for (entity_id, period).

Invariants enforced:
    - Recomputation overwrites; it never accumulates.
    - The value is rounded HALF_UP to the configured precision before it is
      stored.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from compliance_kernel.domain.balance_formula import (
    DEFAULT_TARGET_INTENSITY,
    compliance_balance_value,
)
from compliance_kernel.domain.dtos import ActivityData, ComplianceBalance
from compliance_kernel.logging_config import get_logger
from compliance_kernel.services.activity_source import ActivitySource
from compliance_kernel.services.base import BaseService
from compliance_kernel.services.compliance_ledger import ComplianceLedger

logger = get_logger("services.balance_computer")


class BalanceComputer(BaseService):
    """Computes and records compliance balances."""

    def __init__(
        self,
        session: Session,
        ledger: ComplianceLedger,
        activity_source: ActivitySource | None = None,
        target_intensity: Decimal = DEFAULT_TARGET_INTENSITY,
        decimal_places: int = 2,
    ):
        super().__init__(session)
        self._ledger = ledger
        self._activity_source = activity_source
        self._target_intensity = target_intensity
        self._decimal_places = decimal_places

    def compute(
        self,
        entity_id: str,
        period: int,
        activity: ActivityData,
    ) -> ComplianceBalance:
        value = compliance_balance_value(
            activity,
            target_intensity=self._target_intensity,
            decimal_places=self._decimal_places,
        )
        balance = self._ledger.set_value(entity_id, period, value)

        logger.info(
            "balance_computed",
            extra={
                "entity_id": entity_id,
                "period": period,
                "value": value,
                "status": balance.status.value,
                "intensity_actual": activity.intensity_actual,
                "throughput": activity.throughput,
                "activity_ref": activity.source_ref,
                "activity_period": activity.source_period,
            },
        )
        return balance

    def compute_for_activity(
        self,
        entity_id: str,
        period: int,
        activity_ref: str,
    ) -> ComplianceBalance:
        """Resolve ``activity_ref`` through the activity source, then compute."""
        if self._activity_source is None:
            raise RuntimeError("BalanceComputer has no activity source configured")
        activity = self._activity_source.resolve(activity_ref, period)
        return self.compute(entity_id, period, activity)
