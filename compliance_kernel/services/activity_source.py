"""
ActivitySource -- resolves an activity reference to balance formula inputs.

Responsibility:
    BalanceComputer asks an ActivitySource for the (intensity, throughput) of
    an activity in a period.  SqlActivitySource reads the activity_records
    table.  When the requested period has no record it may fall back to the
    most recent period on file for the same activity; the returned
    ActivityData records which period was actually used.

Failure modes:
    - ActivityNotFoundError listing the periods on file, or stating that the
      activity does not exist at all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_kernel.domain.dtos import ActivityData
from compliance_kernel.exceptions import ActivityNotFoundError
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.activity_record import ActivityRecordModel

logger = get_logger("services.activity_source")


class ActivitySource(ABC):
    """Supplies ActivityData for (activity_ref, period)."""

    @abstractmethod
    def resolve(self, activity_ref: str, period: int) -> ActivityData:
        ...


class SqlActivitySource(ActivitySource):
    """ActivitySource backed by the activity_records table."""

    def __init__(self, session: Session, fallback_to_latest_period: bool = True):
        self._session = session
        self._fallback = fallback_to_latest_period

    @staticmethod
    def _to_activity(record: ActivityRecordModel) -> ActivityData:
        return ActivityData(
            intensity_actual=record.ghg_intensity,
            throughput=record.fuel_consumption,
            source_ref=record.activity_ref,
            source_period=record.period,
        )

    def available_periods(self, activity_ref: str) -> list[int]:
        return list(
            self._session.execute(
                select(ActivityRecordModel.period)
                .where(ActivityRecordModel.activity_ref == activity_ref)
                .order_by(ActivityRecordModel.period)
            ).scalars()
        )

    def resolve(self, activity_ref: str, period: int) -> ActivityData:
        record = self._session.execute(
            select(ActivityRecordModel).where(
                ActivityRecordModel.activity_ref == activity_ref,
                ActivityRecordModel.period == period,
            )
        ).scalar_one_or_none()
        if record is not None:
            return self._to_activity(record)

        periods = self.available_periods(activity_ref)
        if not periods or not self._fallback:
            raise ActivityNotFoundError(activity_ref, period, tuple(periods))

        latest = self._session.execute(
            select(ActivityRecordModel).where(
                ActivityRecordModel.activity_ref == activity_ref,
                ActivityRecordModel.period == periods[-1],
            )
        ).scalar_one()
        logger.warning(
            "activity_period_fallback",
            extra={
                "activity_ref": activity_ref,
                "requested_period": period,
                "used_period": latest.period,
            },
        )
        return self._to_activity(latest)
