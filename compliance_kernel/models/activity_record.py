"""
Module: compliance_kernel.models.activity_record
Responsibility: ORM persistence for reporting activity (one voyage/route per
    period) that balances are derived from.  The kernel only reads these rows;
    managing them is the job of whatever system feeds the table.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    A1 -- One record per (activity_ref, period).
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base
from compliance_kernel.db.types import QuantityType


class ActivityRecordModel(Base):
    """Reported activity for one route/voyage in one period."""

    __tablename__ = "activity_records"

    __table_args__ = (
        UniqueConstraint("activity_ref", "period", name="uq_activity_ref_period"),
        Index("idx_activity_ref", "activity_ref"),
    )

    activity_ref: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    period: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    vessel_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    fuel_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Actual GHG intensity (gCO2e/MJ)
    ghg_intensity: Mapped[Decimal] = mapped_column(
        QuantityType(20, 6),
        nullable=False,
    )

    # Energy in scope (MJ); the throughput of the balance formula
    fuel_consumption: Mapped[Decimal] = mapped_column(
        QuantityType(),
        nullable=False,
    )

    distance: Mapped[Decimal] = mapped_column(
        QuantityType(20, 2),
        nullable=False,
    )

    total_emissions: Mapped[Decimal] = mapped_column(
        QuantityType(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityRecord {self.activity_ref}/{self.period}: "
            f"{self.ghg_intensity} x {self.fuel_consumption}>"
        )
