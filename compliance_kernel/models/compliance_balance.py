"""
Module: compliance_kernel.models.compliance_balance
Responsibility: ORM persistence for the compliance ledger -- the current
    balance of one entity for one reporting period.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    L1 -- Ledger uniqueness.  At most one row per (entity_id, period),
          enforced by a unique constraint; recomputation updates in place.
    L2 -- Rows are never deleted.  Value may be positive (surplus), negative
          (deficit) or zero.

Failure modes:
    - IntegrityError when two transactions race to insert the first row
      for the same key (surfaced as ConcurrencyConflictError).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base
from compliance_kernel.db.types import QuantityType


class ComplianceBalanceModel(Base):
    """
    Current compliance balance for one (entity_id, period).

    Contract:
        Mutated only by BalanceComputer (upsert) and BankingEngine (bank /
        apply) through ComplianceLedger.  Pool creation never writes here.
    """

    __tablename__ = "compliance_balances"

    __table_args__ = (
        UniqueConstraint(
            "entity_id", "period", name="uq_compliance_balance_entity_period"
        ),
        Index("idx_compliance_balance_period", "period"),
    )

    entity_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    period: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Signed: surplus > 0, deficit < 0
    value: Mapped[Decimal] = mapped_column(
        QuantityType(),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ComplianceBalance {self.entity_id}/{self.period}: {self.value}>"
