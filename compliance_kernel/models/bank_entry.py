"""
Module: compliance_kernel.models.bank_entry
Responsibility: ORM persistence for banked surplus slices.  Each row is one
    bank operation's worth of reserved surplus, consumed FIFO by apply.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    B1 -- amount > 0.  A CHECK constraint backs the service-level rule; an
          entry reduced to zero is deleted, never stored.
    B2 -- FIFO ordering.  seq is allocated from a locked per-key counter and
          is strictly increasing per (entity_id, period); consumption order
          is seq ascending, never wall-clock time.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base
from compliance_kernel.db.types import QuantityType


class BankEntryModel(Base):
    """One FIFO slice of banked surplus for (entity_id, period)."""

    __tablename__ = "bank_entries"

    __table_args__ = (
        UniqueConstraint(
            "entity_id", "period", "seq", name="uq_bank_entry_entity_period_seq"
        ),
        CheckConstraint("CAST(amount AS NUMERIC) > 0", name="ck_bank_entry_amount_positive"),
        Index("idx_bank_entry_period", "period"),
    )

    entity_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    period: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Queue position within (entity_id, period)
    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        QuantityType(),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<BankEntry {self.entity_id}/{self.period} "
            f"#{self.seq}: {self.amount}>"
        )
