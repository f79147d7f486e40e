"""
Module: compliance_kernel.models.pool
Responsibility: ORM persistence for pool history -- one PoolModel per pooling
    event with its PoolMemberModel rows.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    P1 -- sum_before_pool equals the sum of member balance_before, computed
          once at creation.
    P2 -- Append-only.  Pools and members are written once in the same
          transaction and never updated or deleted (db/immutability.py).
    P3 -- One member row per (pool_id, entity_id).
    P4 -- seq is allocated from a locked counter and orders pools by
          creation, independent of clock resolution.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compliance_kernel.db.base import Base, UUIDString
from compliance_kernel.db.types import QuantityType


class PoolModel(Base):
    """A recorded pooling event."""

    __tablename__ = "pools"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_pool_seq"),
        Index("idx_pool_period", "period"),
    )

    name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    period: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    sum_before_pool: Mapped[Decimal] = mapped_column(
        QuantityType(),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    members: Mapped[list[PoolMemberModel]] = relationship(
        back_populates="pool",
        order_by="PoolMemberModel.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Pool {self.id}: period={self.period} sum={self.sum_before_pool}>"


class PoolMemberModel(Base):
    """One entity's before/after balance within a pool."""

    __tablename__ = "pool_members"

    __table_args__ = (
        UniqueConstraint("pool_id", "entity_id", name="uq_pool_member_pool_entity"),
        Index("idx_pool_member_pool", "pool_id"),
    )

    pool_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("pools.id"),
        nullable=False,
    )

    entity_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Order in which members were supplied
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    balance_before: Mapped[Decimal] = mapped_column(
        QuantityType(),
        nullable=False,
    )

    balance_after: Mapped[Decimal] = mapped_column(
        QuantityType(),
        nullable=False,
    )

    pool: Mapped[PoolModel] = relationship(back_populates="members")

    def __repr__(self) -> str:
        return (
            f"<PoolMember {self.entity_id}: "
            f"{self.balance_before} -> {self.balance_after}>"
        )
