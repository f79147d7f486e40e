"""
Module: compliance_kernel.selectors.pool_selector
Responsibility: Read-only access to pool history.
Architecture position: Kernel > Selectors.

Pools are listed most recent first, by their allocated sequence number
rather than created_at, so ordering does not depend on clock resolution.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from compliance_kernel.domain.dtos import Pool
from compliance_kernel.models.pool import PoolModel
from compliance_kernel.selectors.base import BaseSelector


class PoolSelector(BaseSelector[PoolModel]):
    """Queries over recorded pools."""

    def get_pool(self, pool_id: UUID) -> Pool | None:
        model = self.session.get(PoolModel, pool_id)
        return Pool.from_model(model) if model else None

    def get_all_pools(self, period: int | None = None) -> list[Pool]:
        stmt = select(PoolModel).order_by(PoolModel.seq.desc())
        if period is not None:
            stmt = stmt.where(PoolModel.period == period)
        return [Pool.from_model(m) for m in self.session.execute(stmt).scalars()]
