"""
PoolAllocationEngine -- records pooling events between entities of a period.

Responsibility:
    Reads each member's current ledger balance, runs the equal-split
    allocation with its fairness checks, and persists the pool with one
    member row per entity.  Pool history is append-only.

Invariants enforced:
    - Every member must have a ledger row for the period.
    - A pool is persisted only when the allocation passed every check; on
      rejection nothing is written.
    - Pool creation records history only.  The ledger balances of the
      members are left untouched; consumers reconciling pooled outcomes
      read balance_after from the pool record.

Failure modes:
    - MissingBalanceError for the first member without a ledger row.
    - NegativePoolSumError / Article21ViolationError from the allocation.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.dtos import Pool
from compliance_kernel.domain.pooling import MemberBalance, allocate_equal_split
from compliance_kernel.exceptions import MissingBalanceError, PoolingError
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.pool import PoolMemberModel, PoolModel
from compliance_kernel.selectors.pool_selector import PoolSelector
from compliance_kernel.services.base import BaseService
from compliance_kernel.services.compliance_ledger import ComplianceLedger
from compliance_kernel.services.sequence_service import SequenceService

logger = get_logger("services.pool_allocation_engine")


class PoolAllocationEngine(BaseService):
    """Creates and lists pools."""

    def __init__(
        self,
        session: Session,
        ledger: ComplianceLedger,
        sequence_service: SequenceService | None = None,
        clock: Clock | None = None,
        decimal_places: int = 2,
    ):
        super().__init__(session)
        self._ledger = ledger
        self._sequence = sequence_service or SequenceService(session)
        self._clock = clock or SystemClock()
        self._decimal_places = decimal_places
        self._selector = PoolSelector(session)

    def _member_balances(
        self,
        period: int,
        member_entity_ids: tuple[str, ...],
    ) -> list[MemberBalance]:
        balances = []
        for entity_id in member_entity_ids:
            balance = self._ledger.get(entity_id, period)
            if balance is None:
                raise MissingBalanceError(entity_id, period)
            balances.append(MemberBalance(entity_id, balance.value))
        return balances

    def create_pool(
        self,
        period: int,
        member_entity_ids: tuple[str, ...],
        name: str | None = None,
    ) -> Pool:
        balances = self._member_balances(period, member_entity_ids)

        try:
            allocation = allocate_equal_split(
                period, balances, decimal_places=self._decimal_places
            )
        except PoolingError as exc:
            logger.warning(
                "pool_rejected",
                extra={
                    "period": period,
                    "members": list(member_entity_ids),
                    "error_code": exc.code,
                    "reason": str(exc),
                },
            )
            raise

        pool = PoolModel(
            id=uuid4(),
            name=name,
            period=period,
            seq=self._sequence.next_value(SequenceService.POOL),
            sum_before_pool=allocation.sum_before_pool,
            created_at=self._clock.now(),
            members=[
                PoolMemberModel(
                    entity_id=member.entity_id,
                    position=position,
                    balance_before=member.balance_before,
                    balance_after=member.balance_after,
                )
                for position, member in enumerate(allocation.members)
            ],
        )
        self.session.add(pool)
        self.session.flush()

        logger.info(
            "pool_created",
            extra={
                "pool_id": str(pool.id),
                "period": period,
                "member_count": len(allocation.members),
                "sum_before_pool": allocation.sum_before_pool,
                "share": allocation.share,
            },
        )
        return Pool(
            pool_id=pool.id,
            name=pool.name,
            period=pool.period,
            created_at=pool.created_at,
            sum_before_pool=allocation.sum_before_pool,
            members=allocation.members,
        )

    def get_all_pools(self, period: int | None = None) -> list[Pool]:
        return self._selector.get_all_pools(period)

    def get_pool(self, pool_id: UUID) -> Pool | None:
        return self._selector.get_pool(pool_id)
