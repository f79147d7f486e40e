"""
ComplianceOrchestrator -- the engine's public entry point.

Responsibility:
    Validates caller input into typed request records, opens one transaction
    per operation, wires the ledger, banking and pooling services onto that
    transaction, and commits or rolls back as a unit.  Database failures are
    translated into the kernel's error types here and nowhere else.

Architecture position:
    Kernel > Services.  The only service that owns transaction boundaries.

Invariants enforced:
    - Validation happens before any read or write.
    - Operations on the same (entity_id, period) are linearizable: an
      in-process keyed lock serializes them, and the ledger row is locked
      with SELECT ... FOR UPDATE inside the transaction.
    - Operations on different keys proceed in parallel.
    - Every operation is all-or-nothing.

Failure modes:
    - InvalidArgumentError from request parsing.
    - Business errors from the services, propagated unchanged.
    - ConcurrencyConflictError for lock timeouts, serialization failures,
      deadlocks and constraint races.  Retrying is safe.
    - StorageFailureError for any other database failure.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Generator, Hashable, Iterable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from compliance_kernel.db.engine import get_session_factory, session_scope
from compliance_kernel.db.key_lock import KeyedLock, LockTimeout
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.dtos import (
    BankingResult,
    ComplianceBalance,
    FleetSummary,
    Pool,
)
from compliance_kernel.domain.requests import (
    ApplyBankedRequest,
    BalanceKey,
    BankSurplusRequest,
    ComputeBalanceRequest,
    CreatePoolRequest,
    parse_period,
)
from compliance_kernel.domain.settings import DEFAULT_SETTINGS, EngineSettings
from compliance_kernel.exceptions import (
    BalanceNotFoundError,
    ConcurrencyConflictError,
    InvalidArgumentError,
    PoolNotFoundError,
    StorageFailureError,
)
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.selectors.ledger_selector import LedgerSelector
from compliance_kernel.services.activity_source import SqlActivitySource
from compliance_kernel.services.balance_computer import BalanceComputer
from compliance_kernel.services.banking_engine import BankingEngine
from compliance_kernel.services.compliance_ledger import ComplianceLedger
from compliance_kernel.services.pool_allocation_engine import PoolAllocationEngine
from compliance_kernel.services.sequence_service import SequenceService

logger = get_logger("services.compliance_orchestrator")

T = TypeVar("T")

# SQLSTATEs that mean "another transaction got in the way"
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_CONFLICT_MESSAGES = ("database is locked", "deadlock", "could not serialize")


def _is_conflict(exc: DBAPIError) -> bool:
    if isinstance(exc, IntegrityError):
        return True
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in _CONFLICT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return isinstance(exc, OperationalError) and any(
        m in message for m in _CONFLICT_MESSAGES
    )


class _UnitOfWork:
    """Services bound to one session."""

    def __init__(self, session: Session, clock: Clock, settings: EngineSettings):
        self.session = session
        self.ledger = ComplianceLedger(session, clock)
        self.sequences = SequenceService(session)
        self.balances = BalanceComputer(
            session,
            self.ledger,
            activity_source=SqlActivitySource(
                session,
                fallback_to_latest_period=settings.activity_fallback_to_latest_period,
            ),
            target_intensity=settings.target_intensity,
            decimal_places=settings.decimal_places,
        )
        self.banking = BankingEngine(session, self.ledger, self.sequences, clock)
        self.pools = PoolAllocationEngine(
            session,
            self.ledger,
            self.sequences,
            clock,
            decimal_places=settings.decimal_places,
        )
        self.selector = LedgerSelector(session)


class ComplianceOrchestrator:
    """
    Facade over the compliance engine.

    Usage:
        orchestrator = ComplianceOrchestrator(session_factory, settings)
        orchestrator.compute_balance("V-001", 2024, "R001")
        orchestrator.bank_surplus("V-001", 2024, "1000.00")

    Thread-safe: share one instance between worker threads so they share
    the keyed lock registry.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        settings: EngineSettings = DEFAULT_SETTINGS,
        clock: Clock | None = None,
        key_lock: KeyedLock | None = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._settings = settings
        self._clock = clock or SystemClock()
        self._locks = key_lock or KeyedLock()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    # -----------------------------------------------------------------
    # Transaction plumbing
    # -----------------------------------------------------------------

    @contextmanager
    def _locked(self, key: Hashable | None) -> Generator[None, None, None]:
        if key is None:
            yield
            return
        try:
            with self._locks.hold(key, timeout=self._settings.lock_timeout_seconds):
                yield
        except LockTimeout as exc:
            raise ConcurrencyConflictError(
                f"{key[0]}/{key[1]}",
                f"lock not acquired within {exc.timeout}s",
            ) from exc

    def _execute(
        self,
        operation: str,
        work: Callable[[_UnitOfWork], T],
        key: tuple[str, int] | None = None,
        **context: Any,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            **context,
        ):
            try:
                with self._locked(key):
                    with session_scope(self._session_factory) as session:
                        return work(_UnitOfWork(session, self._clock, self._settings))
            except DBAPIError as exc:
                resource = f"{key[0]}/{key[1]}" if key else operation
                if _is_conflict(exc):
                    logger.warning(
                        "concurrency_conflict",
                        extra={"resource": resource, "reason": str(exc.orig)},
                    )
                    raise ConcurrencyConflictError(resource, str(exc.orig)) from exc
                logger.error(
                    "storage_failure",
                    extra={"resource": resource, "reason": str(exc.orig)},
                )
                raise StorageFailureError(operation, str(exc.orig)) from exc

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def compute_balance(
        self,
        entity_id: Any,
        period: Any,
        activity_ref: Any,
    ) -> ComplianceBalance:
        request = ComputeBalanceRequest.parse(
            entity_id, period, activity_ref, self._settings.limits
        )
        return self._execute(
            "compute_balance",
            lambda uow: uow.balances.compute_for_activity(
                request.entity_id, request.period, request.activity_ref
            ),
            key=(request.entity_id, request.period),
            entity_id=request.entity_id,
            period=request.period,
        )

    def bank_surplus(self, entity_id: Any, period: Any, amount: Any) -> BankingResult:
        request = BankSurplusRequest.parse(
            entity_id, period, amount, self._settings.limits
        )
        return self._execute(
            "bank_surplus",
            lambda uow: uow.banking.bank(
                request.entity_id, request.period, request.amount
            ),
            key=(request.entity_id, request.period),
            entity_id=request.entity_id,
            period=request.period,
        )

    def apply_banked(self, entity_id: Any, period: Any, amount: Any) -> BankingResult:
        request = ApplyBankedRequest.parse(
            entity_id, period, amount, self._settings.limits
        )
        return self._execute(
            "apply_banked",
            lambda uow: uow.banking.apply(
                request.entity_id, request.period, request.amount
            ),
            key=(request.entity_id, request.period),
            entity_id=request.entity_id,
            period=request.period,
        )

    def create_pool(
        self,
        period: Any,
        member_entity_ids: Iterable[Any],
        name: Any = None,
    ) -> Pool:
        request = CreatePoolRequest.parse(
            period, member_entity_ids, name, self._settings.limits
        )
        return self._execute(
            "create_pool",
            lambda uow: uow.pools.create_pool(
                request.period, request.member_entity_ids, request.name
            ),
            period=request.period,
        )

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def get_balance(self, entity_id: Any, period: Any) -> ComplianceBalance:
        key = BalanceKey.parse(entity_id, period, self._settings.limits)

        def work(uow: _UnitOfWork) -> ComplianceBalance:
            balance = uow.ledger.get(key.entity_id, key.period)
            if balance is None:
                raise BalanceNotFoundError(key.entity_id, key.period)
            return balance

        return self._execute(
            "get_balance", work, entity_id=key.entity_id, period=key.period
        )

    def list_balances(self, period: Any) -> list[ComplianceBalance]:
        period = parse_period(period, self._settings.limits)
        return self._execute(
            "list_balances", lambda uow: uow.ledger.get_all(period), period=period
        )

    def get_banked_total(self, entity_id: Any, period: Any) -> Decimal:
        key = BalanceKey.parse(entity_id, period, self._settings.limits)
        return self._execute(
            "get_banked_total",
            lambda uow: uow.banking.get_banked_total(key.entity_id, key.period),
            entity_id=key.entity_id,
            period=key.period,
        )

    def fleet_summary(self, period: Any) -> FleetSummary:
        period = parse_period(period, self._settings.limits)
        return self._execute(
            "fleet_summary",
            lambda uow: uow.selector.fleet_summary(period),
            period=period,
        )

    def list_pools(self, period: Any = None) -> list[Pool]:
        if period is not None:
            period = parse_period(period, self._settings.limits)
        return self._execute(
            "list_pools", lambda uow: uow.pools.get_all_pools(period), period=period
        )

    def get_pool(self, pool_id: Any) -> Pool:
        if isinstance(pool_id, UUID):
            parsed = pool_id
        else:
            try:
                parsed = UUID(str(pool_id).strip())
            except ValueError:
                raise InvalidArgumentError("pool_id", f"not a UUID: {pool_id!r}") from None

        def work(uow: _UnitOfWork) -> Pool:
            pool = uow.pools.get_pool(parsed)
            if pool is None:
                raise PoolNotFoundError(str(parsed))
            return pool

        return self._execute("get_pool", work, pool_id=str(parsed))
