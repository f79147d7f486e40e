"""
Pytest fixtures for the compliance kernel test suite.

Provides:
- A session-scoped engine and schema
- Rolled-back sessions for service tests
- Committing session factories for orchestrator and concurrency tests
- Service, clock and configuration fixtures

Environment Variables:
- DATABASE_URL: database connection URL.  If not set, a temporary SQLite
  file is used.  Tests marked ``postgres`` are skipped unless the URL
  points at PostgreSQL.
"""

import json
import logging
import os
import tempfile
import threading
from decimal import Decimal
from io import StringIO
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from compliance_config.schema import EngineConfig
from compliance_kernel.db.base import Base
from compliance_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from compliance_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from compliance_kernel.db.key_lock import KeyedLock
from compliance_kernel.domain.clock import DeterministicClock
from compliance_kernel.domain.settings import EngineSettings
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from compliance_kernel.models.activity_record import ActivityRecordModel
from compliance_kernel.services.activity_source import SqlActivitySource
from compliance_kernel.services.balance_computer import BalanceComputer
from compliance_kernel.services.banking_engine import BankingEngine
from compliance_kernel.services.compliance_ledger import ComplianceLedger
from compliance_kernel.services.compliance_orchestrator import ComplianceOrchestrator
from compliance_kernel.services.pool_allocation_engine import PoolAllocationEngine
from compliance_kernel.services.sequence_service import SequenceService

_DEFAULT_SQLITE_PATH = Path(tempfile.gettempdir()) / f"compliance_kernel_test_{os.getpid()}.db"
DEFAULT_DATABASE_URL = f"sqlite:///{_DEFAULT_SQLITE_PATH}"


def get_database_url() -> str:
    """Database URL from the environment, or a temporary SQLite file."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def _is_postgres_url(url: str) -> bool:
    return make_url(url).get_backend_name() == "postgresql"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


def pytest_collection_modifyitems(config, items):
    if _is_postgres_url(get_database_url()):
        return
    skip_pg = pytest.mark.skip(reason="requires DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_pg)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, banking_engine):
            banking_engine.bank(...)
            logs = captured_logs()
            assert any(r["message"] == "surplus_banked" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Session-scoped DB infrastructure (engine + tables once per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session.

    Pool is large enough for the concurrency tests.
    """
    eng = init_engine_from_url(
        get_database_url(),
        echo=False,
        pool_size=30,
        max_overflow=20,
        pool_timeout=10,
    )
    yield eng
    reset_engine()
    if not os.environ.get("DATABASE_URL"):
        _DEFAULT_SQLITE_PATH.unlink(missing_ok=True)


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


def _truncate_all_tables(engine):
    """Remove every row from every table (real-commit tests only)."""
    table_names = [t.name for t in reversed(Base.metadata.sorted_tables)]
    with engine.connect() as conn:
        if engine.dialect.name == "postgresql":
            conn.execute(text("TRUNCATE " + ", ".join(table_names) + " CASCADE"))
        else:
            for name in table_names:
                conn.execute(text(f"DELETE FROM {name}"))
        conn.commit()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for service tests.

    The session joins an outer transaction on a dedicated connection;
    ``session.commit()`` only releases a savepoint and the outer
    transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Real-commit fixtures (orchestrator and concurrency tests)
# =============================================================================


@pytest.fixture(scope="function")
def session_factory(db_engine, db_tables):
    """Tracked session factory that performs real commits.

    On teardown every created session is closed and all rows are removed.
    Do not combine with the ``session`` fixture in one test: on SQLite the
    rolled-back session holds the write lock for the whole test.
    """
    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()
    closed = False

    def tracked_factory():
        with lock:
            if closed:
                raise RuntimeError("session_factory closed (fixture teardown)")
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    with lock:
        closed = True

    for s in created_sessions:
        if s.is_active:
            s.rollback()
        s.close()

    _truncate_all_tables(db_engine)


# =============================================================================
# Clock and configuration fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def engine_config() -> EngineConfig:
    """In-code default configuration."""
    return EngineConfig()


@pytest.fixture
def engine_settings() -> EngineSettings:
    """Kernel settings with a short lock timeout for tests."""
    return EngineSettings(lock_timeout_seconds=5.0)


# =============================================================================
# Service fixtures (rolled-back session)
# =============================================================================


@pytest.fixture
def ledger(session: Session, deterministic_clock) -> ComplianceLedger:
    return ComplianceLedger(session, deterministic_clock)


@pytest.fixture
def sequence_service(session: Session) -> SequenceService:
    return SequenceService(session)


@pytest.fixture
def activity_source(session: Session) -> SqlActivitySource:
    return SqlActivitySource(session)


@pytest.fixture
def balance_computer(session: Session, ledger, activity_source) -> BalanceComputer:
    return BalanceComputer(session, ledger, activity_source)


@pytest.fixture
def banking_engine(session: Session, ledger, sequence_service, deterministic_clock) -> BankingEngine:
    return BankingEngine(session, ledger, sequence_service, deterministic_clock)


@pytest.fixture
def pool_engine(session: Session, ledger, sequence_service, deterministic_clock) -> PoolAllocationEngine:
    return PoolAllocationEngine(session, ledger, sequence_service, deterministic_clock)


@pytest.fixture
def set_balance(ledger):
    """Write a ledger balance directly: ``set_balance("V-001", 2024, "100")``."""

    def _set(entity_id: str, period: int, value) -> None:
        ledger.set_value(entity_id, period, Decimal(str(value)))

    return _set


@pytest.fixture
def add_activity(session: Session):
    """Insert an activity record into the rolled-back session."""

    def _add(activity_ref: str, period: int, intensity, consumption) -> ActivityRecordModel:
        record = ActivityRecordModel(
            activity_ref=activity_ref,
            period=period,
            vessel_type="Container Ship",
            fuel_type="HFO",
            ghg_intensity=Decimal(str(intensity)),
            fuel_consumption=Decimal(str(consumption)),
            distance=Decimal("1000"),
            total_emissions=Decimal("0"),
        )
        session.add(record)
        session.flush()
        return record

    return _add


# =============================================================================
# Orchestrator fixtures (real commits)
# =============================================================================


@pytest.fixture
def orchestrator(session_factory, engine_settings, deterministic_clock) -> ComplianceOrchestrator:
    return ComplianceOrchestrator(
        session_factory,
        settings=engine_settings,
        clock=deterministic_clock,
        key_lock=KeyedLock(),
    )


@pytest.fixture
def committed_balance(session_factory, deterministic_clock):
    """Commit a ledger balance outside the orchestrator."""

    def _set(entity_id: str, period: int, value) -> None:
        sess = session_factory()
        try:
            ComplianceLedger(sess, deterministic_clock).set_value(
                entity_id, period, Decimal(str(value))
            )
            sess.commit()
        finally:
            sess.close()

    return _set
