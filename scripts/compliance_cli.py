#!/usr/bin/env python3
"""
Command-line front end for the compliance engine.

Usage:
    python3 scripts/compliance_cli.py seed
    python3 scripts/compliance_cli.py compute V-001 2024 R001
    python3 scripts/compliance_cli.py bank V-001 2024 1000.00
    python3 scripts/compliance_cli.py apply V-001 2024 250
    python3 scripts/compliance_cli.py pool 2024 V-001 V-002 --name "Q4 pool"
    python3 scripts/compliance_cli.py pools --period 2024
    python3 scripts/compliance_cli.py summary 2024

Exit codes: 0 success, 1 rejected request, 2 storage, concurrency or
configuration failure.
"""

from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal
from pathlib import Path
from typing import Sequence

import yaml
from sqlalchemy import select

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from compliance_config import get_active_config  # noqa: E402
from compliance_config.bridges import build_engine_settings  # noqa: E402
from compliance_kernel.db.engine import (  # noqa: E402
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from compliance_kernel.db.immutability import register_immutability_listeners  # noqa: E402
from compliance_kernel.domain.dtos import BankingResult, ComplianceBalance, Pool  # noqa: E402
from compliance_kernel.exceptions import (  # noqa: E402
    ActivityNotFoundError,
    Article21ViolationError,
    ComplianceKernelError,
    ConcurrencyConflictError,
    InsufficientBankedBalanceError,
    InsufficientSurplusError,
    InvalidArgumentError,
    NegativePoolSumError,
    NotFoundError,
    StorageFailureError,
)
from compliance_kernel.logging_config import configure_logging  # noqa: E402
from compliance_kernel.models.activity_record import ActivityRecordModel  # noqa: E402
from compliance_kernel.services.compliance_orchestrator import (  # noqa: E402
    ComplianceOrchestrator,
)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_FAILURE = 2

# Reference routes for the 2024 reporting period
SEED_ACTIVITIES = (
    ("R001", 2024, "Container Ship", "HFO", "91.5", "5000000", "1200", "457500000"),
    ("R002", 2024, "Tanker", "VLSFO", "88.2", "6000000", "1500", "529200000"),
    ("R003", 2024, "Bulk Carrier", "MGO", "85.3", "4500000", "1000", "383850000"),
    ("R004", 2024, "Container Ship", "LNG", "78.5", "5500000", "1300", "431750000"),
    ("R005", 2024, "Tanker", "HFO", "92.8", "7000000", "1800", "649600000"),
)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def fmt_amount(value: Decimal) -> str:
    return f"{value:,.2f}"


def format_error(exc: ComplianceKernelError) -> str:
    """One human-readable line per error kind, prefixed with its code."""
    if isinstance(exc, InvalidArgumentError):
        text = f"Invalid input for {exc.field}: {exc.reason}"
    elif isinstance(exc, ActivityNotFoundError):
        text = str(exc)
    elif isinstance(exc, NotFoundError):
        text = f"Not found: {exc}"
    elif isinstance(exc, InsufficientSurplusError):
        text = (
            f"Cannot bank {fmt_amount(exc.requested)} for {exc.entity_id}/{exc.period}: "
            f"only {fmt_amount(exc.available)} surplus available"
        )
    elif isinstance(exc, InsufficientBankedBalanceError):
        text = (
            f"Cannot apply {fmt_amount(exc.requested)} for {exc.entity_id}/{exc.period}: "
            f"only {fmt_amount(exc.available)} banked"
        )
    elif isinstance(exc, NegativePoolSumError):
        text = f"Pool rejected: combined balance {fmt_amount(exc.pool_sum)} is negative"
    elif isinstance(exc, Article21ViolationError):
        text = "Pool rejected:\n" + "\n".join(
            f"  - {v.describe()}" for v in exc.violations
        )
    elif isinstance(exc, ConcurrencyConflictError):
        text = f"Conflicting update on {exc.resource}, retry: {exc.reason}"
    elif isinstance(exc, StorageFailureError):
        text = f"Storage failure during {exc.operation}: {exc.reason}"
    else:
        text = str(exc)
    return f"[{exc.code}] {text}"


def exit_code_for(exc: ComplianceKernelError) -> int:
    if isinstance(exc, (ConcurrencyConflictError, StorageFailureError)):
        return EXIT_FAILURE
    return EXIT_REJECTED


def print_balance(balance: ComplianceBalance) -> None:
    print(
        f"  {balance.entity_id:<20} {balance.period}  "
        f"{fmt_amount(balance.value):>22}  {balance.status.value}"
    )


def print_banking(verb: str, result: BankingResult) -> None:
    print(f"  {verb} {fmt_amount(result.applied)} for {result.entity_id}/{result.period}")
    print(f"    balance: {fmt_amount(result.balance_before)} -> {fmt_amount(result.balance_after)}")
    print(f"    banked:  {fmt_amount(result.banked_total_after)}")


def print_pool(pool: Pool) -> None:
    label = f" ({pool.name})" if pool.name else ""
    print(f"  Pool {pool.pool_id}{label}  period {pool.period}  created {pool.created_at:%Y-%m-%d %H:%M}")
    print(f"    sum before: {fmt_amount(pool.sum_before_pool)}  after: {fmt_amount(pool.sum_after_pool)}")
    for m in pool.members:
        print(
            f"    {m.entity_id:<20} {fmt_amount(m.balance_before):>22} -> "
            f"{fmt_amount(m.balance_after):>22}"
        )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def seed_activity_records(session) -> int:
    """Insert the reference routes that are not already present."""
    rows = session.execute(
        select(ActivityRecordModel.activity_ref, ActivityRecordModel.period)
    )
    existing = {(ref, period) for ref, period in rows}
    added = 0
    for ref, period, vessel, fuel, intensity, consumption, distance, emissions in SEED_ACTIVITIES:
        if (ref, period) in existing:
            continue
        session.add(
            ActivityRecordModel(
                activity_ref=ref,
                period=period,
                vessel_type=vessel,
                fuel_type=fuel,
                ghg_intensity=Decimal(intensity),
                fuel_consumption=Decimal(consumption),
                distance=Decimal(distance),
                total_emissions=Decimal(emissions),
            )
        )
        added += 1
    session.flush()
    return added


def run_command(args: argparse.Namespace, orchestrator: ComplianceOrchestrator) -> int:
    command = args.command

    if command == "init-db":
        create_tables()
        print("  Tables created.")
    elif command == "seed":
        create_tables()
        with session_scope(get_session_factory()) as session:
            added = seed_activity_records(session)
        print(f"  Seeded {added} activity records.")
    elif command == "compute":
        print_balance(orchestrator.compute_balance(args.entity_id, args.period, args.activity_ref))
    elif command == "bank":
        print_banking("Banked", orchestrator.bank_surplus(args.entity_id, args.period, args.amount))
    elif command == "apply":
        print_banking("Applied", orchestrator.apply_banked(args.entity_id, args.period, args.amount))
    elif command == "pool":
        print_pool(orchestrator.create_pool(args.period, args.members, args.name))
    elif command == "pools":
        pools = orchestrator.list_pools(args.period)
        if not pools:
            print("  No pools recorded.")
        for pool in pools:
            print_pool(pool)
    elif command == "pool-show":
        print_pool(orchestrator.get_pool(args.pool_id))
    elif command == "balance":
        print_balance(orchestrator.get_balance(args.entity_id, args.period))
        banked = orchestrator.get_banked_total(args.entity_id, args.period)
        print(f"  banked: {fmt_amount(banked)}")
    elif command == "balances":
        balances = orchestrator.list_balances(args.period)
        if not balances:
            print(f"  No balances for {args.period}.")
        for balance in balances:
            print_balance(balance)
    elif command == "summary":
        summary = orchestrator.fleet_summary(args.period)
        print(f"  Period {summary.period}: {summary.entity_count} entities")
        print(f"    total balance: {fmt_amount(summary.total_balance)}")
        print(f"    total banked:  {fmt_amount(summary.total_banked)}")
        print(
            f"    surplus {summary.surplus_count}  deficit {summary.deficit_count}  "
            f"neutral {summary.neutral_count}"
        )
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compliance ledger, banking and pooling.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=None, help="Engine configuration YAML")
    parser.add_argument("--db-url", type=str, default=None, help="Override the configured database URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log INFO events to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables")
    sub.add_parser("seed", help="Create tables and load reference routes")

    p = sub.add_parser("compute", help="Compute a balance from an activity record")
    p.add_argument("entity_id")
    p.add_argument("period")
    p.add_argument("activity_ref")

    for name, help_text in (("bank", "Bank surplus"), ("apply", "Apply banked surplus")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("entity_id")
        p.add_argument("period")
        p.add_argument("amount")

    p = sub.add_parser("pool", help="Create a pool")
    p.add_argument("period")
    p.add_argument("members", nargs="+")
    p.add_argument("--name", default=None)

    p = sub.add_parser("pools", help="List pools, most recent first")
    p.add_argument("--period", default=None)

    p = sub.add_parser("pool-show", help="Show one pool")
    p.add_argument("pool_id")

    p = sub.add_parser("balance", help="Show one balance and its banked total")
    p.add_argument("entity_id")
    p.add_argument("period")

    for name, help_text in (("balances", "List balances of a period"), ("summary", "Fleet summary")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("period")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        config = get_active_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"  ERROR: configuration: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        init_engine_from_url(args.db_url or config.database_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: Cannot connect to database: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    register_immutability_listeners()

    orchestrator = ComplianceOrchestrator(
        get_session_factory(),
        settings=build_engine_settings(config),
    )
    try:
        return run_command(args, orchestrator)
    except ComplianceKernelError as exc:
        print(f"  ERROR: {format_error(exc)}", file=sys.stderr)
        return exit_code_for(exc)


if __name__ == "__main__":
    sys.exit(main())
