"""Tests for the command-line front end."""

import warnings
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from compliance_kernel.domain.dtos import PoolMember
from compliance_kernel.domain.pooling import check_fairness
from compliance_kernel.exceptions import (
    ActivityNotFoundError,
    Article21ViolationError,
    BalanceNotFoundError,
    ConcurrencyConflictError,
    InsufficientBankedBalanceError,
    InsufficientSurplusError,
    InvalidArgumentError,
    NegativePoolSumError,
    StorageFailureError,
)
from compliance_kernel.models.activity_record import ActivityRecordModel
from scripts.compliance_cli import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_REJECTED,
    SEED_ACTIVITIES,
    build_parser,
    exit_code_for,
    format_error,
    run_command,
    seed_activity_records,
)


class TestFormatError:

    def test_invalid_argument(self):
        text = format_error(InvalidArgumentError("amount", "must be positive, got 0.00"))
        assert text == "[INVALID_ARGUMENT] Invalid input for amount: must be positive, got 0.00"

    def test_insufficient_surplus(self):
        text = format_error(
            InsufficientSurplusError("E1", 2024, Decimal("15000"), Decimal("10000"))
        )
        assert text.startswith("[INSUFFICIENT_SURPLUS] Cannot bank 15,000.00 for E1/2024")
        assert "10,000.00 surplus available" in text

    def test_insufficient_banked(self):
        text = format_error(
            InsufficientBankedBalanceError("E1", 2024, Decimal("5"), Decimal("1"))
        )
        assert "[INSUFFICIENT_BANKED_BALANCE] Cannot apply 5.00" in text

    def test_negative_pool(self):
        text = format_error(NegativePoolSumError(2024, Decimal("-15000")))
        assert text == "[NEGATIVE_POOL_SUM] Pool rejected: combined balance -15,000.00 is negative"

    def test_article21_lists_every_member(self):
        violations = check_fairness([
            PoolMember("A", Decimal("10"), Decimal("-1")),
            PoolMember("B", Decimal("-5"), Decimal("-6")),
        ])
        lines = format_error(Article21ViolationError(2024, violations)).splitlines()
        assert lines[0] == "[ARTICLE21_VIOLATION] Pool rejected:"
        assert len(lines) == 3

    def test_not_found_variants(self):
        assert format_error(BalanceNotFoundError("E1", 2024)).startswith("[BALANCE_NOT_FOUND] Not found:")
        assert format_error(ActivityNotFoundError("R9", 2024)) == (
            "[ACTIVITY_NOT_FOUND] Activity R9 does not exist"
        )

    def test_exit_codes(self):
        assert exit_code_for(InvalidArgumentError("period", "x")) == EXIT_REJECTED
        assert exit_code_for(ConcurrencyConflictError("E1/2024", "locked")) == EXIT_FAILURE
        assert exit_code_for(StorageFailureError("bank_surplus", "disk")) == EXIT_FAILURE


class TestParser:

    def test_pool_members(self):
        args = build_parser().parse_args(["pool", "2024", "E1", "E2", "--name", "Q4"])
        assert args.members == ["E1", "E2"]
        assert args.name == "Q4"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:

    def test_seed_is_idempotent(self, session):
        assert seed_activity_records(session) == len(SEED_ACTIVITIES)
        assert seed_activity_records(session) == 0
        count = session.execute(
            select(func.count()).select_from(ActivityRecordModel)
        ).scalar_one()
        assert count == 5

    def test_seed_emits_no_deprecation_warnings(self, session):
        seed_activity_records(session)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert seed_activity_records(session) == 0

    def test_compute_and_bank_output(self, orchestrator, session_factory, capsys):
        sess = session_factory()
        seed_activity_records(sess)
        sess.commit()
        sess.close()
        parser = build_parser()

        assert run_command(parser.parse_args(["compute", "V-004", "2024", "R004"]), orchestrator) == EXIT_OK
        assert run_command(parser.parse_args(["bank", "V-004", "2024", "1000"]), orchestrator) == EXIT_OK
        assert run_command(parser.parse_args(["summary", "2024"]), orchestrator) == EXIT_OK

        out = capsys.readouterr().out
        assert "59,602,400.00" in out
        assert "Banked 1,000.00 for V-004/2024" in out
        assert "total banked:  1,000.00" in out

    def test_empty_pool_listing(self, orchestrator, capsys):
        run_command(build_parser().parse_args(["pools"]), orchestrator)
        assert "No pools recorded." in capsys.readouterr().out
