"""Tests for LedgerSelector read views."""

from decimal import Decimal

import pytest

from compliance_kernel.selectors.ledger_selector import LedgerSelector


@pytest.fixture
def selector(session):
    return LedgerSelector(session)


class TestFleetSummary:

    def test_empty_period(self, selector):
        summary = selector.fleet_summary(2024)
        assert summary.total_balance == Decimal("0")
        assert summary.total_banked == Decimal("0")
        assert summary.entity_count == 0

    def test_totals_and_counts(self, selector, set_balance, banking_engine):
        set_balance("E1", 2024, "1000")
        set_balance("E2", 2024, "-300")
        set_balance("E3", 2024, "0")
        set_balance("E4", 2025, "999")
        banking_engine.bank("E1", 2024, Decimal("400"))

        summary = selector.fleet_summary(2024)

        assert summary.total_balance == Decimal("300")
        assert summary.total_banked == Decimal("400")
        assert (summary.surplus_count, summary.deficit_count, summary.neutral_count) == (1, 1, 1)
        assert summary.entity_count == 3


class TestBalances:

    def test_balance_lookup(self, selector, set_balance):
        set_balance("E1", 2024, "5")
        assert selector.balance("E1", 2024).value == Decimal("5")
        assert selector.balance("E1", 2025) is None

    def test_bank_entries_fifo(self, selector, set_balance, banking_engine):
        set_balance("E1", 2024, "100")
        banking_engine.bank("E1", 2024, Decimal("7"))
        banking_engine.bank("E1", 2024, Decimal("3"))

        entries = selector.bank_entries("E1", 2024)
        assert [(e.seq, e.amount) for e in entries] == [(1, Decimal("7")), (2, Decimal("3"))]
        assert selector.banked_total("E1", 2024) == Decimal("10")

    def test_balances_listing(self, selector, set_balance):
        set_balance("B", 2024, "1")
        set_balance("A", 2024, "2")
        assert [b.entity_id for b in selector.balances(2024)] == ["A", "B"]
