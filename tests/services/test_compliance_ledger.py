"""Tests for ComplianceLedger reads and writes."""

from decimal import Decimal

from compliance_kernel.domain.dtos import ComplianceStatus


class TestComplianceLedger:

    def test_missing_balance_is_none(self, ledger):
        assert ledger.get("V-404", 2024) is None

    def test_set_value_creates_row(self, ledger):
        balance = ledger.set_value("V-001", 2024, Decimal("100.00"))

        assert balance.entity_id == "V-001"
        assert balance.period == 2024
        assert balance.value == Decimal("100.00")
        assert balance.status is ComplianceStatus.SURPLUS
        assert ledger.get("V-001", 2024).value == Decimal("100")

    def test_set_value_overwrites(self, ledger, deterministic_clock):
        ledger.set_value("V-001", 2024, Decimal("100"))
        deterministic_clock.advance(60)
        ledger.set_value("V-001", 2024, Decimal("-20"))

        balance = ledger.get("V-001", 2024)
        assert balance.value == Decimal("-20")
        assert balance.status is ComplianceStatus.DEFICIT
        assert len(ledger.get_all(2024)) == 1

    def test_periods_are_independent(self, ledger):
        ledger.set_value("V-001", 2024, Decimal("1"))
        ledger.set_value("V-001", 2025, Decimal("2"))

        assert ledger.get("V-001", 2024).value == Decimal("1")
        assert ledger.get("V-001", 2025).value == Decimal("2")

    def test_get_all_ordered_by_entity(self, ledger):
        for entity_id in ("V-003", "V-001", "V-002"):
            ledger.set_value(entity_id, 2024, Decimal("0"))
        ledger.set_value("V-009", 2025, Decimal("0"))

        assert [b.entity_id for b in ledger.get_all(2024)] == ["V-001", "V-002", "V-003"]

    def test_get_for_update_returns_model(self, ledger):
        ledger.set_value("V-001", 2024, Decimal("5"))
        row = ledger.get_for_update("V-001", 2024)
        assert row is not None
        assert row.value == Decimal("5")
        assert ledger.get_for_update("V-001", 2023) is None
