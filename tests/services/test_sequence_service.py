"""Tests for SequenceService counters."""

from compliance_kernel.services.sequence_service import SequenceService, bank_entry_sequence


def test_first_value_is_one(sequence_service):
    assert sequence_service.next_value("pool") == 1


def test_strictly_increasing(sequence_service):
    values = [sequence_service.next_value("pool") for _ in range(5)]
    assert values == [1, 2, 3, 4, 5]


def test_sequences_are_independent(sequence_service):
    a = bank_entry_sequence("E1", 2024)
    b = bank_entry_sequence("E1", 2025)
    sequence_service.next_value(a)
    sequence_service.next_value(a)

    assert sequence_service.next_value(b) == 1
    assert sequence_service.current_value(a) == 2


def test_current_value_unknown(sequence_service):
    assert sequence_service.current_value("never-used") is None


def test_rolled_back_value_is_reused(session):
    service = SequenceService(session)
    service.next_value(SequenceService.POOL)

    savepoint = session.begin_nested()
    service.next_value(SequenceService.POOL)
    savepoint.rollback()

    assert service.next_value(SequenceService.POOL) == 2


def test_bank_entry_sequence_name():
    assert bank_entry_sequence("V-001", 2024) == "bank_entry:V-001:2024"
