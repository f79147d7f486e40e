"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for bank entry queues (one
    sequence per entity/period) and for pool history.  Uses a dedicated
    counter table with row-level locking (``SELECT ... FOR UPDATE``).

Invariants enforced:
    - Sequences are strictly monotonic.  The aggregate-max-plus-one pattern
      is never used; the locked counter row is the only source of truth.
    - Transactional: an increment is visible only after the caller commits.
      Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via savepoint
      rollback and re-read).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


def bank_entry_sequence(entity_id: str, period: int) -> str:
    """Name of the FIFO sequence for one entity/period bank queue."""
    return f"bank_entry:{entity_id}:{period}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Usage:
        seq = sequence_service.next_value(SequenceService.POOL)
        # If the transaction rolls back, seq is not consumed
    """

    POOL = "pool"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it and
        returns the new value.  Always > 0.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create it simultaneously,
            # so insert inside a savepoint and fall back to the locked read.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
