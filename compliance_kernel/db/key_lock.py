"""
Module: compliance_kernel.db.key_lock
Responsibility: In-process exclusive locks keyed by (entity_id, period).
    Serializes the read-check-write sequence of bank/apply/compute for one
    ledger cell across worker threads, independent of what the database
    backend offers for row locking.
Architecture position: Kernel > DB.  Imports only the logging layer.

Invariants enforced:
    - At most one holder per key at any time.
    - Different keys never block each other.
    - Lock entries are reference counted and dropped when unused, so the
      registry does not grow with the number of keys ever touched.

Failure modes:
    - LockTimeout if the key cannot be acquired within the timeout.  The
      orchestrator turns this into ConcurrencyConflictError.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Generator, Hashable

from compliance_kernel.logging_config import get_logger

logger = get_logger("db.key_lock")


class LockTimeout(Exception):
    """Raised when a keyed lock cannot be acquired in time."""

    def __init__(self, key: Hashable, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock {key!r}")


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0


class KeyedLock:
    """
    Registry of mutexes keyed by an arbitrary hashable.

    Usage:
        locks = KeyedLock()
        with locks.hold(("V-001", 2024), timeout=5):
            ...  # exclusive for this key
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.refs += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[key]

    @contextmanager
    def hold(
        self,
        key: Hashable,
        timeout: float | None = None,
    ) -> Generator[None, None, None]:
        """Hold the lock for ``key`` for the duration of the block."""
        entry = self._checkout(key)
        acquired = entry.lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            self._checkin(key, entry)
            logger.warning(
                "key_lock_timeout",
                extra={"key": repr(key), "timeout": timeout},
            )
            raise LockTimeout(key, timeout)
        try:
            yield
        finally:
            entry.lock.release()
            self._checkin(key, entry)

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)
