"""Database layer - engine, base classes, types, and locking."""

from compliance_kernel.db.base import Base, UUIDString
from compliance_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from compliance_kernel.db.key_lock import KeyedLock, LockTimeout
from compliance_kernel.db.types import QuantityType

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "UUIDString",
    "QuantityType",
    "KeyedLock",
    "LockTimeout",
]
