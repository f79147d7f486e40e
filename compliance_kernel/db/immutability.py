"""
ORM-Level Immutability Enforcement for pool history.

===============================================================================
WHY THIS EXISTS
===============================================================================

A pool is a historical snapshot: once the pool and its member rows are
written, nothing may change them.  Service code never updates or deletes
them, and these listeners make any accidental attempt fail loudly before
the SQL reaches the database.

    session.flush()
         |
         v
    [before_update event] --> _check_*_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable         | Why
----------------|------------------------|---------------------------------
PoolModel       | ALWAYS (from creation) | Pool history is append-only
PoolMemberModel | ALWAYS (from creation) | Members are part of the snapshot

===============================================================================
USAGE
===============================================================================

    from compliance_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    from compliance_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event

from compliance_kernel.exceptions import ImmutabilityViolationError
from compliance_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_pool_update(mapper, connection, target):
    """Prevent any updates to PoolModel records."""
    _block("Pool", target, "UPDATE", "Pools are immutable and cannot be modified")


def _check_pool_delete(mapper, connection, target):
    """Prevent deletion of PoolModel records."""
    _block("Pool", target, "DELETE", "Pools cannot be deleted")


def _check_pool_member_update(mapper, connection, target):
    """Prevent any updates to PoolMemberModel records."""
    _block(
        "PoolMember",
        target,
        "UPDATE",
        "Pool members are immutable and cannot be modified",
    )


def _check_pool_member_delete(mapper, connection, target):
    """Prevent deletion of PoolMemberModel records."""
    _block("PoolMember", target, "DELETE", "Pool members cannot be deleted")


def _listeners():
    from compliance_kernel.models.pool import PoolMemberModel, PoolModel

    return (
        (PoolModel, "before_update", _check_pool_update),
        (PoolModel, "before_delete", _check_pool_delete),
        (PoolMemberModel, "before_update", _check_pool_member_update),
        (PoolMemberModel, "before_delete", _check_pool_member_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left in place.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Unregister all immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
