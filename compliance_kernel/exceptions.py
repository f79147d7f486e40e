"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (CLI, request handlers, batch jobs) must react to
business-rule rejections differently from storage outages. Parsing message
strings for that is fragile, so every error:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA (amounts, entity ids, violations)

Example:
    try:
        orchestrator.bank_surplus(entity_id, 2024, Decimal("6000"))
    except InsufficientSurplusError as e:
        respond(code=e.code, requested=e.requested, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ComplianceKernelError (base)
    |
    +-- NotFoundError
    |   +-- BalanceNotFoundError
    |   +-- MissingBalanceError
    |   +-- PoolNotFoundError
    |   +-- ActivityNotFoundError
    |
    +-- InvalidArgumentError
    |
    +-- BankingError
    |   +-- InsufficientSurplusError
    |   +-- InsufficientBankedBalanceError
    |
    +-- PoolingError
    |   +-- NegativePoolSumError
    |   +-- Article21ViolationError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- StorageFailureError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|----------------------------------------
Not found    | NOT_FOUND                    | Generic lookup miss
             | BALANCE_NOT_FOUND            | No ledger row for (entity, period)
             | MISSING_BALANCE              | Pool member has no ledger row
             | POOL_NOT_FOUND               | Pool id does not exist
             | ACTIVITY_NOT_FOUND           | No activity data for ref/period
-------------|------------------------------|----------------------------------------
Argument     | INVALID_ARGUMENT             | Non-positive amount, empty/duplicate
             |                              | member set, malformed period or id
-------------|------------------------------|----------------------------------------
Banking      | INSUFFICIENT_SURPLUS         | Bank amount > current positive balance
             | INSUFFICIENT_BANKED_BALANCE  | Apply amount > banked total
-------------|------------------------------|----------------------------------------
Pooling      | NEGATIVE_POOL_SUM            | Sum of member balances < 0
             | ARTICLE21_VIOLATION          | One or more fairness rules broken
-------------|------------------------------|----------------------------------------
Concurrency  | CONCURRENCY_CONFLICT         | Lock not acquired / commit conflict
-------------|------------------------------|----------------------------------------
Storage      | STORAGE_FAILURE              | Underlying store unavailable
-------------|------------------------------|----------------------------------------
Immutability | IMMUTABILITY_VIOLATION       | UPDATE/DELETE of a pool snapshot

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Business-rule errors are raised BEFORE any mutation. Nothing to undo.
2. ConcurrencyConflictError is retryable by the caller. The engine never
   retries internally.
3. StorageFailureError wraps the original driver error in ``__cause__``.
"""

from __future__ import annotations

from decimal import Decimal


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Lookup exceptions


class NotFoundError(ComplianceKernelError):
    """Base exception for lookups that found nothing."""

    code: str = "NOT_FOUND"


class BalanceNotFoundError(NotFoundError):
    """No compliance balance exists for the entity/period."""

    code: str = "BALANCE_NOT_FOUND"

    def __init__(self, entity_id: str, period: int):
        self.entity_id = entity_id
        self.period = period
        super().__init__(
            f"No compliance balance for entity {entity_id} in period {period}"
        )


class MissingBalanceError(NotFoundError):
    """A pool member has no ledger entry for the pool period."""

    code: str = "MISSING_BALANCE"

    def __init__(self, entity_id: str, period: int):
        self.entity_id = entity_id
        self.period = period
        super().__init__(
            f"Compliance balance not found for entity {entity_id} in period {period}"
        )


class PoolNotFoundError(NotFoundError):
    """Pool with given ID was not found."""

    code: str = "POOL_NOT_FOUND"

    def __init__(self, pool_id: str):
        self.pool_id = pool_id
        super().__init__(f"Pool not found: {pool_id}")


class ActivityNotFoundError(NotFoundError):
    """No activity data could be resolved for the reference and period."""

    code: str = "ACTIVITY_NOT_FOUND"

    def __init__(
        self,
        activity_ref: str,
        period: int,
        available_periods: tuple[int, ...] = (),
    ):
        self.activity_ref = activity_ref
        self.period = period
        self.available_periods = available_periods
        if available_periods:
            listed = ", ".join(str(p) for p in available_periods)
            message = (
                f"Activity {activity_ref} not found for period {period}. "
                f"Available periods: {listed}"
            )
        else:
            message = f"Activity {activity_ref} does not exist"
        super().__init__(message)


# Argument validation


class InvalidArgumentError(ComplianceKernelError):
    """A request field failed boundary validation."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Banking exceptions


class BankingError(ComplianceKernelError):
    """Base exception for bank/apply errors."""

    code: str = "BANKING_ERROR"


class InsufficientSurplusError(BankingError):
    """Bank amount exceeds the current positive balance."""

    code: str = "INSUFFICIENT_SURPLUS"

    def __init__(
        self,
        entity_id: str,
        period: int,
        requested: Decimal,
        available: Decimal,
    ):
        self.entity_id = entity_id
        self.period = period
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient surplus for {entity_id}/{period}: "
            f"requested {requested}, current balance {available}"
        )


class InsufficientBankedBalanceError(BankingError):
    """Apply amount exceeds the banked total."""

    code: str = "INSUFFICIENT_BANKED_BALANCE"

    def __init__(
        self,
        entity_id: str,
        period: int,
        requested: Decimal,
        available: Decimal,
    ):
        self.entity_id = entity_id
        self.period = period
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient banked balance for {entity_id}/{period}: "
            f"requested {requested}, banked {available}"
        )


# Pooling exceptions


class PoolingError(ComplianceKernelError):
    """Base exception for pool creation errors."""

    code: str = "POOLING_ERROR"


class NegativePoolSumError(PoolingError):
    """Members could not collectively be compliant."""

    code: str = "NEGATIVE_POOL_SUM"

    def __init__(self, period: int, pool_sum: Decimal):
        self.period = period
        self.pool_sum = pool_sum
        super().__init__(
            f"Cannot create pool for period {period}: "
            f"sum of compliance balances is negative ({pool_sum})"
        )


class Article21ViolationError(PoolingError):
    """
    One or more members would leave the pool worse off than allowed.

    ``violations`` holds every violating member, not just the first.
    """

    code: str = "ARTICLE21_VIOLATION"

    def __init__(self, period: int, violations: tuple):
        self.period = period
        self.violations = violations
        lines = "\n".join(v.describe() for v in violations)
        super().__init__(
            f"Cannot create pool for period {period}: "
            f"violates Article 21 pooling rules:\n{lines}"
        )


# Concurrency exceptions


class ConcurrencyError(ComplianceKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Lock could not be acquired or the transaction could not commit."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, resource: str, reason: str):
        self.resource = resource
        self.reason = reason
        super().__init__(
            f"Concurrency conflict on {resource}: {reason}; retry the operation"
        )


# Storage exceptions


class StorageFailureError(ComplianceKernelError):
    """Underlying store unavailable or failed mid-transaction."""

    code: str = "STORAGE_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage failure during {operation}: {reason}")


# Immutability exceptions


class ImmutabilityError(ComplianceKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
