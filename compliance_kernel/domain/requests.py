"""
Requests -- typed request records, validated once at the boundary.

Responsibility:
    Converts loosely-typed caller input (CLI strings, JSON numbers, Decimals)
    into frozen request records.  Every field is checked here and every
    failure is an InvalidArgumentError naming the field; services downstream
    trust the record and never re-validate types.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are finite Decimals > 0 at the configured precision.  Floats
      are rejected outright.
    - Periods are integers within the configured range.
    - Entity ids are non-empty, trimmed, at most 100 characters.
    - Pool member sets are non-empty and free of duplicates.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from compliance_kernel.db.types import round_quantity, to_quantity
from compliance_kernel.exceptions import InvalidArgumentError

MAX_ID_LENGTH = 100
MAX_POOL_NAME_LENGTH = 200


@dataclass(frozen=True)
class RequestLimits:
    """Boundary limits; built from the active engine configuration."""

    decimal_places: int = 2
    min_period: int = 2000
    max_period: int = 2100


DEFAULT_LIMITS = RequestLimits()


def parse_identifier(value: Any, field: str = "entity_id") -> str:
    if not isinstance(value, str):
        raise InvalidArgumentError(field, f"expected a string, got {type(value).__name__}")
    cleaned = value.strip()
    if not cleaned:
        raise InvalidArgumentError(field, "must not be empty")
    if len(cleaned) > MAX_ID_LENGTH:
        raise InvalidArgumentError(field, f"longer than {MAX_ID_LENGTH} characters")
    return cleaned


def parse_period(value: Any, limits: RequestLimits = DEFAULT_LIMITS) -> int:
    if isinstance(value, bool):
        raise InvalidArgumentError("period", "expected an integer, got bool")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise InvalidArgumentError("period", f"not an integer: {value!r}") from None
    if not isinstance(value, int):
        raise InvalidArgumentError("period", f"expected an integer, got {type(value).__name__}")
    if not limits.min_period <= value <= limits.max_period:
        raise InvalidArgumentError(
            "period",
            f"{value} outside {limits.min_period}..{limits.max_period}",
        )
    return value


def parse_amount(value: Any, limits: RequestLimits = DEFAULT_LIMITS) -> Decimal:
    try:
        amount = to_quantity(value)
    except TypeError as exc:
        raise InvalidArgumentError("amount", str(exc)) from None
    except InvalidOperation:
        raise InvalidArgumentError("amount", f"not a number: {value!r}") from None
    if not amount.is_finite():
        raise InvalidArgumentError("amount", "must be finite")
    try:
        amount = round_quantity(amount, limits.decimal_places)
    except InvalidOperation:
        raise InvalidArgumentError("amount", f"out of range: {value!r}") from None
    if amount <= 0:
        raise InvalidArgumentError("amount", f"must be positive, got {amount}")
    return amount


@dataclass(frozen=True)
class BalanceKey:
    """Address of one ledger cell."""

    entity_id: str
    period: int

    @classmethod
    def parse(
        cls,
        entity_id: Any,
        period: Any,
        limits: RequestLimits = DEFAULT_LIMITS,
    ) -> BalanceKey:
        return cls(
            entity_id=parse_identifier(entity_id),
            period=parse_period(period, limits),
        )


@dataclass(frozen=True)
class ComputeBalanceRequest:
    entity_id: str
    period: int
    activity_ref: str

    @classmethod
    def parse(
        cls,
        entity_id: Any,
        period: Any,
        activity_ref: Any,
        limits: RequestLimits = DEFAULT_LIMITS,
    ) -> ComputeBalanceRequest:
        return cls(
            entity_id=parse_identifier(entity_id),
            period=parse_period(period, limits),
            activity_ref=parse_identifier(activity_ref, "activity_ref"),
        )


@dataclass(frozen=True)
class _AmountRequest:
    entity_id: str
    period: int
    amount: Decimal

    @classmethod
    def parse(
        cls,
        entity_id: Any,
        period: Any,
        amount: Any,
        limits: RequestLimits = DEFAULT_LIMITS,
    ):
        return cls(
            entity_id=parse_identifier(entity_id),
            period=parse_period(period, limits),
            amount=parse_amount(amount, limits),
        )


@dataclass(frozen=True)
class BankSurplusRequest(_AmountRequest):
    """Move ``amount`` from the ledger into the bank."""


@dataclass(frozen=True)
class ApplyBankedRequest(_AmountRequest):
    """Move ``amount`` from the bank back into the ledger."""


@dataclass(frozen=True)
class CreatePoolRequest:
    period: int
    member_entity_ids: tuple[str, ...]
    name: str | None = None

    @classmethod
    def parse(
        cls,
        period: Any,
        member_entity_ids: Iterable[Any],
        name: Any = None,
        limits: RequestLimits = DEFAULT_LIMITS,
    ) -> CreatePoolRequest:
        if isinstance(member_entity_ids, (str, bytes)) or member_entity_ids is None:
            raise InvalidArgumentError(
                "member_entity_ids", "expected a collection of entity ids"
            )
        members = tuple(
            parse_identifier(m, "member_entity_ids") for m in member_entity_ids
        )
        if not members:
            raise InvalidArgumentError("member_entity_ids", "at least one member is required")
        duplicates = sorted(m for m, n in Counter(members).items() if n > 1)
        if duplicates:
            raise InvalidArgumentError(
                "member_entity_ids",
                f"duplicate members: {', '.join(duplicates)}",
            )

        if name is not None:
            if not isinstance(name, str):
                raise InvalidArgumentError("name", "expected a string")
            name = name.strip() or None
            if name is not None and len(name) > MAX_POOL_NAME_LENGTH:
                raise InvalidArgumentError(
                    "name", f"longer than {MAX_POOL_NAME_LENGTH} characters"
                )

        return cls(
            period=parse_period(period, limits),
            member_entity_ids=members,
            name=name,
        )
