"""
Module: compliance_kernel.db.types
Responsibility: Column type and utility functions for the fixed-precision
    quantities stored by the ledger.  Centralizes precision and rounding so
    that every model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the kernel.  Balances and banked amounts are
      Decimal with explicit precision; round_quantity() is the ONLY sanctioned
      rounding function.
    - No float on disk either.  QuantityType stores NUMERIC on PostgreSQL
      and exact fixed-point text on SQLite, whose NUMERIC affinity is REAL.

Failure modes:
    - TypeError from to_quantity() when handed a float or a bool.
    - decimal.InvalidOperation from to_quantity() on a non-numeric string,
      and from QuantityType when a value needs more than its precision.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Context, Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

# Storage precision of quantity columns
STORAGE_PRECISION = 38
STORAGE_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP
# Pool shares never exceed the exact quotient
SHARE_ROUNDING = ROUND_FLOOR


def quantum(decimal_places: int) -> Decimal:
    """Smallest representable step at ``decimal_places``."""
    return Decimal(1).scaleb(-decimal_places)


def round_quantity(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a compliance quantity to the specified decimal places.

    This is the ONLY sanctioned rounding function for balances, banked
    amounts and pool shares.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(quantum(decimal_places), rounding=rounding)


def to_quantity(value: Decimal | int | str) -> Decimal:
    """
    Convert a caller-supplied value to Decimal without passing through float.

    Raises:
        TypeError: If value is a float, a bool, or an unsupported type.
        decimal.InvalidOperation: If a string is not numeric.
    """
    if isinstance(value, bool):
        raise TypeError("booleans are not quantities")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(
        f"expected Decimal, int or str, got {type(value).__name__}"
    )


class QuantityType(TypeDecorator):
    """
    Fixed-precision Decimal column.

    PostgreSQL stores NUMERIC(precision, scale) natively.  SQLite has no
    exact decimal storage class, so there the value is written as its
    fixed-point text at ``scale`` places and parsed back into Decimal.
    Bound values are quantized HALF_UP to ``scale`` on every backend.
    """

    impl = Numeric
    cache_ok = True

    def __init__(
        self,
        precision: int = STORAGE_PRECISION,
        scale: int = STORAGE_DECIMAL_PLACES,
    ):
        super().__init__(precision=precision, scale=scale, asdecimal=True)
        self.precision = precision
        self.scale = scale
        self._context = Context(prec=precision, rounding=DEFAULT_ROUNDING)

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            # sign and decimal point
            return dialect.type_descriptor(String(self.precision + 2))
        return dialect.type_descriptor(
            Numeric(precision=self.precision, scale=self.scale, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = to_quantity(value).quantize(
            quantum(self.scale), context=self._context
        )
        if dialect.name == "sqlite":
            return format(value, "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return Decimal(value)
        return value
