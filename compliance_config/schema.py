"""
Configuration schema (``compliance_config.schema``).

Frozen dataclasses describing the engine configuration.  Instances are
produced by ``compliance_config.loader`` and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class EngineConfig:
    """Runtime configuration for one deployment of the engine."""

    # Target GHG intensity (gCO2e/MJ) the balance formula measures against
    target_intensity: Decimal = Decimal("89.3368")

    # Quantum for computed balances, pool shares and caller amounts
    decimal_places: int = 2

    database_url: str = "sqlite:///compliance.db"

    # How long an operation waits for another on the same entity/period
    lock_timeout_seconds: float = 10.0

    activity_fallback_to_latest_period: bool = True

    min_period: int = 2000
    max_period: int = 2100

    # SHA-256 of the canonical source document; empty for in-code defaults
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.target_intensity.is_finite():
            raise ValueError("target_intensity must be finite")
        if not 0 <= self.decimal_places <= 9:
            raise ValueError(
                f"decimal_places must be between 0 and 9, got {self.decimal_places}"
            )
        if self.lock_timeout_seconds <= 0:
            raise ValueError(
                f"lock_timeout_seconds must be positive, got {self.lock_timeout_seconds}"
            )
        if self.min_period > self.max_period:
            raise ValueError(
                f"min_period {self.min_period} is after max_period {self.max_period}"
            )
        if not self.database_url:
            raise ValueError("database_url must not be empty")
