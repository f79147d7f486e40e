"""
EngineSettings -- the kernel's view of runtime configuration.

The kernel never reads configuration files itself.  compliance_config builds
an EngineSettings from the active configuration (compliance_config.bridges)
and hands it to ComplianceOrchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from compliance_kernel.domain.balance_formula import DEFAULT_TARGET_INTENSITY
from compliance_kernel.domain.requests import RequestLimits


@dataclass(frozen=True)
class EngineSettings:
    target_intensity: Decimal = DEFAULT_TARGET_INTENSITY
    decimal_places: int = 2
    min_period: int = 2000
    max_period: int = 2100
    lock_timeout_seconds: float = 10.0
    activity_fallback_to_latest_period: bool = True

    @property
    def limits(self) -> RequestLimits:
        return RequestLimits(
            decimal_places=self.decimal_places,
            min_period=self.min_period,
            max_period=self.max_period,
        )


DEFAULT_SETTINGS = EngineSettings()
