"""
Config -> Kernel bridges.

Functions that convert an ``EngineConfig`` into kernel inputs.  They live
here because the kernel must never import compliance_config.

Usage:
    config = get_active_config()
    init_engine_from_url(config.database_url)
    orchestrator = ComplianceOrchestrator(settings=build_engine_settings(config))
"""

from __future__ import annotations

from compliance_config.schema import EngineConfig
from compliance_kernel.domain.settings import EngineSettings


def build_engine_settings(config: EngineConfig) -> EngineSettings:
    return EngineSettings(
        target_intensity=config.target_intensity,
        decimal_places=config.decimal_places,
        min_period=config.min_period,
        max_period=config.max_period,
        lock_timeout_seconds=config.lock_timeout_seconds,
        activity_fallback_to_latest_period=config.activity_fallback_to_latest_period,
    )
