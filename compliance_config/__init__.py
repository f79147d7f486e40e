"""
compliance_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  The kernel never imports this package; ``bridges`` converts
    an ``EngineConfig`` into the kernel's ``EngineSettings``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- unknown keys or invalid values.

Every successful ``get_active_config()`` call emits a
``compliance_config_loaded`` log entry carrying the source path and the
configuration checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from compliance_config.loader import load_engine_config
from compliance_config.schema import EngineConfig

_logger = logging.getLogger("compliance_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """Load the engine configuration from ``path`` (default: sets/default.yaml)."""
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_engine_config(source)

    _logger.info(
        "compliance_config_loaded",
        extra={
            "config_path": str(source),
            "config_checksum": config.checksum,
            "target_intensity": str(config.target_intensity),
            "decimal_places": config.decimal_places,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "get_active_config",
]
