"""
Configuration Loader (``compliance_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into an ``EngineConfig``.
Runtime callers go through ``compliance_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or values of the wrong type  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import EngineConfig

_KNOWN_KEYS = frozenset(f.name for f in fields(EngineConfig)) - {"checksum"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_decimal(value: Any, key: str) -> Decimal:
    # YAML floats are converted through their repr, so 89.3368 stays exact
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key}: expected a number, got {value!r}") from None


def parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    return value


def parse_bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected true or false, got {value!r}")
    return value


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """
    Parse an ``EngineConfig`` from a dict.

    Accepts either a flat mapping or one nested under an ``engine`` key.
    Keys that are absent keep their defaults.
    """
    section = data.get("engine", data)
    if not isinstance(section, dict):
        raise ValueError("engine configuration must be a mapping")

    unknown = sorted(set(section) - _KNOWN_KEYS)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    if "target_intensity" in section:
        kwargs["target_intensity"] = parse_decimal(
            section["target_intensity"], "target_intensity"
        )
    for key in ("decimal_places", "min_period", "max_period"):
        if key in section:
            kwargs[key] = parse_int(section[key], key)
    if "lock_timeout_seconds" in section:
        kwargs["lock_timeout_seconds"] = float(
            parse_decimal(section["lock_timeout_seconds"], "lock_timeout_seconds")
        )
    if "activity_fallback_to_latest_period" in section:
        kwargs["activity_fallback_to_latest_period"] = parse_bool(
            section["activity_fallback_to_latest_period"],
            "activity_fallback_to_latest_period",
        )
    if "database_url" in section:
        if not isinstance(section["database_url"], str):
            raise ValueError("database_url: expected a string")
        kwargs["database_url"] = section["database_url"]

    return EngineConfig(checksum=compute_checksum(section), **kwargs)


def load_engine_config(path: Path) -> EngineConfig:
    return parse_engine_config(load_yaml_file(path))
