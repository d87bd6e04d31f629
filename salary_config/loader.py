"""
Configuration Loader (``salary_config.loader``).

Responsibility
--------------
Loads the bulk-operations YAML file and parses it into the typed
``salary_config.schema`` dataclasses.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys raise ``ValueError``; a typo never silently falls back to
  a default.
* Monetary and ratio values are parsed as ``Decimal`` from their string
  form; floats never reach the calculator.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or invalid value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from salary_config.schema import (
    AnalyticsConfig,
    BulkOperationsConfig,
    ExecutionConfig,
    RiskConfig,
    ValidationLimits,
)
from salary_kernel.logging_config import get_logger

logger = get_logger("config.loader")

CONFIG_ENV_VAR = "SALARY_BULK_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

_SECTIONS: dict[str, type] = {
    "risk": RiskConfig,
    "validation": ValidationLimits,
    "execution": ExecutionConfig,
    "analytics": AnalyticsConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def _coerce(cls: type, name: str, raw: Any) -> Any:
    default = getattr(cls(), name)
    if isinstance(default, Decimal):
        try:
            return Decimal(str(raw))
        except InvalidOperation as exc:
            raise ValueError(f"{cls.__name__}.{name}: not a number: {raw!r}") from exc
    if isinstance(default, bool):
        # YAML already parses true/false; a quoted "false" is a mistake
        if not isinstance(raw, bool):
            raise ValueError(f"{cls.__name__}.{name}: not a boolean: {raw!r}")
        return raw
    if isinstance(raw, bool):
        raise ValueError(f"{cls.__name__}.{name}: boolean given for a number: {raw!r}")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def _parse_section(cls: type, data: dict[str, Any] | None) -> Any:
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(
            f"Unknown keys in {cls.__name__}: {', '.join(sorted(unknown))}"
        )
    return cls(**{name: _coerce(cls, name, raw) for name, raw in data.items()})


def parse_config(data: dict[str, Any]) -> BulkOperationsConfig:
    """Parse a raw dict into a ``BulkOperationsConfig``."""
    top_level = {"config_id", "version", "currency", *_SECTIONS}
    unknown = set(data) - top_level
    if unknown:
        raise ValueError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}"
        )

    sections = {
        key: _parse_section(cls, data.get(key)) for key, cls in _SECTIONS.items()
    }
    defaults = BulkOperationsConfig()
    return BulkOperationsConfig(
        config_id=str(data.get("config_id", defaults.config_id)),
        version=int(data.get("version", defaults.version)),
        currency=str(data.get("currency", defaults.currency)),
        **sections,
    )


def load_config(path: Path | str | None = None) -> BulkOperationsConfig:
    """
    Load configuration from ``path``.

    Resolution order: the explicit ``path`` argument, then the
    ``SALARY_BULK_CONFIG`` environment variable, then the packaged
    ``defaults.yaml``.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
    path = Path(path)

    data = load_yaml_file(path)
    config = parse_config(data)

    logger.info(
        "bulk_config_loaded",
        extra={
            "config_id": config.config_id,
            "version": config.version,
            "path": str(path),
            "checksum": compute_checksum(data),
        },
    )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
