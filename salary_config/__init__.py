"""
salary_config -- typed configuration for bulk salary operations.

Services receive a ``BulkOperationsConfig`` through their constructors;
only outer layers call ``load_config()``.  Every default lives in
``defaults.yaml`` and mirrors the dataclass defaults in ``schema.py``.
"""

from salary_config.loader import compute_checksum, load_config, parse_config
from salary_config.schema import (
    AnalyticsConfig,
    BulkOperationsConfig,
    ExecutionConfig,
    RiskConfig,
    ValidationLimits,
)

__all__ = [
    "AnalyticsConfig",
    "BulkOperationsConfig",
    "ExecutionConfig",
    "RiskConfig",
    "ValidationLimits",
    "compute_checksum",
    "load_config",
    "parse_config",
]
