"""
Bulk salary configuration schema.

Typed, frozen configuration for risk scoring, validation limits,
execution, and analytics.  YAML is parsed into these types by the loader;
services receive a ``BulkOperationsConfig`` by constructor injection and
read named fields only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class RiskConfig:
    """Rollback risk scoring thresholds."""

    medium_risk_age_days: int = 7
    high_risk_age_days: int = 14
    rollback_window_days: int = 30  # older operations are ineligible
    high_impact_threshold: Decimal = Decimal("100000000")
    large_operation_item_count: int = 100
    rollback_minutes_per_item: Decimal = Decimal("0.1")

    def __post_init__(self) -> None:
        if self.medium_risk_age_days < 0:
            raise ValueError("medium_risk_age_days must be non-negative")
        if self.high_risk_age_days < self.medium_risk_age_days:
            raise ValueError(
                "high_risk_age_days must be >= medium_risk_age_days"
            )
        if self.rollback_window_days < self.high_risk_age_days:
            raise ValueError(
                "rollback_window_days must be >= high_risk_age_days"
            )
        if self.high_impact_threshold <= 0:
            raise ValueError("high_impact_threshold must be positive")


@dataclass(frozen=True)
class ValidationLimits:
    """Bounds applied to adjustment requests before any persistence."""

    max_percentage_adjustment: Decimal = Decimal("100")
    max_fixed_adjustment: Decimal = Decimal("1000000000")
    max_name_length: int = 200

    def __post_init__(self) -> None:
        if self.max_percentage_adjustment <= 0:
            raise ValueError("max_percentage_adjustment must be positive")
        if self.max_fixed_adjustment <= 0:
            raise ValueError("max_fixed_adjustment must be positive")


@dataclass(frozen=True)
class ExecutionConfig:
    """Executor behaviour."""

    lock_timeout_seconds: float = 30.0
    stale_tolerance: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        if self.stale_tolerance < 0:
            raise ValueError("stale_tolerance must be non-negative")


@dataclass(frozen=True)
class AnalyticsConfig:
    """Defaults for the analytics aggregator."""

    top_operations_limit: int = 5
    default_window_days: int = 365


@dataclass(frozen=True)
class BulkOperationsConfig:
    """Root configuration object."""

    config_id: str = "bulk-salary-defaults"
    version: int = 1
    currency: str = "IDR"
    risk: RiskConfig = field(default_factory=RiskConfig)
    validation: ValidationLimits = field(default_factory=ValidationLimits)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
