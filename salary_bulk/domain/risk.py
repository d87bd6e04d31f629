"""
salary_bulk.domain.risk -- Pure rollback risk scoring.

Risk escalates monotonically: each rule can only raise the level.  The
result is advisory; eligibility (status, type, window) is checked by the
rollback service before scoring.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal

from salary_bulk.domain.types import RiskAssessment, RiskLevel

from salary_config.schema import RiskConfig

_SECONDS_PER_DAY = 86400


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, floored; never negative."""
    seconds = (later - earlier).total_seconds()
    return max(0, math.floor(seconds / _SECONDS_PER_DAY))


def estimate_duration(item_count: int, minutes_per_item: Decimal) -> str:
    total_minutes = Decimal(item_count) * minutes_per_item
    if total_minutes < 1:
        return "Less than 1 minute"
    if total_minutes < 60:
        return f"{math.ceil(total_minutes)} minutes"
    return f"{math.ceil(total_minutes / 60)} hours"


def assess_rollback_risk(
    days_since_completion: int,
    total_reversal_amount: Decimal,
    item_count: int,
    conflicting_count: int,
    config: RiskConfig | None = None,
) -> RiskAssessment:
    config = config or RiskConfig()
    level = RiskLevel.LOW
    warnings: list[str] = []

    if days_since_completion > config.medium_risk_age_days:
        level = level.escalate(RiskLevel.MEDIUM)
        warnings.append(
            f"Operation was completed more than "
            f"{config.medium_risk_age_days} days ago"
        )
    if days_since_completion > config.high_risk_age_days:
        level = level.escalate(RiskLevel.HIGH)
        warnings.append(
            f"Operation was completed more than {config.high_risk_age_days} "
            f"days ago - payroll may have been processed"
        )
    if total_reversal_amount > config.high_impact_threshold:
        level = level.escalate(RiskLevel.HIGH)
        warnings.append("Large financial impact - requires additional approval")
    if item_count > config.large_operation_item_count:
        warnings.append(
            "Large number of employees affected - rollback will take significant time"
        )
    if conflicting_count > 0:
        level = level.escalate(RiskLevel.HIGH)
        warnings.append(
            f"{conflicting_count} employees have had salary changes since "
            f"this operation (conflicting edits)"
        )

    return RiskAssessment(risk_level=level, warnings=tuple(warnings))
