"""
Tests for salary_bulk.domain.types and salary_bulk.domain.risk.

Status transitions, enum helpers, DTO conveniences, and rollback risk
scoring.  Pure; no database.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from salary_bulk.domain.risk import (
    assess_rollback_risk,
    days_between,
    estimate_duration,
)
from salary_bulk.domain.types import (
    ALLOWED_TRANSITIONS,
    AdjustmentConfig,
    AdjustmentType,
    ComponentChange,
    ComponentType,
    ExecutionProgress,
    ITEM_TRANSITIONS,
    ItemStatus,
    OperationMetadata,
    OperationStatus,
    OperationType,
    RiskLevel,
    can_transition,
    can_transition_item,
)

from salary_config.schema import RiskConfig


# =============================================================================
# Status machine
# =============================================================================


class TestOperationStatus:
    def test_created_can_execute_or_cancel(self):
        assert can_transition(OperationStatus.CREATED, OperationStatus.EXECUTING)
        assert can_transition(OperationStatus.CREATED, OperationStatus.CANCELLED)
        assert not can_transition(OperationStatus.CREATED, OperationStatus.COMPLETED)

    def test_executing_reaches_outcomes_only(self):
        for target in (
            OperationStatus.COMPLETED,
            OperationStatus.PARTIALLY_COMPLETED,
            OperationStatus.FAILED,
        ):
            assert can_transition(OperationStatus.EXECUTING, target)
        assert not can_transition(OperationStatus.EXECUTING, OperationStatus.CANCELLED)
        assert not can_transition(OperationStatus.EXECUTING, OperationStatus.CREATED)

    @pytest.mark.parametrize("status", [
        OperationStatus.COMPLETED,
        OperationStatus.PARTIALLY_COMPLETED,
        OperationStatus.FAILED,
        OperationStatus.CANCELLED,
    ])
    def test_terminal_statuses_have_no_exits(self, status):
        assert status.is_terminal
        assert ALLOWED_TRANSITIONS[status] == frozenset()

    def test_non_terminal(self):
        assert not OperationStatus.CREATED.is_terminal
        assert not OperationStatus.EXECUTING.is_terminal

    def test_rollback_eligibility(self):
        assert OperationStatus.COMPLETED.is_rollback_eligible
        assert OperationStatus.PARTIALLY_COMPLETED.is_rollback_eligible
        assert not OperationStatus.FAILED.is_rollback_eligible
        assert not OperationStatus.CANCELLED.is_rollback_eligible

    def test_every_status_has_a_row(self):
        assert set(ALLOWED_TRANSITIONS) == set(OperationStatus)


class TestItemStatus:
    def test_pending_moves_to_applied_or_failed(self):
        assert can_transition_item(ItemStatus.PENDING, ItemStatus.APPLIED)
        assert can_transition_item(ItemStatus.PENDING, ItemStatus.FAILED)
        assert not can_transition_item(ItemStatus.PENDING, ItemStatus.ROLLEDBACK)

    def test_only_applied_items_roll_back(self):
        assert ITEM_TRANSITIONS[ItemStatus.APPLIED] == frozenset({ItemStatus.ROLLEDBACK})

    @pytest.mark.parametrize("status", [ItemStatus.FAILED, ItemStatus.ROLLEDBACK])
    def test_final_statuses_have_no_exits(self, status):
        assert ITEM_TRANSITIONS[status] == frozenset()
        assert not can_transition_item(status, status)

    def test_every_status_has_a_row(self):
        assert set(ITEM_TRANSITIONS) == set(ItemStatus)


class TestRiskLevel:
    def test_ordering(self):
        assert RiskLevel.LOW.rank < RiskLevel.MEDIUM.rank < RiskLevel.HIGH.rank

    def test_escalate_never_descends(self):
        assert RiskLevel.LOW.escalate(RiskLevel.MEDIUM) == RiskLevel.MEDIUM
        assert RiskLevel.HIGH.escalate(RiskLevel.MEDIUM) == RiskLevel.HIGH
        assert RiskLevel.MEDIUM.escalate(RiskLevel.MEDIUM) == RiskLevel.MEDIUM


# =============================================================================
# DTO helpers
# =============================================================================


class TestDtoHelpers:
    def test_component_change_delta(self):
        change = ComponentChange(
            component_id=uuid4(),
            component_name="Basic Salary",
            component_type=ComponentType.BASIC_SALARY,
            previous_amount=Decimal("8000000"),
            new_amount=Decimal("7500000"),
        )
        assert change.delta == Decimal("-500000")

    def test_progress_fraction(self):
        progress = ExecutionProgress(completed=1, total=4, current_employee_id=uuid4())
        assert progress.fraction == 0.25

    def test_progress_fraction_empty(self):
        progress = ExecutionProgress(completed=0, total=0, current_employee_id=uuid4())
        assert progress.fraction == 1.0

    def test_metadata_from_config(self):
        actor = uuid4()
        config = AdjustmentConfig(
            operation_type=OperationType.COST_OF_LIVING,
            adjustment_type=AdjustmentType.FIXED_AMOUNT,
            adjustment_value=Decimal("250000"),
            reason="Inflation",
            name="COLA 2024",
            description="Cost of living",
        )

        metadata = OperationMetadata.from_config(config, date(2024, 4, 1), actor)

        assert metadata.name == "COLA 2024"
        assert metadata.operation_type == OperationType.COST_OF_LIVING
        assert metadata.adjustment_value == Decimal("250000")
        assert metadata.change_reason == "Inflation"
        assert metadata.effective_date == date(2024, 4, 1)
        assert metadata.created_by == actor

    def test_metadata_prefers_config_effective_date(self):
        config = AdjustmentConfig(
            operation_type=OperationType.MASS_INCREASE,
            adjustment_type=AdjustmentType.PERCENTAGE,
            adjustment_value=Decimal("5"),
            effective_date=date(2024, 7, 1),
        )
        metadata = OperationMetadata.from_config(config, date(2024, 4, 1), uuid4())
        assert metadata.effective_date == date(2024, 7, 1)


# =============================================================================
# Risk scoring
# =============================================================================


class TestDaysBetween:
    def test_floors_partial_days(self):
        start = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert days_between(start, start + timedelta(days=7, hours=23)) == 7

    def test_never_negative(self):
        start = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert days_between(start, start - timedelta(days=2)) == 0


class TestEstimateDuration:
    def test_under_a_minute(self):
        assert estimate_duration(3, Decimal("0.1")) == "Less than 1 minute"

    def test_minutes_round_up(self):
        assert estimate_duration(25, Decimal("0.1")) == "3 minutes"

    def test_hours_round_up(self):
        assert estimate_duration(1000, Decimal("0.1")) == "2 hours"


class TestAssessRollbackRisk:
    def test_fresh_small_operation_is_low(self):
        assessment = assess_rollback_risk(0, Decimal("3300000"), 3, 0)
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.warnings == ()

    def test_older_than_a_week_is_medium(self):
        assessment = assess_rollback_risk(8, Decimal("3300000"), 3, 0)
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert assessment.warnings == ("Operation was completed more than 7 days ago",)

    def test_exactly_seven_days_is_low(self):
        assessment = assess_rollback_risk(7, Decimal("3300000"), 3, 0)
        assert assessment.risk_level == RiskLevel.LOW

    def test_older_than_two_weeks_is_high(self):
        assessment = assess_rollback_risk(20, Decimal("3300000"), 3, 0)
        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.warnings == (
            "Operation was completed more than 7 days ago",
            "Operation was completed more than 14 days ago - payroll may have been processed",
        )

    def test_large_amount_is_high(self):
        assessment = assess_rollback_risk(0, Decimal("150000000"), 3, 0)
        assert assessment.risk_level == RiskLevel.HIGH
        assert "Large financial impact - requires additional approval" in assessment.warnings

    def test_large_item_count_warns_without_escalating(self):
        assessment = assess_rollback_risk(0, Decimal("1000"), 150, 0)
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.warnings == (
            "Large number of employees affected - rollback will take significant time",
        )

    def test_conflicts_are_high(self):
        assessment = assess_rollback_risk(1, Decimal("1000"), 3, 2)
        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.warnings == (
            "2 employees have had salary changes since this operation (conflicting edits)",
        )

    def test_thresholds_come_from_config(self):
        config = RiskConfig(medium_risk_age_days=1, high_risk_age_days=2)
        assessment = assess_rollback_risk(3, Decimal("1000"), 3, 0, config)
        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.warnings[0] == "Operation was completed more than 1 days ago"
