"""
Tests for salary_bulk.domain.calculator.

Pure functions only; no database.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from salary_kernel.exceptions import ValidationError

from salary_bulk.domain.calculator import (
    compute,
    current_gross_salary,
    parse_adjustment_value,
    plan_component_changes,
    primary_basic_component,
    validate_adjustment,
)
from salary_bulk.domain.types import (
    AdjustmentType,
    ComponentType,
    SalaryComponent,
)

from salary_config.schema import ValidationLimits


def _component(component_type, amount, is_active=True, name="Component"):
    return SalaryComponent(
        component_id=uuid4(),
        name=name,
        component_type=component_type,
        amount=Decimal(amount),
        is_active=is_active,
    )


# =============================================================================
# compute
# =============================================================================


class TestCompute:
    def test_percentage_increase(self):
        calc = compute(Decimal("10000000"), AdjustmentType.PERCENTAGE, Decimal("10"))
        assert calc.new_salary == Decimal("11000000")
        assert calc.change_amount == Decimal("1000000")
        assert calc.change_percentage == Decimal("10")

    def test_percentage_decrease(self):
        calc = compute(Decimal("8000000"), AdjustmentType.PERCENTAGE, Decimal("-5"))
        assert calc.new_salary == Decimal("7600000")
        assert calc.change_amount == Decimal("-400000")
        assert calc.change_percentage == Decimal("-5")

    def test_percentage_is_not_rounded(self):
        calc = compute(Decimal("1000"), AdjustmentType.PERCENTAGE, Decimal("3.333"))
        assert calc.new_salary == Decimal("1033.33")

    def test_fixed_amount(self):
        calc = compute(Decimal("15000000"), AdjustmentType.FIXED_AMOUNT, Decimal("500000"))
        assert calc.new_salary == Decimal("15500000")
        assert calc.change_amount == Decimal("500000")

    def test_new_structure_replaces_salary(self):
        calc = compute(Decimal("15000000"), AdjustmentType.NEW_STRUCTURE, Decimal("12000000"))
        assert calc.new_salary == Decimal("12000000")
        assert calc.change_amount == Decimal("-3000000")
        assert calc.change_percentage == Decimal("-20")

    def test_rollback_adds_signed_delta(self):
        calc = compute(Decimal("11000000"), AdjustmentType.ROLLBACK, Decimal("-1000000"))
        assert calc.new_salary == Decimal("10000000")

    def test_zero_current_salary_has_zero_percentage(self):
        calc = compute(Decimal("0"), AdjustmentType.FIXED_AMOUNT, Decimal("500000"))
        assert calc.new_salary == Decimal("500000")
        assert calc.change_percentage == Decimal("0")

    def test_deterministic(self):
        first = compute(Decimal("8000000"), AdjustmentType.PERCENTAGE, Decimal("7.5"))
        second = compute(Decimal("8000000"), AdjustmentType.PERCENTAGE, Decimal("7.5"))
        assert first == second

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            compute(Decimal("100"), "bonus", Decimal("1"))


# =============================================================================
# Gross salary and component planning
# =============================================================================


class TestGrossSalary:
    def test_sums_basic_and_fixed_allowance(self):
        components = (
            _component(ComponentType.BASIC_SALARY, "8000000"),
            _component(ComponentType.FIXED_ALLOWANCE, "2000000"),
        )
        assert current_gross_salary(components) == Decimal("10000000")

    def test_variable_pay_excluded(self):
        components = (
            _component(ComponentType.BASIC_SALARY, "8000000"),
            _component(ComponentType.VARIABLE, "1000000"),
        )
        assert current_gross_salary(components) == Decimal("8000000")

    def test_inactive_components_excluded(self):
        components = (
            _component(ComponentType.BASIC_SALARY, "8000000"),
            _component(ComponentType.FIXED_ALLOWANCE, "2000000", is_active=False),
        )
        assert current_gross_salary(components) == Decimal("8000000")

    def test_no_components(self):
        assert current_gross_salary(()) == Decimal("0")


class TestPlanComponentChanges:
    def test_delta_lands_on_basic_salary(self):
        basic = _component(ComponentType.BASIC_SALARY, "8000000", name="Basic Salary")
        allowance = _component(ComponentType.FIXED_ALLOWANCE, "2000000")

        changes = plan_component_changes((allowance, basic), Decimal("1000000"))

        assert len(changes) == 1
        change = changes[0]
        assert change.component_id == basic.component_id
        assert change.component_name == "Basic Salary"
        assert change.previous_amount == Decimal("8000000")
        assert change.new_amount == Decimal("9000000")
        assert change.delta == Decimal("1000000")

    def test_first_active_basic_wins(self):
        inactive = _component(ComponentType.BASIC_SALARY, "1000", is_active=False)
        first = _component(ComponentType.BASIC_SALARY, "2000")
        second = _component(ComponentType.BASIC_SALARY, "3000")

        assert primary_basic_component((inactive, first, second)) == first

    def test_no_basic_component_gives_empty_plan(self):
        allowance = _component(ComponentType.FIXED_ALLOWANCE, "4000000")
        assert plan_component_changes((allowance,), Decimal("400000")) == ()


# =============================================================================
# Validation
# =============================================================================


class TestParseAdjustmentValue:
    @pytest.mark.parametrize("raw, expected", [
        ("10", Decimal("10")),
        (" 2.5 ", Decimal("2.5")),
        (7, Decimal("7")),
        (Decimal("-3"), Decimal("-3")),
    ])
    def test_accepts_numbers(self, raw, expected):
        assert parse_adjustment_value(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", None, True, "NaN", "Infinity"])
    def test_rejects_non_numbers(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            parse_adjustment_value(raw)
        assert exc_info.value.field == "adjustment_value"


class TestValidateAdjustment:
    def test_returns_parsed_value(self):
        assert validate_adjustment(AdjustmentType.PERCENTAGE, "10") == Decimal("10")

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            validate_adjustment(AdjustmentType.FIXED_AMOUNT, Decimal("0"))

    def test_percentage_must_exceed_minus_hundred(self):
        with pytest.raises(ValidationError):
            validate_adjustment(AdjustmentType.PERCENTAGE, Decimal("-100"))
        assert validate_adjustment(AdjustmentType.PERCENTAGE, Decimal("-99.9")) == Decimal("-99.9")

    def test_percentage_maximum(self):
        limits = ValidationLimits(max_percentage_adjustment=Decimal("50"))
        assert validate_adjustment(AdjustmentType.PERCENTAGE, "50", limits) == Decimal("50")
        with pytest.raises(ValidationError):
            validate_adjustment(AdjustmentType.PERCENTAGE, "50.01", limits)

    def test_fixed_amount_maximum_applies_to_magnitude(self):
        limits = ValidationLimits(max_fixed_adjustment=Decimal("1000"))
        with pytest.raises(ValidationError):
            validate_adjustment(AdjustmentType.FIXED_AMOUNT, "-1001", limits)
        assert validate_adjustment(AdjustmentType.FIXED_AMOUNT, "-1000", limits) == Decimal("-1000")

    def test_new_structure_must_be_positive(self):
        with pytest.raises(ValidationError):
            validate_adjustment(AdjustmentType.NEW_STRUCTURE, "-1")

    def test_rollback_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_adjustment(AdjustmentType.ROLLBACK, "100")
        assert exc_info.value.field == "adjustment_type"
