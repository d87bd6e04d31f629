"""
salary_bulk.domain.calculator -- Pure salary adjustment arithmetic.

Responsibility:
    Compute the before/after gross salary of one employee for an
    adjustment, derive the gross salary from salary components, plan the
    component write that realises a gross delta, and validate adjustment
    requests before anything is persisted.

Architecture position:
    Domain -- pure calculation layer, zero I/O, no clock access.
    Consumed by the preview builder, the executor, and the rollback planner.

Invariants enforced:
    - Identical inputs produce identical outputs.
    - ``compute`` does not round: a percentage result equals
      ``current * (1 + value/100)`` to Decimal context precision.
    - ``change_percentage`` is 0 when the current salary is not positive.
    - Gross salary is the sum of ACTIVE basic_salary and fixed_allowance
      components; variable pay never counts.

Failure modes:
    - ValidationError from ``validate_adjustment`` for zero, non-numeric,
      or out-of-range values and for the rollback adjustment type.
    - ValueError from ``compute`` for an unknown adjustment type.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

from salary_kernel.exceptions import ValidationError

from salary_bulk.domain.types import (
    GROSS_COMPONENT_TYPES,
    AdjustmentType,
    ComponentChange,
    ComponentType,
    SalaryCalculation,
    SalaryComponent,
)

from salary_config.schema import ValidationLimits

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def compute(
    current_salary: Decimal,
    adjustment_type: AdjustmentType,
    adjustment_value: Decimal,
) -> SalaryCalculation:
    """Apply one adjustment to a current gross salary."""
    if adjustment_type == AdjustmentType.PERCENTAGE:
        new_salary = current_salary * (1 + adjustment_value / _HUNDRED)
    elif adjustment_type in (AdjustmentType.FIXED_AMOUNT, AdjustmentType.ROLLBACK):
        new_salary = current_salary + adjustment_value
    elif adjustment_type == AdjustmentType.NEW_STRUCTURE:
        new_salary = adjustment_value
    else:
        raise ValueError(f"Unknown adjustment type: {adjustment_type}")

    change_amount = new_salary - current_salary
    if current_salary > _ZERO:
        change_percentage = change_amount / current_salary * _HUNDRED
    else:
        change_percentage = _ZERO

    return SalaryCalculation(
        new_salary=new_salary,
        change_amount=change_amount,
        change_percentage=change_percentage,
    )


def current_gross_salary(components: Iterable[SalaryComponent]) -> Decimal:
    """Sum of active basic_salary and fixed_allowance amounts."""
    return sum(
        (
            c.amount
            for c in components
            if c.is_active and c.component_type in GROSS_COMPONENT_TYPES
        ),
        _ZERO,
    )


def primary_basic_component(
    components: Iterable[SalaryComponent],
) -> SalaryComponent | None:
    """First active basic_salary component in directory order."""
    for component in components:
        if component.is_active and component.component_type == ComponentType.BASIC_SALARY:
            return component
    return None


def plan_component_changes(
    components: Iterable[SalaryComponent],
    change_amount: Decimal,
) -> tuple[ComponentChange, ...]:
    """
    Component writes that move the gross salary by ``change_amount``.

    The whole delta lands on the primary basic_salary component.  Returns
    an empty tuple when there is no such component.
    """
    basic = primary_basic_component(components)
    if basic is None:
        return ()
    return (
        ComponentChange(
            component_id=basic.component_id,
            component_name=basic.name,
            component_type=basic.component_type,
            previous_amount=basic.amount,
            new_amount=basic.amount + change_amount,
        ),
    )


def parse_adjustment_value(raw: object) -> Decimal:
    """Coerce a user-supplied value to Decimal, rejecting non-numbers."""
    if isinstance(raw, bool):
        raise ValidationError("Adjustment value must be numeric", "adjustment_value", raw)
    if isinstance(raw, Decimal):
        value = raw
    else:
        try:
            value = Decimal(str(raw).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(
                "Adjustment value must be numeric", "adjustment_value", raw,
            ) from exc
    if not value.is_finite():
        raise ValidationError("Adjustment value must be finite", "adjustment_value", raw)
    return value


def validate_adjustment(
    adjustment_type: AdjustmentType,
    adjustment_value: object,
    limits: ValidationLimits | None = None,
) -> Decimal:
    """
    Validate a user adjustment request and return the parsed value.

    Raises:
        ValidationError: on any rule violation.
    """
    limits = limits or ValidationLimits()
    value = parse_adjustment_value(adjustment_value)

    if adjustment_type == AdjustmentType.ROLLBACK:
        raise ValidationError(
            "Rollback adjustments are created by the rollback service only",
            "adjustment_type",
            adjustment_type.value,
        )
    if value == _ZERO:
        raise ValidationError("Adjustment value must not be zero", "adjustment_value", value)

    if adjustment_type == AdjustmentType.PERCENTAGE:
        if value <= -_HUNDRED:
            raise ValidationError(
                "Percentage decrease must be greater than -100",
                "adjustment_value",
                value,
            )
        if value > limits.max_percentage_adjustment:
            raise ValidationError(
                f"Percentage exceeds maximum of {limits.max_percentage_adjustment}",
                "adjustment_value",
                value,
            )
    elif adjustment_type == AdjustmentType.FIXED_AMOUNT:
        if abs(value) > limits.max_fixed_adjustment:
            raise ValidationError(
                f"Fixed amount exceeds maximum of {limits.max_fixed_adjustment}",
                "adjustment_value",
                value,
            )
    elif adjustment_type == AdjustmentType.NEW_STRUCTURE:
        if value <= _ZERO:
            raise ValidationError(
                "New salary structure must be positive",
                "adjustment_value",
                value,
            )

    return value
