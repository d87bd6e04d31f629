"""
PreviewBuilder -- before/after salary rows for a selection.

Contract:
    ``build(selected_ids, config)`` reads each employee from the directory,
    runs the calculator, and aggregates.  Recomputed on every call; nothing
    is cached between calls.

Invariants enforced:
    - Rows follow the order of ``selected_ids``.
    - ``total_cost_impact == sum(row.change_amount)``.
    - ``annual_impact == total_cost_impact * ANNUALIZATION_MONTHS``.
    - Employees missing from the directory are skipped and logged.

Failure modes:
    - ValidationError: empty selection or invalid adjustment value.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from salary_kernel.exceptions import ValidationError
from salary_kernel.logging_config import get_logger

from salary_bulk.domain.calculator import (
    compute,
    current_gross_salary,
    plan_component_changes,
    validate_adjustment,
)
from salary_bulk.domain.types import (
    AdjustmentConfig,
    PreviewResult,
    PreviewRow,
)
from salary_bulk.services.directory import EmployeeDirectory

from salary_config.schema import BulkOperationsConfig

logger = get_logger("bulk.preview")

ANNUALIZATION_MONTHS = 12


class PreviewBuilder:
    def __init__(
        self,
        directory: EmployeeDirectory,
        config: BulkOperationsConfig | None = None,
    ):
        self._directory = directory
        self._config = config or BulkOperationsConfig()

    def build(
        self,
        selected_ids: Sequence[UUID],
        adjustment: AdjustmentConfig,
    ) -> PreviewResult:
        if not selected_ids:
            raise ValidationError("No employees selected", "employee_ids")

        value = validate_adjustment(
            adjustment.adjustment_type,
            adjustment.adjustment_value,
            self._config.validation,
        )

        rows: list[PreviewRow] = []
        skipped: list[UUID] = []
        for employee_id in dict.fromkeys(selected_ids):
            employee = self._directory.get_by_id(employee_id)
            if employee is None:
                logger.warning(
                    "preview_employee_missing",
                    extra={"employee_id": str(employee_id)},
                )
                skipped.append(employee_id)
                continue

            current = current_gross_salary(employee.components)
            calc = compute(current, adjustment.adjustment_type, value)
            rows.append(
                PreviewRow(
                    employee_id=employee.employee_id,
                    employee_name=employee.name,
                    department=employee.department,
                    position=employee.position,
                    current_salary=current,
                    new_salary=calc.new_salary,
                    change_amount=calc.change_amount,
                    change_percentage=calc.change_percentage,
                    component_changes=plan_component_changes(
                        employee.components, calc.change_amount,
                    ),
                )
            )

        total = sum((r.change_amount for r in rows), Decimal("0"))
        if rows:
            average = sum((r.change_percentage for r in rows), Decimal("0")) / len(rows)
        else:
            average = Decimal("0")

        logger.info(
            "preview_built",
            extra={
                "adjustment_type": adjustment.adjustment_type.value,
                "employee_count": len(rows),
                "skipped_count": len(skipped),
                "total_cost_impact": total,
            },
        )

        return PreviewResult(
            rows=tuple(rows),
            employee_count=len(rows),
            total_cost_impact=total,
            average_change_percentage=average,
            annual_impact=total * ANNUALIZATION_MONTHS,
            config=adjustment,
            skipped_employee_ids=tuple(skipped),
        )
