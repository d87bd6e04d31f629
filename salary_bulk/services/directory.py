"""
EmployeeDirectory -- employee lookup and salary component writes.

Contract:
    ``EmployeeDirectory`` is the protocol the bulk core consumes;
    ``SqlEmployeeDirectory`` is the reference implementation over the
    ``employees`` / ``salary_components`` tables.

Architecture: salary_bulk/services.  Imports from salary_bulk.domain,
    salary_bulk.models, and kernel infrastructure.

Invariants enforced:
    - A component write is rejected (SalaryWriteConflictError) when the
      stored amount no longer matches the caller's ``previous_amount`` or
      the new amount would be negative.
    - Every accepted write appends a SalaryChangeLogModel row.
    - ``lock_employee`` issues SELECT ... FOR UPDATE where the backend
      supports it.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from salary_kernel.db.types import to_decimal
from salary_kernel.domain.clock import Clock, SystemClock
from salary_kernel.exceptions import SalaryWriteConflictError
from salary_kernel.logging_config import get_logger

from salary_bulk.domain.types import (
    ComponentChange,
    Employee,
    EmployeeFilter,
    SalaryComponent,
)
from salary_bulk.models.employee import (
    EmployeeModel,
    SalaryChangeLogModel,
    SalaryComponentModel,
)

logger = get_logger("bulk.directory")

_AMOUNT_TOLERANCE = Decimal("0.01")


class EmployeeDirectory(Protocol):
    """Employee data consumed by selection, preview, execution and rollback."""

    def list(self, employee_filter: EmployeeFilter | None = None) -> tuple[Employee, ...]:
        ...

    def get_by_id(self, employee_id: UUID) -> Employee | None:
        ...

    def lock_employee(self, employee_id: UUID) -> Employee | None:
        ...

    def update_salary_components(
        self,
        employee_id: UUID,
        components: Sequence[ComponentChange],
        operation_id: UUID | None,
        changed_by: UUID,
    ) -> tuple[SalaryComponent, ...]:
        ...

    def changed_since(
        self,
        employee_ids: Sequence[UUID],
        since: datetime,
        exclude_operation_id: UUID | None = None,
    ) -> frozenset[UUID]:
        ...


class SqlEmployeeDirectory:
    """SQLAlchemy-backed EmployeeDirectory.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Employee CRUD beyond ``add`` belongs to the HR screens.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def add(self, employee: Employee, actor_id: UUID) -> Employee:
        """Register an employee with their components (seeding / import)."""
        model = EmployeeModel.from_dto(employee, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def list(self, employee_filter: EmployeeFilter | None = None) -> tuple[Employee, ...]:
        employee_filter = employee_filter or EmployeeFilter()
        stmt = (
            select(EmployeeModel)
            .options(selectinload(EmployeeModel.components))
            .order_by(EmployeeModel.employee_number)
        )
        if employee_filter.status is not None:
            stmt = stmt.where(EmployeeModel.status == employee_filter.status.value)
        if employee_filter.department is not None:
            stmt = stmt.where(EmployeeModel.department == employee_filter.department)
        if employee_filter.position is not None:
            stmt = stmt.where(EmployeeModel.position == employee_filter.position)
        if employee_filter.employee_ids is not None:
            stmt = stmt.where(EmployeeModel.id.in_(employee_filter.employee_ids))

        models = self._session.execute(stmt).scalars().all()
        return tuple(m.to_dto() for m in models)

    def get_by_id(self, employee_id: UUID) -> Employee | None:
        model = self._session.get(EmployeeModel, employee_id)
        return model.to_dto() if model is not None else None

    def lock_employee(self, employee_id: UUID) -> Employee | None:
        """Re-read the employee under a row lock, bypassing the identity map."""
        model = self._session.execute(
            select(EmployeeModel)
            .where(EmployeeModel.id == employee_id)
            .options(selectinload(EmployeeModel.components))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def update_salary_components(
        self,
        employee_id: UUID,
        components: Sequence[ComponentChange],
        operation_id: UUID | None,
        changed_by: UUID,
    ) -> tuple[SalaryComponent, ...]:
        """
        Write new component amounts and log each change.

        Raises:
            SalaryWriteConflictError: unknown component, concurrent change,
                or negative resulting amount.
        """
        now = self._clock.now()
        for change in components:
            model = self._session.get(SalaryComponentModel, change.component_id)
            if model is None or model.employee_id != employee_id:
                raise SalaryWriteConflictError(
                    str(employee_id),
                    f"component {change.component_id} does not belong to employee",
                )
            if abs(to_decimal(model.amount) - change.previous_amount) > _AMOUNT_TOLERANCE:
                raise SalaryWriteConflictError(
                    str(employee_id),
                    f"component {change.component_name} changed concurrently "
                    f"(expected {change.previous_amount}, found {model.amount})",
                )
            if change.new_amount < 0:
                raise SalaryWriteConflictError(
                    str(employee_id),
                    f"component {change.component_name} would become negative "
                    f"({change.new_amount})",
                )

            model.amount = change.new_amount
            model.updated_by_id = changed_by
            self._session.add(
                SalaryChangeLogModel(
                    employee_id=employee_id,
                    component_id=change.component_id,
                    previous_amount=change.previous_amount,
                    new_amount=change.new_amount,
                    operation_id=operation_id,
                    changed_by=changed_by,
                    changed_at=now,
                    created_by_id=changed_by,
                )
            )

        self._session.flush()

        logger.debug(
            "salary_components_updated",
            extra={
                "employee_id": str(employee_id),
                "operation_id": str(operation_id) if operation_id else None,
                "component_count": len(components),
            },
        )

        employee = self._session.get(EmployeeModel, employee_id)
        return tuple(c.to_dto() for c in employee.components) if employee else ()

    def changed_since(
        self,
        employee_ids: Sequence[UUID],
        since: datetime,
        exclude_operation_id: UUID | None = None,
    ) -> frozenset[UUID]:
        """Employees with component writes after ``since`` by anyone else."""
        if not employee_ids:
            return frozenset()
        stmt = select(SalaryChangeLogModel.employee_id).where(
            SalaryChangeLogModel.employee_id.in_(list(employee_ids)),
            SalaryChangeLogModel.changed_at > since,
        )
        if exclude_operation_id is not None:
            stmt = stmt.where(
                (SalaryChangeLogModel.operation_id.is_(None))
                | (SalaryChangeLogModel.operation_id != exclude_operation_id)
            )
        return frozenset(self._session.execute(stmt).scalars().all())
