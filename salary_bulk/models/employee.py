"""
ORM models for the reference Employee Directory.

Contract:
    EmployeeModel and SalaryComponentModel hold the directory data the bulk
    core reads and mutates.  SalaryChangeLogModel records every component
    write so later rollbacks can detect conflicting edits.

Architecture: salary_bulk/models.  Imports from salary_kernel.db only.

Invariants enforced:
    - Components are ordered by ``sort_order``; the first active
      basic_salary component is the one bulk adjustments write to.
    - Change log rows are append-only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salary_kernel.db.base import TrackedBase, UUIDString
from salary_kernel.db.types import ensure_utc, to_decimal

if TYPE_CHECKING:
    from salary_bulk.domain.types import Employee, SalaryComponent


class EmployeeModel(TrackedBase):
    __tablename__ = "employees"

    __table_args__ = (
        Index("ix_employees_department", "department"),
        Index("ix_employees_position", "position"),
        Index("ix_employees_status", "status"),
    )

    employee_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    components: Mapped[list["SalaryComponentModel"]] = relationship(
        "SalaryComponentModel",
        back_populates="employee",
        order_by="SalaryComponentModel.sort_order",
        cascade="all, delete-orphan",
    )

    def to_dto(self) -> Employee:
        from salary_bulk.domain.types import Employee, EmployeeStatus

        return Employee(
            employee_id=self.id,
            employee_number=self.employee_number,
            name=self.name,
            department=self.department,
            position=self.position,
            status=EmployeeStatus(self.status),
            components=tuple(c.to_dto() for c in self.components),
        )

    @classmethod
    def from_dto(cls, dto: Employee, created_by_id: UUID) -> EmployeeModel:
        model = cls(
            id=dto.employee_id,
            employee_number=dto.employee_number,
            name=dto.name,
            department=dto.department,
            position=dto.position,
            status=dto.status.value,
            created_by_id=created_by_id,
        )
        model.components = [
            SalaryComponentModel.from_dto(c, sort_order=i, created_by_id=created_by_id)
            for i, c in enumerate(dto.components)
        ]
        return model


class SalaryComponentModel(TrackedBase):
    __tablename__ = "salary_components"

    __table_args__ = (
        Index("ix_salary_components_employee", "employee_id", "sort_order"),
    )

    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    component_type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    employee: Mapped["EmployeeModel"] = relationship(
        "EmployeeModel",
        back_populates="components",
        foreign_keys=[employee_id],
    )

    def to_dto(self) -> SalaryComponent:
        from salary_bulk.domain.types import ComponentType, SalaryComponent

        return SalaryComponent(
            component_id=self.id,
            name=self.name,
            component_type=ComponentType(self.component_type),
            amount=to_decimal(self.amount),
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(
        cls, dto: SalaryComponent, sort_order: int, created_by_id: UUID,
    ) -> SalaryComponentModel:
        return cls(
            id=dto.component_id,
            sort_order=sort_order,
            name=dto.name,
            component_type=dto.component_type.value,
            amount=dto.amount,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )


class SalaryChangeLogModel(TrackedBase):
    """One row per component write made through the directory."""

    __tablename__ = "salary_change_logs"

    __table_args__ = (
        Index("ix_salary_change_logs_employee_time", "employee_id", "changed_at"),
        Index("ix_salary_change_logs_operation", "operation_id"),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    component_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    previous_amount: Mapped[Decimal] = mapped_column(nullable=False)
    new_amount: Mapped[Decimal] = mapped_column(nullable=False)
    # NULL for edits made outside any bulk operation
    operation_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    changed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    @property
    def changed_at_utc(self) -> datetime:
        return ensure_utc(self.changed_at)
