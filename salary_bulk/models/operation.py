"""
ORM models for bulk operation history.

Contract:
    BulkOperationModel and BulkOperationItemModel persist operation headers
    and per-employee items.  Each has ``to_dto()`` / ``from_dto()``
    round-trip methods.

Architecture: salary_bulk/models.  Imports from salary_kernel.db only.

Invariants enforced:
    - ``seq`` allocated via SequenceService (not set by ORM).
    - Items reference exactly one operation (FK, CASCADE).
    - ``source_operation_id`` is set only on rollback operations;
      ``source_item_id`` only on rollback items.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salary_kernel.db.base import TrackedBase, UUIDString
from salary_kernel.db.types import ensure_utc, to_decimal

if TYPE_CHECKING:
    from salary_bulk.domain.types import (
        BulkOperation,
        BulkOperationItem,
        ComponentChange,
    )


def component_changes_to_json(
    changes: tuple[ComponentChange, ...],
) -> list[dict[str, Any]]:
    return [
        {
            "component_id": str(c.component_id),
            "component_name": c.component_name,
            "component_type": c.component_type.value,
            "previous_amount": str(c.previous_amount),
            "new_amount": str(c.new_amount),
        }
        for c in changes
    ]


def component_changes_from_json(
    data: list[dict[str, Any]] | None,
) -> tuple[ComponentChange, ...]:
    from salary_bulk.domain.types import ComponentChange, ComponentType

    return tuple(
        ComponentChange(
            component_id=UUID(d["component_id"]),
            component_name=d["component_name"],
            component_type=ComponentType(d["component_type"]),
            previous_amount=Decimal(d["previous_amount"]),
            new_amount=Decimal(d["new_amount"]),
        )
        for d in data or ()
    )


class BulkOperationModel(TrackedBase):
    """Persistent bulk operation header."""

    __tablename__ = "bulk_operations"

    __table_args__ = (
        Index("ix_bulk_operations_status", "status"),
        Index("ix_bulk_operations_type", "operation_type"),
        Index("ix_bulk_operations_created_at", "created_at"),
        Index("ix_bulk_operations_source", "source_operation_id"),
    )

    operation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    adjustment_type: Mapped[str] = mapped_column(String(30), nullable=False)
    adjustment_value: Mapped[Decimal] = mapped_column(nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    employee_ids: Mapped[list] = mapped_column(JSON, nullable=False)
    total_employees_affected: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cost_impact: Mapped[Decimal] = mapped_column(nullable=False)
    change_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    successful_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    source_operation_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("bulk_operations.id"),
        nullable=True,
    )
    seq: Mapped[int | None] = mapped_column(nullable=True, unique=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    error_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["BulkOperationItemModel"]] = relationship(
        "BulkOperationItemModel",
        back_populates="operation",
        foreign_keys="BulkOperationItemModel.operation_id",
        order_by="BulkOperationItemModel.item_index",
    )

    def to_dto(self) -> BulkOperation:
        from salary_bulk.domain.types import (
            AdjustmentType,
            BulkOperation,
            OperationStatus,
            OperationType,
        )

        return BulkOperation(
            operation_id=self.id,
            operation_type=OperationType(self.operation_type),
            name=self.name,
            adjustment_type=AdjustmentType(self.adjustment_type),
            adjustment_value=to_decimal(self.adjustment_value),
            effective_date=self.effective_date,
            status=OperationStatus(self.status),
            employee_ids=tuple(UUID(e) for e in self.employee_ids or ()),
            total_employees_affected=self.total_employees_affected,
            total_cost_impact=to_decimal(self.total_cost_impact),
            created_by=self.created_by_id,
            description=self.description or "",
            change_reason=self.change_reason or "",
            created_at=ensure_utc(self.created_at),
            started_at=ensure_utc(self.started_at),
            completed_at=ensure_utc(self.completed_at),
            successful_items=self.successful_items,
            failed_items=self.failed_items,
            source_operation_id=self.source_operation_id,
            error_summary=self.error_summary,
            seq=self.seq,
        )

    @classmethod
    def from_dto(cls, dto: BulkOperation) -> BulkOperationModel:
        model = cls(
            id=dto.operation_id,
            operation_type=dto.operation_type.value,
            name=dto.name,
            description=dto.description,
            adjustment_type=dto.adjustment_type.value,
            adjustment_value=dto.adjustment_value,
            effective_date=dto.effective_date,
            status=dto.status.value,
            employee_ids=[str(e) for e in dto.employee_ids],
            total_employees_affected=dto.total_employees_affected,
            total_cost_impact=dto.total_cost_impact,
            change_reason=dto.change_reason,
            successful_items=dto.successful_items,
            failed_items=dto.failed_items,
            source_operation_id=dto.source_operation_id,
            seq=dto.seq,
            started_at=dto.started_at,
            completed_at=dto.completed_at,
            error_summary=dto.error_summary,
            created_by_id=dto.created_by,
            updated_by_id=None,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model


class BulkOperationItemModel(TrackedBase):
    """Per-employee unit of work within a bulk operation."""

    __tablename__ = "bulk_operation_items"

    __table_args__ = (
        Index("ix_bulk_items_operation_status", "operation_id", "item_status"),
        Index("ix_bulk_items_employee", "employee_id"),
    )

    operation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bulk_operations.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_index: Mapped[int] = mapped_column(Integer, nullable=False)
    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    previous_gross_salary: Mapped[Decimal] = mapped_column(nullable=False)
    new_gross_salary: Mapped[Decimal] = mapped_column(nullable=False)
    salary_change_amount: Mapped[Decimal] = mapped_column(nullable=False)
    item_status: Mapped[str] = mapped_column(String(20), nullable=False)
    component_changes: Mapped[list | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("bulk_operation_items.id"),
        nullable=True,
    )
    applied_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    operation: Mapped["BulkOperationModel"] = relationship(
        "BulkOperationModel",
        back_populates="items",
        foreign_keys=[operation_id],
    )

    def to_dto(self) -> BulkOperationItem:
        from salary_bulk.domain.types import BulkOperationItem, ItemStatus

        return BulkOperationItem(
            item_id=self.id,
            operation_id=self.operation_id,
            item_index=self.item_index,
            employee_id=self.employee_id,
            employee_name=self.employee_name,
            department=self.department,
            previous_gross_salary=to_decimal(self.previous_gross_salary),
            new_gross_salary=to_decimal(self.new_gross_salary),
            salary_change_amount=to_decimal(self.salary_change_amount),
            item_status=ItemStatus(self.item_status),
            component_changes=component_changes_from_json(self.component_changes),
            error=self.error,
            error_code=self.error_code,
            source_item_id=self.source_item_id,
            applied_at=ensure_utc(self.applied_at),
        )

    @classmethod
    def from_dto(
        cls, dto: BulkOperationItem, created_by_id: UUID,
    ) -> BulkOperationItemModel:
        return cls(
            id=dto.item_id,
            operation_id=dto.operation_id,
            item_index=dto.item_index,
            employee_id=dto.employee_id,
            employee_name=dto.employee_name,
            department=dto.department,
            previous_gross_salary=dto.previous_gross_salary,
            new_gross_salary=dto.new_gross_salary,
            salary_change_amount=dto.salary_change_amount,
            item_status=dto.item_status.value,
            component_changes=component_changes_to_json(dto.component_changes) or None,
            error=dto.error,
            error_code=dto.error_code,
            source_item_id=dto.source_item_id,
            applied_at=dto.applied_at,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
