"""
ORM model for reusable bulk adjustment templates.

Architecture: salary_bulk/models.  Imports from salary_kernel.db only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from salary_kernel.db.base import TrackedBase
from salary_kernel.db.types import ensure_utc, to_decimal

if TYPE_CHECKING:
    from salary_bulk.domain.types import OperationTemplate


class OperationTemplateModel(TrackedBase):
    __tablename__ = "operation_templates"

    __table_args__ = (
        Index("ix_operation_templates_favorite", "is_favorite"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    operation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String(30), nullable=False)
    adjustment_value: Mapped[Decimal] = mapped_column(nullable=False)
    department_filter: Mapped[str | None] = mapped_column(String(100), nullable=True)
    position_filter: Mapped[str | None] = mapped_column(String(100), nullable=True)
    default_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def to_dto(self) -> OperationTemplate:
        from salary_bulk.domain.types import (
            AdjustmentType,
            OperationTemplate,
            OperationType,
        )

        return OperationTemplate(
            template_id=self.id,
            name=self.name,
            operation_type=OperationType(self.operation_type),
            adjustment_type=AdjustmentType(self.adjustment_type),
            adjustment_value=to_decimal(self.adjustment_value),
            description=self.description or "",
            department_filter=self.department_filter,
            position_filter=self.position_filter,
            default_reason=self.default_reason or "",
            is_favorite=self.is_favorite,
            usage_count=self.usage_count,
            created_by=self.created_by_id,
            created_at=ensure_utc(self.created_at),
            last_used_at=ensure_utc(self.last_used_at),
        )

    @classmethod
    def from_dto(
        cls, dto: OperationTemplate, created_by_id: UUID,
    ) -> OperationTemplateModel:
        model = cls(
            id=dto.template_id,
            name=dto.name,
            description=dto.description,
            operation_type=dto.operation_type.value,
            adjustment_type=dto.adjustment_type.value,
            adjustment_value=dto.adjustment_value,
            department_filter=dto.department_filter,
            position_filter=dto.position_filter,
            default_reason=dto.default_reason,
            is_favorite=dto.is_favorite,
            usage_count=dto.usage_count,
            last_used_at=dto.last_used_at,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model
