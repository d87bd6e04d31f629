"""
TemplateStore -- reusable bulk adjustment configurations.

Contract:
    CRUD over OperationTemplateModel plus ``apply``, which hydrates an
    AdjustmentConfig and re-filters a SelectionContext by the template's
    department (or, failing that, position) filter.

Invariants enforced:
    - ``usage_count`` increments on every ``apply``, whether or not the
      resulting operation is ever executed.
    - Template adjustment values pass the same validation as operations.
    - Rollback templates cannot exist.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from salary_kernel.domain.clock import Clock, SystemClock
from salary_kernel.exceptions import TemplateNotFoundError, ValidationError
from salary_kernel.logging_config import get_logger
from salary_kernel.services.auditor_service import AuditorService

from salary_bulk.domain.calculator import validate_adjustment
from salary_bulk.domain.types import (
    AdjustmentConfig,
    OperationTemplate,
    OperationType,
)
from salary_bulk.models.template import OperationTemplateModel
from salary_bulk.services.selection import SelectionContext

from salary_config.schema import BulkOperationsConfig

logger = get_logger("bulk.templates")

COPY_SUFFIX = " (Copy)"


class TemplateStore:
    """Template persistence.  Does NOT call ``session.commit()``."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor_service: AuditorService | None = None,
        config: BulkOperationsConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor_service
        self._config = config or BulkOperationsConfig()

    # CRUD

    def create(self, template: OperationTemplate, actor_id: UUID) -> OperationTemplate:
        """Store a new template; ``template_id`` is taken as given."""
        template = self._validated(template)
        model = OperationTemplateModel.from_dto(
            replace(template, usage_count=0, last_used_at=None),
            created_by_id=actor_id,
        )
        model.created_at = self._clock.now()
        self._session.add(model)
        self._session.flush()

        logger.info(
            "template_created",
            extra={"template_id": str(model.id), "template_name": model.name},
        )
        return model.to_dto()

    def get(self, template_id: UUID) -> OperationTemplate:
        return self._load(template_id).to_dto()

    def list_templates(self, favorites_first: bool = True) -> tuple[OperationTemplate, ...]:
        stmt = select(OperationTemplateModel)
        if favorites_first:
            stmt = stmt.order_by(
                OperationTemplateModel.is_favorite.desc(),
                OperationTemplateModel.usage_count.desc(),
                OperationTemplateModel.name,
            )
        else:
            stmt = stmt.order_by(OperationTemplateModel.name)
        return tuple(m.to_dto() for m in self._session.execute(stmt).scalars().all())

    def update(self, template: OperationTemplate, actor_id: UUID) -> OperationTemplate:
        """Overwrite the editable fields; usage statistics are kept."""
        template = self._validated(template)
        model = self._load(template.template_id)
        model.name = template.name
        model.description = template.description
        model.operation_type = template.operation_type.value
        model.adjustment_type = template.adjustment_type.value
        model.adjustment_value = template.adjustment_value
        model.department_filter = template.department_filter
        model.position_filter = template.position_filter
        model.default_reason = template.default_reason
        model.is_favorite = template.is_favorite
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def delete(self, template_id: UUID) -> None:
        model = self._load(template_id)
        self._session.delete(model)
        self._session.flush()
        logger.info("template_deleted", extra={"template_id": str(template_id)})

    def toggle_favorite(self, template_id: UUID, actor_id: UUID) -> OperationTemplate:
        model = self._load(template_id)
        model.is_favorite = not model.is_favorite
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def duplicate(self, template_id: UUID, actor_id: UUID) -> OperationTemplate:
        source = self.get(template_id)
        return self.create(
            replace(
                source,
                template_id=uuid4(),
                name=f"{source.name}{COPY_SUFFIX}",
                is_favorite=False,
                created_at=None,
            ),
            actor_id,
        )

    # Apply

    def apply(
        self,
        template_id: UUID,
        actor_id: UUID,
        selection: SelectionContext | None = None,
    ) -> AdjustmentConfig:
        """Hydrate an adjustment from the template and count the use."""
        model = self._load(template_id)
        model.usage_count = (model.usage_count or 0) + 1
        model.last_used_at = self._clock.now()
        model.updated_by_id = actor_id
        self._session.flush()
        template = model.to_dto()

        if selection is not None:
            if template.department_filter:
                selection.select_by_department(template.department_filter)
            elif template.position_filter:
                selection.select_by_position(template.position_filter)

        if self._auditor:
            self._auditor.record_template_applied(
                template_id=template_id,
                usage_count=template.usage_count,
                actor_id=actor_id,
            )

        logger.info(
            "template_applied",
            extra={
                "template_id": str(template_id),
                "usage_count": template.usage_count,
                "selected": len(selection) if selection is not None else None,
            },
        )

        return AdjustmentConfig(
            operation_type=template.operation_type,
            adjustment_type=template.adjustment_type,
            adjustment_value=template.adjustment_value,
            reason=template.default_reason,
            name=template.name,
            description=template.description,
            template_id=template.template_id,
        )

    # Internal helpers

    def _load(self, template_id: UUID) -> OperationTemplateModel:
        model = self._session.get(OperationTemplateModel, template_id)
        if model is None:
            raise TemplateNotFoundError(str(template_id))
        return model

    def _validated(self, template: OperationTemplate) -> OperationTemplate:
        name = (template.name or "").strip()
        if not name:
            raise ValidationError("Template name is required", "name")
        if template.operation_type == OperationType.ROLLBACK:
            raise ValidationError(
                "Rollback templates are not allowed",
                "operation_type",
                template.operation_type.value,
            )
        value = validate_adjustment(
            template.adjustment_type,
            template.adjustment_value,
            self._config.validation,
        )
        return replace(template, name=name, adjustment_value=value)
