"""
HistoryStore -- durable record of bulk operations and their items.

Contract:
    ``HistoryStore`` is the protocol the executor, rollback planner, and
    analytics aggregator consume; ``SqlHistoryStore`` is the reference
    implementation over ``bulk_operations`` / ``bulk_operation_items``.

Architecture: salary_bulk/services.  Imports from salary_bulk.domain,
    salary_bulk.models, and kernel infrastructure.

Invariants enforced:
    - ``create_operation`` allocates ``seq`` via SequenceService and
      flushes header and items together.
    - ``lock_operation`` / ``lock_item`` issue SELECT ... FOR UPDATE and
      refresh the identity map.
    - Status writes never skip the transition table in
      ``salary_bulk.domain.types.ALLOWED_TRANSITIONS``; item writes follow
      ``ITEM_TRANSITIONS`` the same way.

Failure modes:
    - OperationNotFoundError from ``update_operation_status`` for an
      unknown id.
    - InvalidOperationStateError for a transition the table forbids.
    - SQLAlchemyError propagates; the executor translates it.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from salary_kernel.exceptions import (
    InvalidOperationStateError,
    OperationNotFoundError,
)
from salary_kernel.logging_config import get_logger
from salary_kernel.services.sequence_service import SequenceService

from salary_bulk.domain.types import (
    BulkOperation,
    BulkOperationItem,
    ItemStatus,
    OperationDetail,
    OperationFilter,
    OperationStatus,
    OperationType,
    can_transition,
    can_transition_item,
)
from salary_bulk.models.operation import (
    BulkOperationItemModel,
    BulkOperationModel,
    component_changes_to_json,
)

logger = get_logger("bulk.history")


class HistoryStore(Protocol):
    """Operation and item persistence consumed by the bulk services."""

    def create_operation(
        self,
        operation: BulkOperation,
        items: Sequence[BulkOperationItem],
    ) -> BulkOperation:
        ...

    def update_item_status(
        self,
        item_id: UUID,
        status: ItemStatus,
        details: dict[str, Any] | None = None,
    ) -> BulkOperationItem:
        ...

    def update_operation_status(
        self,
        operation_id: UUID,
        status: OperationStatus,
        counts: dict[str, Any] | None = None,
    ) -> BulkOperation:
        ...

    def query_operations(
        self, operation_filter: OperationFilter | None = None,
    ) -> tuple[BulkOperation, ...]:
        ...

    def get_operation_by_id(self, operation_id: UUID) -> OperationDetail | None:
        ...

    def get_items(self, operation_id: UUID) -> tuple[BulkOperationItem, ...]:
        ...

    def get_items_for_operations(
        self, operation_ids: Sequence[UUID],
    ) -> tuple[BulkOperationItem, ...]:
        ...

    def lock_operation(self, operation_id: UUID) -> BulkOperation | None:
        ...

    def lock_item(self, item_id: UUID) -> BulkOperationItem | None:
        ...

    def rollbacks_of(
        self, operation_ids: Sequence[UUID],
    ) -> dict[UUID, tuple[BulkOperation, ...]]:
        ...


class SqlHistoryStore:
    """SQLAlchemy-backed HistoryStore.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT audit; the executor records lifecycle events.
    """

    _ITEM_DETAIL_FIELDS = frozenset({
        "error", "error_code", "component_changes", "applied_at",
        "previous_gross_salary", "new_gross_salary",
    })
    _OPERATION_COUNT_FIELDS = frozenset({
        "successful_items", "failed_items", "started_at", "completed_at",
        "error_summary",
    })

    def __init__(
        self,
        session: Session,
        sequence_service: SequenceService | None = None,
    ):
        self._session = session
        self._sequence = sequence_service or SequenceService(session)

    def create_operation(
        self,
        operation: BulkOperation,
        items: Sequence[BulkOperationItem],
    ) -> BulkOperation:
        seq = self._sequence.next_value(SequenceService.BULK_OPERATION)
        model = BulkOperationModel.from_dto(operation)
        model.seq = seq
        self._session.add(model)
        self._session.flush()

        for item in items:
            item_model = BulkOperationItemModel.from_dto(
                item, created_by_id=operation.created_by,
            )
            if operation.created_at is not None:
                item_model.created_at = operation.created_at
            self._session.add(item_model)
        self._session.flush()

        logger.info(
            "operation_persisted",
            extra={
                "operation_id": str(operation.operation_id),
                "item_count": len(items),
                "seq": seq,
            },
        )
        return model.to_dto()

    def update_item_status(
        self,
        item_id: UUID,
        status: ItemStatus,
        details: dict[str, Any] | None = None,
    ) -> BulkOperationItem:
        model = self._session.get(BulkOperationItemModel, item_id)
        if model is None:
            raise ValueError(f"Bulk operation item not found: {item_id}")

        current = ItemStatus(model.item_status)
        if not can_transition_item(current, status):
            raise InvalidOperationStateError(
                str(model.operation_id),
                current.value,
                f"move item {item_id} to {status.value}",
            )

        details = details or {}
        unknown = set(details) - self._ITEM_DETAIL_FIELDS
        if unknown:
            raise ValueError(f"Unknown item detail fields: {sorted(unknown)}")

        model.item_status = status.value
        for key, value in details.items():
            if key == "component_changes":
                value = component_changes_to_json(tuple(value)) or None
            setattr(model, key, value)
        self._session.flush()
        return model.to_dto()

    def update_operation_status(
        self,
        operation_id: UUID,
        status: OperationStatus,
        counts: dict[str, Any] | None = None,
    ) -> BulkOperation:
        model = self._session.get(BulkOperationModel, operation_id)
        if model is None:
            raise OperationNotFoundError(str(operation_id))

        current = OperationStatus(model.status)
        if current != status and not can_transition(current, status):
            raise InvalidOperationStateError(
                str(operation_id), current.value, f"move to {status.value}",
            )

        counts = counts or {}
        unknown = set(counts) - self._OPERATION_COUNT_FIELDS
        if unknown:
            raise ValueError(f"Unknown operation count fields: {sorted(unknown)}")

        model.status = status.value
        for key, value in counts.items():
            setattr(model, key, value)
        self._session.flush()
        return model.to_dto()

    def query_operations(
        self, operation_filter: OperationFilter | None = None,
    ) -> tuple[BulkOperation, ...]:
        """Operations matching the filter, newest first."""
        f = operation_filter or OperationFilter()
        stmt = select(BulkOperationModel).order_by(
            BulkOperationModel.created_at.desc(),
            BulkOperationModel.seq.desc(),
        )
        if f.start is not None:
            stmt = stmt.where(BulkOperationModel.created_at >= f.start)
        if f.end is not None:
            stmt = stmt.where(BulkOperationModel.created_at <= f.end)
        if f.operation_types:
            stmt = stmt.where(
                BulkOperationModel.operation_type.in_([t.value for t in f.operation_types])
            )
        if f.statuses:
            stmt = stmt.where(
                BulkOperationModel.status.in_([s.value for s in f.statuses])
            )
        if f.created_by is not None:
            stmt = stmt.where(BulkOperationModel.created_by_id == f.created_by)
        if f.source_operation_id is not None:
            stmt = stmt.where(
                BulkOperationModel.source_operation_id == f.source_operation_id
            )

        models = self._session.execute(stmt).scalars().all()
        return tuple(m.to_dto() for m in models)

    def get_operation_by_id(self, operation_id: UUID) -> OperationDetail | None:
        model = self._session.get(BulkOperationModel, operation_id)
        if model is None:
            return None
        return OperationDetail(
            operation=model.to_dto(),
            items=self.get_items(operation_id),
        )

    def get_items(self, operation_id: UUID) -> tuple[BulkOperationItem, ...]:
        models = self._session.execute(
            select(BulkOperationItemModel)
            .where(BulkOperationItemModel.operation_id == operation_id)
            .order_by(BulkOperationItemModel.item_index)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def get_items_for_operations(
        self, operation_ids: Sequence[UUID],
    ) -> tuple[BulkOperationItem, ...]:
        if not operation_ids:
            return ()
        models = self._session.execute(
            select(BulkOperationItemModel)
            .where(BulkOperationItemModel.operation_id.in_(list(operation_ids)))
            .order_by(
                BulkOperationItemModel.operation_id,
                BulkOperationItemModel.item_index,
            )
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def lock_operation(self, operation_id: UUID) -> BulkOperation | None:
        model = self._session.execute(
            select(BulkOperationModel)
            .where(BulkOperationModel.id == operation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def lock_item(self, item_id: UUID) -> BulkOperationItem | None:
        model = self._session.execute(
            select(BulkOperationItemModel)
            .where(BulkOperationItemModel.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def rollbacks_of(
        self, operation_ids: Sequence[UUID],
    ) -> dict[UUID, tuple[BulkOperation, ...]]:
        """Rollback operations grouped by the operation they reverse."""
        if not operation_ids:
            return {}
        models = self._session.execute(
            select(BulkOperationModel)
            .where(
                BulkOperationModel.operation_type == OperationType.ROLLBACK.value,
                BulkOperationModel.source_operation_id.in_(list(operation_ids)),
            )
            .order_by(BulkOperationModel.seq)
        ).scalars().all()

        grouped: dict[UUID, list[BulkOperation]] = {}
        for model in models:
            grouped.setdefault(model.source_operation_id, []).append(model.to_dto())
        return {key: tuple(value) for key, value in grouped.items()}
