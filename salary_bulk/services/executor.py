"""
OperationExecutor -- SAVEPOINT-per-item bulk salary execution engine.

Contract:
    Drives the bulk operation state machine: create (atomic header plus
    pending items), execute (SAVEPOINT per item with progress reporting),
    cancel, query.

Architecture: salary_bulk/services.  Imports from salary_bulk.domain,
    salary_bulk.services (directory, history, locks), and kernel services.

Invariants enforced:
    - ``create`` persists the operation and every item, or nothing.
    - Each item runs in its own SAVEPOINT; one failure never aborts the
      batch and never escapes ``execute``.
    - Each item holds its employee's lock from re-read to write, so the
      captured previous gross salary is still current when applied.
    - Final status: COMPLETED (no failures), FAILED (no successes),
      PARTIALLY_COMPLETED otherwise.  Terminal states are immutable.
    - All timestamps come from the injected Clock.
    - Every lifecycle step is audited when an AuditorService is wired.

Failure modes:
    - ValidationError: bad metadata, empty rows, duplicate employees.
    - PersistenceError: history store unreachable during ``create`` or
      before the first item; the operation keeps its last durable status.
    - OperationNotFoundError / InvalidOperationStateError: unknown id or
      an operation that is not in CREATED status.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salary_kernel.domain.clock import Clock, SystemClock
from salary_kernel.exceptions import (
    EmployeeNotFoundError,
    InvalidOperationStateError,
    ItemAlreadyRolledBackError,
    ItemExecutionError,
    MissingSalaryComponentError,
    OperationNotFoundError,
    PersistenceError,
    StaleSalaryDataError,
    ValidationError,
)
from salary_kernel.logging_config import LogContext, get_logger
from salary_kernel.services.auditor_service import AuditorService

from salary_bulk.domain.calculator import (
    current_gross_salary,
    plan_component_changes,
    validate_adjustment,
)
from salary_bulk.domain.types import (
    BulkOperation,
    BulkOperationItem,
    ExecutionProgress,
    ExecutionResult,
    ItemError,
    ItemStatus,
    OperationMetadata,
    OperationStatus,
    OperationType,
    PreviewRow,
)
from salary_bulk.services.directory import EmployeeDirectory
from salary_bulk.services.history import HistoryStore
from salary_bulk.services.locks import EmployeeLockRegistry

from salary_config.schema import BulkOperationsConfig

logger = get_logger("bulk.executor")

ProgressCallback = Callable[[ExecutionProgress], None]

UNHANDLED_ERROR_CODE = "UNHANDLED_EXCEPTION"


def final_status(successful: int, failed: int) -> OperationStatus:
    """Aggregate status from item outcome counts."""
    if failed == 0:
        return OperationStatus.COMPLETED
    if successful == 0:
        return OperationStatus.FAILED
    return OperationStatus.PARTIALLY_COMPLETED


class OperationExecutor:
    """Bulk salary execution engine with SAVEPOINT-per-item isolation.

    Contract:
        - ``create()`` persists a CREATED operation with pending items.
        - ``persist()`` is the shared atomic write used by ``create`` and
          by the rollback service for compensating operations.
        - ``execute()`` runs every item with per-item SAVEPOINTs.
        - ``cancel()`` moves a CREATED operation to CANCELLED.
        - ``get_operation()`` / ``get_items()`` for queries.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT run items in parallel; a Session is not thread-safe.
        - No mid-item preemption; cancelling a running operation means
          letting it finish and rolling back afterwards.
    """

    def __init__(
        self,
        session: Session,
        directory: EmployeeDirectory,
        history: HistoryStore,
        lock_registry: EmployeeLockRegistry,
        clock: Clock | None = None,
        auditor_service: AuditorService | None = None,
        config: BulkOperationsConfig | None = None,
    ):
        self._session = session
        self._directory = directory
        self._history = history
        self._locks = lock_registry
        self._clock = clock or SystemClock()
        self._auditor = auditor_service
        self._config = config or BulkOperationsConfig()

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(
        self,
        metadata: OperationMetadata,
        preview_rows: Sequence[PreviewRow],
    ) -> BulkOperation:
        """Persist a confirmed preview as a CREATED operation.

        Raises:
            ValidationError: invalid metadata or rows.
            PersistenceError: the history store rejected the write.
        """
        self._validate_metadata(metadata, preview_rows)
        value = validate_adjustment(
            metadata.adjustment_type,
            metadata.adjustment_value,
            self._config.validation,
        )

        now = self._clock.now()
        operation_id = uuid4()
        items = tuple(
            BulkOperationItem(
                item_id=uuid4(),
                operation_id=operation_id,
                item_index=index,
                employee_id=row.employee_id,
                employee_name=row.employee_name,
                department=row.department,
                previous_gross_salary=row.current_salary,
                new_gross_salary=row.new_salary,
                salary_change_amount=row.change_amount,
                item_status=ItemStatus.PENDING,
                component_changes=row.component_changes,
            )
            for index, row in enumerate(preview_rows)
        )

        operation = BulkOperation(
            operation_id=operation_id,
            operation_type=metadata.operation_type,
            name=metadata.name.strip(),
            adjustment_type=metadata.adjustment_type,
            adjustment_value=value,
            effective_date=metadata.effective_date,
            status=OperationStatus.CREATED,
            employee_ids=tuple(item.employee_id for item in items),
            total_employees_affected=len(items),
            total_cost_impact=sum(
                (item.salary_change_amount for item in items), Decimal("0"),
            ),
            created_by=metadata.created_by,
            description=metadata.description,
            change_reason=metadata.change_reason,
            created_at=now,
        )

        return self.persist(operation, items)

    def persist(
        self,
        operation: BulkOperation,
        items: Sequence[BulkOperationItem],
    ) -> BulkOperation:
        """Atomically write header, items, and the creation audit event.

        Raises:
            PersistenceError: any store failure; nothing is left behind.
        """
        try:
            with self._session.begin_nested():
                persisted = self._history.create_operation(operation, items)
                if self._auditor:
                    self._auditor.record_operation_created(
                        operation_id=operation.operation_id,
                        name=operation.name,
                        operation_type=operation.operation_type.value,
                        total_items=len(items),
                        total_cost_impact=operation.total_cost_impact,
                        actor_id=operation.created_by,
                        source_operation_id=operation.source_operation_id,
                    )
        except SQLAlchemyError as exc:
            logger.error(
                "operation_create_failed",
                extra={
                    "operation_id": str(operation.operation_id),
                    "error": str(exc),
                },
            )
            raise PersistenceError(
                "create", str(exc), str(operation.operation_id),
            ) from exc

        logger.info(
            "operation_created",
            extra={
                "operation_id": str(persisted.operation_id),
                "operation_type": persisted.operation_type.value,
                "adjustment_type": persisted.adjustment_type.value,
                "total_items": persisted.total_employees_affected,
                "total_cost_impact": persisted.total_cost_impact,
                "seq": persisted.seq,
            },
        )
        return persisted

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    def execute(
        self,
        operation_id: UUID,
        actor_id: UUID,
        on_progress: ProgressCallback | None = None,
    ) -> ExecutionResult:
        """Apply every item of a CREATED operation.

        Per-item failures are recorded on the item and counted; they are
        never raised.  ``on_progress`` is called after each item.

        Raises:
            OperationNotFoundError: unknown operation_id.
            InvalidOperationStateError: operation is not CREATED.
            PersistenceError: store failure before the first item ran;
                the operation stays CREATED.
        """
        start_time = time.monotonic()
        operation, items = self._start(operation_id, actor_id)

        successful = 0
        failed = 0
        errors: list[ItemError] = []
        total = len(items)

        with LogContext.bind(operation_id=str(operation_id), actor_id=str(actor_id)):
            for completed, item in enumerate(items, start=1):
                error = self._run_item(operation, item, actor_id)
                if error is None:
                    successful += 1
                else:
                    failed += 1
                    errors.append(error)
                self._report_progress(
                    on_progress,
                    ExecutionProgress(
                        completed=completed,
                        total=total,
                        current_employee_id=item.employee_id,
                    ),
                )

            status = final_status(successful, failed)
            completed_at = self._clock.now()
            error_summary = f"{failed} item(s) failed" if failed else None
            self._history.update_operation_status(
                operation_id,
                status,
                {
                    "successful_items": successful,
                    "failed_items": failed,
                    "completed_at": completed_at,
                    "error_summary": error_summary,
                },
            )

            duration_ms = int((time.monotonic() - start_time) * 1000)

            if self._auditor:
                self._auditor.record_operation_finished(
                    operation_id=operation_id,
                    status=status.value,
                    successful=successful,
                    failed=failed,
                    duration_ms=duration_ms,
                    actor_id=actor_id,
                )

            logger.info(
                "operation_executed",
                extra={
                    "status": status.value,
                    "total_items": total,
                    "successful": successful,
                    "failed": failed,
                    "duration_ms": duration_ms,
                },
            )

        return ExecutionResult(
            operation_id=operation_id,
            status=status,
            total=total,
            successful=successful,
            failed=failed,
            errors=tuple(errors),
            duration_ms=duration_ms,
        )

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    def cancel(
        self,
        operation_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> BulkOperation:
        """Cancel a CREATED operation; its items stay pending forever.

        Raises:
            ValidationError: empty reason.
            OperationNotFoundError: unknown operation_id.
            InvalidOperationStateError: operation is not CREATED.
        """
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required", "reason")

        operation = self._history.lock_operation(operation_id)
        if operation is None:
            raise OperationNotFoundError(str(operation_id))
        if operation.status != OperationStatus.CREATED:
            raise InvalidOperationStateError(
                str(operation_id), operation.status.value, "cancel",
            )

        cancelled = self._history.update_operation_status(
            operation_id,
            OperationStatus.CANCELLED,
            {
                "completed_at": self._clock.now(),
                "error_summary": f"Cancelled: {reason.strip()}",
            },
        )

        if self._auditor:
            self._auditor.record_operation_cancelled(
                operation_id=operation_id,
                reason=reason.strip(),
                actor_id=actor_id,
            )

        logger.info(
            "operation_cancelled",
            extra={"operation_id": str(operation_id), "reason": reason.strip()},
        )
        return cancelled

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_operation(self, operation_id: UUID) -> BulkOperation:
        """
        Raises:
            OperationNotFoundError: If operation_id does not exist.
        """
        detail = self._history.get_operation_by_id(operation_id)
        if detail is None:
            raise OperationNotFoundError(str(operation_id))
        return detail.operation

    def get_items(self, operation_id: UUID) -> tuple[BulkOperationItem, ...]:
        return self._history.get_items(operation_id)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _validate_metadata(
        self,
        metadata: OperationMetadata,
        preview_rows: Sequence[PreviewRow],
    ) -> None:
        name = (metadata.name or "").strip()
        if not name:
            raise ValidationError("Operation name is required", "name")
        if len(name) > self._config.validation.max_name_length:
            raise ValidationError(
                f"Operation name exceeds {self._config.validation.max_name_length} characters",
                "name",
                name,
            )
        if metadata.operation_type == OperationType.ROLLBACK:
            raise ValidationError(
                "Rollback operations are created by the rollback service only",
                "operation_type",
                metadata.operation_type.value,
            )
        if not preview_rows:
            raise ValidationError("No employees selected", "employee_ids")

        seen: set[UUID] = set()
        for row in preview_rows:
            if row.employee_id in seen:
                raise ValidationError(
                    f"Employee {row.employee_id} appears more than once",
                    "employee_ids",
                    str(row.employee_id),
                )
            seen.add(row.employee_id)

    def _start(
        self,
        operation_id: UUID,
        actor_id: UUID,
    ) -> tuple[BulkOperation, tuple[BulkOperationItem, ...]]:
        """CREATED -> EXECUTING under a row lock, or nothing at all."""
        try:
            with self._session.begin_nested():
                operation = self._history.lock_operation(operation_id)
                if operation is None:
                    raise OperationNotFoundError(str(operation_id))
                if operation.status != OperationStatus.CREATED:
                    raise InvalidOperationStateError(
                        str(operation_id), operation.status.value, "execute",
                    )

                items = self._history.get_items(operation_id)
                operation = self._history.update_operation_status(
                    operation_id,
                    OperationStatus.EXECUTING,
                    {"started_at": self._clock.now()},
                )

                if self._auditor:
                    self._auditor.record_operation_started(
                        operation_id=operation_id,
                        total_items=len(items),
                        actor_id=actor_id,
                    )
        except SQLAlchemyError as exc:
            logger.error(
                "operation_start_failed",
                extra={"operation_id": str(operation_id), "error": str(exc)},
            )
            raise PersistenceError("execute", str(exc), str(operation_id)) from exc

        logger.info(
            "operation_started",
            extra={"operation_id": str(operation_id), "total_items": len(items)},
        )
        return operation, items

    def _run_item(
        self,
        operation: BulkOperation,
        item: BulkOperationItem,
        actor_id: UUID,
    ) -> ItemError | None:
        """Apply one item in its own SAVEPOINT; return the error if it failed."""
        try:
            with self._locks.hold(
                item.employee_id, self._config.execution.lock_timeout_seconds,
            ):
                with self._session.begin_nested():
                    self._apply_item(operation, item, actor_id)
            return None
        except ItemExecutionError as exc:
            error_code, message = exc.code, str(exc)
        except Exception as exc:
            logger.warning(
                "item_unexpected_error",
                extra={"employee_id": str(item.employee_id)},
                exc_info=True,
            )
            error_code, message = UNHANDLED_ERROR_CODE, str(exc)

        self._history.update_item_status(
            item.item_id,
            ItemStatus.FAILED,
            {"error": message, "error_code": error_code},
        )

        if self._auditor:
            self._auditor.record_item_failed(
                operation_id=operation.operation_id,
                employee_id=str(item.employee_id),
                error_code=error_code,
                error_message=message,
                actor_id=actor_id,
            )

        logger.warning(
            "item_failed",
            extra={
                "employee_id": str(item.employee_id),
                "error_code": error_code,
                "error_message": message,
            },
        )
        return ItemError(
            item_id=item.item_id,
            employee_id=item.employee_id,
            error_code=error_code,
            message=message,
        )

    def _apply_item(
        self,
        operation: BulkOperation,
        item: BulkOperationItem,
        actor_id: UUID,
    ) -> None:
        employee = self._directory.lock_employee(item.employee_id)
        if employee is None:
            raise EmployeeNotFoundError(str(item.employee_id))

        current = current_gross_salary(employee.components)
        is_reversal = item.source_item_id is not None

        if is_reversal:
            source = self._history.lock_item(item.source_item_id)
            if source is None or source.item_status != ItemStatus.APPLIED:
                raise ItemAlreadyRolledBackError(
                    str(item.employee_id), str(item.source_item_id),
                )
        else:
            tolerance = self._config.execution.stale_tolerance
            if abs(current - item.previous_gross_salary) > tolerance:
                raise StaleSalaryDataError(
                    str(item.employee_id),
                    str(item.previous_gross_salary),
                    str(current),
                )

        changes = plan_component_changes(employee.components, item.salary_change_amount)
        if not changes:
            raise MissingSalaryComponentError(str(item.employee_id))

        self._directory.update_salary_components(
            item.employee_id, changes, operation.operation_id, actor_id,
        )

        details = {
            "component_changes": changes,
            "applied_at": self._clock.now(),
            "error": None,
            "error_code": None,
        }
        if is_reversal:
            # Reversal is relative to the salary found now, not at plan time
            details["previous_gross_salary"] = current
            details["new_gross_salary"] = current + item.salary_change_amount
        self._history.update_item_status(item.item_id, ItemStatus.APPLIED, details)

        if is_reversal:
            self._history.update_item_status(item.source_item_id, ItemStatus.ROLLEDBACK)

        logger.debug(
            "item_applied",
            extra={
                "employee_id": str(item.employee_id),
                "change_amount": item.salary_change_amount,
                "reversal": is_reversal,
            },
        )

    def _report_progress(
        self,
        on_progress: ProgressCallback | None,
        progress: ExecutionProgress,
    ) -> None:
        if on_progress is None:
            return
        try:
            on_progress(progress)
        except Exception:
            logger.warning(
                "progress_callback_failed",
                extra={"completed": progress.completed, "total": progress.total},
                exc_info=True,
            )
