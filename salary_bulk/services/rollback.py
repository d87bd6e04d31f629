"""
RollbackService -- risk-assessed reversal of completed bulk operations.

Contract:
    ``plan(operation_id)`` returns an advisory RollbackPlan over the
    operation's applied items.  ``execute(plan, reason, ...)`` creates a
    NEW compensating operation of type ``rollback`` and runs it through
    the OperationExecutor, so progress, locking and per-item isolation are
    identical to a forward run.

Architecture: salary_bulk/services.  Imports from salary_bulk.domain and
    the executor, directory and history services.

Invariants enforced:
    - Only COMPLETED / PARTIALLY_COMPLETED forward operations inside the
      rollback window are eligible; only APPLIED items are reversible.
    - Risk warnings never block; a non-empty reason overrides them.
    - A reversed source item moves to ROLLEDBACK in the same SAVEPOINT
      as its component write, so it can never be reversed twice.
    - The source operation's status is left unchanged.

Failure modes:
    - OperationNotFoundError: unknown operation id.
    - RollbackIneligibleError: status, type, age, or nothing to reverse.
    - ValidationError: empty reason or an item subset outside the plan.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from salary_kernel.domain.clock import Clock, SystemClock
from salary_kernel.exceptions import (
    OperationNotFoundError,
    RollbackIneligibleError,
    ValidationError,
)
from salary_kernel.logging_config import get_logger
from salary_kernel.services.auditor_service import AuditorService

from salary_bulk.domain.calculator import current_gross_salary
from salary_bulk.domain.risk import (
    assess_rollback_risk,
    days_between,
    estimate_duration,
)
from salary_bulk.domain.types import (
    AdjustmentType,
    BulkOperation,
    BulkOperationItem,
    ExecutionResult,
    ItemStatus,
    OperationStatus,
    OperationType,
    RollbackPlan,
)
from salary_bulk.services.directory import EmployeeDirectory
from salary_bulk.services.executor import OperationExecutor, ProgressCallback
from salary_bulk.services.history import HistoryStore

from salary_config.schema import BulkOperationsConfig

logger = get_logger("bulk.rollback")


class RollbackService:
    """Rollback planner and executor.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT roll back rollback operations.
    """

    def __init__(
        self,
        session: Session,
        directory: EmployeeDirectory,
        history: HistoryStore,
        executor: OperationExecutor,
        clock: Clock | None = None,
        auditor_service: AuditorService | None = None,
        config: BulkOperationsConfig | None = None,
    ):
        self._session = session
        self._directory = directory
        self._history = history
        self._executor = executor
        self._clock = clock or SystemClock()
        self._auditor = auditor_service
        self._config = config or BulkOperationsConfig()

    # -------------------------------------------------------------------------
    # Plan
    # -------------------------------------------------------------------------

    def plan(self, operation_id: UUID) -> RollbackPlan:
        """Assess whether and how risky it is to reverse an operation.

        Raises:
            OperationNotFoundError: unknown operation_id.
            RollbackIneligibleError: the operation cannot be reversed.
        """
        detail = self._history.get_operation_by_id(operation_id)
        if detail is None:
            raise OperationNotFoundError(str(operation_id))

        operation = detail.operation
        now = self._clock.now()
        days = self._check_eligible(operation, now)

        eligible = tuple(
            item for item in detail.items if item.item_status == ItemStatus.APPLIED
        )
        if not eligible:
            raise RollbackIneligibleError(
                str(operation_id), "no applied items left to reverse",
            )

        total = sum((abs(item.salary_change_amount) for item in eligible), Decimal("0"))
        completed_at = operation.completed_at or operation.created_at or now
        conflicts = self._detect_conflicts(operation, eligible, completed_at)

        risk = self._config.risk
        assessment = assess_rollback_risk(
            days_since_completion=days,
            total_reversal_amount=total,
            item_count=len(eligible),
            conflicting_count=len(conflicts),
            config=risk,
        )

        plan = RollbackPlan(
            source_operation_id=operation.operation_id,
            source_operation_name=operation.name,
            items=eligible,
            total_reversal_amount=total,
            risk_level=assessment.risk_level,
            warnings=assessment.warnings,
            estimated_duration=estimate_duration(
                len(eligible), risk.rollback_minutes_per_item,
            ),
            days_since_completion=days,
            conflicting_employee_ids=conflicts,
            assessed_at=now,
        )

        logger.info(
            "rollback_planned",
            extra={
                "operation_id": str(operation_id),
                "item_count": len(eligible),
                "total_reversal_amount": total,
                "risk_level": plan.risk_level.value,
                "warning_count": len(plan.warnings),
                "days_since_completion": days,
            },
        )
        return plan

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    def execute(
        self,
        plan: RollbackPlan,
        reason: str,
        actor_id: UUID,
        item_ids: Sequence[UUID] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExecutionResult:
        """Create and run the compensating operation for ``plan``.

        ``item_ids`` selects a subset of the plan for a partial rollback;
        omitted means every item in the plan.

        Raises:
            ValidationError: empty reason, empty or unknown item subset.
            OperationNotFoundError / RollbackIneligibleError: the source
                operation vanished or is no longer eligible.
            PersistenceError: the compensating operation could not be stored.
        """
        if not reason or not reason.strip():
            raise ValidationError("Rollback reason is required", "reason")
        reason = reason.strip()

        selected = self._select_items(plan, item_ids)

        source_detail = self._history.get_operation_by_id(plan.source_operation_id)
        if source_detail is None:
            raise OperationNotFoundError(str(plan.source_operation_id))
        source = source_detail.operation
        now = self._clock.now()
        self._check_eligible(source, now)

        rollback_id = uuid4()
        items = tuple(
            BulkOperationItem(
                item_id=uuid4(),
                operation_id=rollback_id,
                item_index=index,
                employee_id=src.employee_id,
                employee_name=src.employee_name,
                department=src.department,
                previous_gross_salary=src.new_gross_salary,
                new_gross_salary=src.previous_gross_salary,
                salary_change_amount=-src.salary_change_amount,
                item_status=ItemStatus.PENDING,
                source_item_id=src.item_id,
            )
            for index, src in enumerate(selected)
        )

        operation = BulkOperation(
            operation_id=rollback_id,
            operation_type=OperationType.ROLLBACK,
            name=f"Rollback: {source.name}",
            adjustment_type=AdjustmentType.ROLLBACK,
            adjustment_value=Decimal("0"),  # per-item deltas carry the amounts
            effective_date=now.date(),
            status=OperationStatus.CREATED,
            employee_ids=tuple(item.employee_id for item in items),
            total_employees_affected=len(items),
            total_cost_impact=sum(
                (item.salary_change_amount for item in items), Decimal("0"),
            ),
            created_by=actor_id,
            description=f"Rollback of operation {source.operation_id}",
            change_reason=reason,
            created_at=now,
            source_operation_id=source.operation_id,
        )

        self._executor.persist(operation, items)

        if self._auditor:
            self._auditor.record_rollback_requested(
                source_operation_id=source.operation_id,
                rollback_operation_id=rollback_id,
                reason=reason,
                risk_level=plan.risk_level.value,
                warnings=plan.warnings,
                item_count=len(items),
                actor_id=actor_id,
            )

        logger.info(
            "rollback_requested",
            extra={
                "operation_id": str(source.operation_id),
                "rollback_operation_id": str(rollback_id),
                "item_count": len(items),
                "risk_level": plan.risk_level.value,
                "overridden_warnings": len(plan.warnings),
            },
        )

        return self._executor.execute(rollback_id, actor_id, on_progress)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _check_eligible(self, operation: BulkOperation, now: datetime) -> int:
        """Return whole days since completion, or raise if ineligible."""
        operation_id = str(operation.operation_id)
        if operation.is_rollback:
            raise RollbackIneligibleError(
                operation_id, "rollback operations cannot themselves be rolled back",
            )
        if not operation.status.is_rollback_eligible:
            raise RollbackIneligibleError(
                operation_id,
                f"status is {operation.status.value}; only completed or "
                f"partially completed operations can be rolled back",
            )

        completed_at = operation.completed_at or operation.created_at or now
        days = days_between(completed_at, now)
        window = self._config.risk.rollback_window_days
        if days > window:
            raise RollbackIneligibleError(
                operation_id,
                f"completed {days} days ago; the rollback window is {window} days",
            )
        return days

    def _detect_conflicts(
        self,
        operation: BulkOperation,
        items: Sequence[BulkOperationItem],
        completed_at: datetime,
    ) -> tuple[UUID, ...]:
        """Employees whose salary changed after the operation wrote it."""
        tolerance = self._config.execution.stale_tolerance
        changed_later = self._directory.changed_since(
            [item.employee_id for item in items],
            completed_at,
            exclude_operation_id=operation.operation_id,
        )

        conflicts: list[UUID] = []
        for item in items:
            employee = self._directory.get_by_id(item.employee_id)
            if (
                employee is None
                or item.employee_id in changed_later
                or abs(current_gross_salary(employee.components) - item.new_gross_salary)
                > tolerance
            ):
                conflicts.append(item.employee_id)
        return tuple(conflicts)

    @staticmethod
    def _select_items(
        plan: RollbackPlan,
        item_ids: Sequence[UUID] | None,
    ) -> tuple[BulkOperationItem, ...]:
        if item_ids is None:
            return plan.items
        if not item_ids:
            raise ValidationError(
                "Select at least one item to roll back", "item_ids",
            )
        wanted = set(item_ids)
        unknown = wanted - set(plan.item_ids)
        if unknown:
            raise ValidationError(
                f"{len(unknown)} item(s) are not part of the rollback plan",
                "item_ids",
                sorted(str(i) for i in unknown),
            )
        return tuple(item for item in plan.items if item.item_id in wanted)
