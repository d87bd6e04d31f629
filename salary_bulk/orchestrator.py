"""
BulkSalaryOrchestrator -- DI container and library boundary for bulk salary
adjustments.

Contract:
    Wires the employee directory, history store, lock registry, auditor and
    configuration into the preview builder, executor, rollback service,
    template store and analytics aggregator.  Its public methods are the
    operations callers (UI, CLI, automation) use.

Architecture: salary_bulk (top-level).  Canonical entry point.

Invariants enforced:
    - Every service receives the same Clock and configuration.
    - Executors built by one orchestrator share one EmployeeLockRegistry;
      by default that is the process-wide registry, so concurrent
      operations on different sessions still serialize per employee.
    - Selection state lives in SelectionContext objects the caller owns.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from salary_kernel.domain.clock import Clock, SystemClock
from salary_kernel.exceptions import OperationNotFoundError, ValidationError
from salary_kernel.logging_config import get_logger
from salary_kernel.services.auditor_service import AuditorService
from salary_kernel.services.sequence_service import SequenceService

from salary_bulk.domain.calculator import compute, parse_adjustment_value
from salary_bulk.domain.types import (
    AdjustmentConfig,
    BulkOperation,
    EmployeeFilter,
    ExecutionResult,
    OperationDetail,
    OperationFilter,
    OperationMetadata,
    PreviewResult,
    PreviewRow,
    RollbackPlan,
)
from salary_bulk.services.analytics import AnalyticsAggregator
from salary_bulk.services.directory import EmployeeDirectory, SqlEmployeeDirectory
from salary_bulk.services.executor import OperationExecutor, ProgressCallback
from salary_bulk.services.history import HistoryStore, SqlHistoryStore
from salary_bulk.services.locks import EmployeeLockRegistry, process_lock_registry
from salary_bulk.services.preview import PreviewBuilder
from salary_bulk.services.rollback import RollbackService
from salary_bulk.services.selection import SelectionContext
from salary_bulk.services.templates import TemplateStore

from salary_config.schema import BulkOperationsConfig

logger = get_logger("bulk.orchestrator")


class BulkSalaryOrchestrator:
    """DI container for the bulk salary core.

    Contract:
        - ``from_session()`` factory creates a fully wired orchestrator.
        - ``actor_id`` arguments default to the orchestrator's actor.

    Non-goals:
        - Does NOT manage session lifecycle -- caller controls commits.
        - Does NOT authenticate or authorize the actor.
    """

    def __init__(
        self,
        session: Session,
        directory: EmployeeDirectory,
        history: HistoryStore,
        clock: Clock | None = None,
        auditor_service: AuditorService | None = None,
        lock_registry: EmployeeLockRegistry | None = None,
        config: BulkOperationsConfig | None = None,
        actor_id: UUID | None = None,
    ) -> None:
        self._session = session
        self._directory = directory
        self._history = history
        self._clock = clock or SystemClock()
        self._auditor = auditor_service or AuditorService(
            session=session, clock=self._clock,
        )
        self._locks = lock_registry or process_lock_registry()
        self._config = config or BulkOperationsConfig()
        self._actor_id = actor_id or uuid4()

        self._preview = PreviewBuilder(directory, config=self._config)
        self._executor = OperationExecutor(
            session=session,
            directory=directory,
            history=history,
            lock_registry=self._locks,
            clock=self._clock,
            auditor_service=self._auditor,
            config=self._config,
        )
        self._rollback = RollbackService(
            session=session,
            directory=directory,
            history=history,
            executor=self._executor,
            clock=self._clock,
            auditor_service=self._auditor,
            config=self._config,
        )
        self._templates = TemplateStore(
            session=session,
            clock=self._clock,
            auditor_service=self._auditor,
            config=self._config,
        )
        self._analytics = AnalyticsAggregator(
            history=history, clock=self._clock, config=self._config,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session(
        cls,
        session: Session,
        clock: Clock | None = None,
        config: BulkOperationsConfig | None = None,
        lock_registry: EmployeeLockRegistry | None = None,
        directory: EmployeeDirectory | None = None,
        actor_id: UUID | None = None,
    ) -> BulkSalaryOrchestrator:
        """Create an orchestrator backed by the SQL reference stores.

        Args:
            session: SQLAlchemy session for persistence.
            clock: Optional clock for deterministic testing.
            config: Optional configuration; defaults match defaults.yaml.
            lock_registry: Optional registry; defaults to the process-wide one.
            directory: Optional external employee directory.
            actor_id: Optional default actor for audit attribution.
        """
        effective_clock = clock or SystemClock()
        return cls(
            session=session,
            directory=directory or SqlEmployeeDirectory(session, clock=effective_clock),
            history=SqlHistoryStore(session, SequenceService(session)),
            clock=effective_clock,
            auditor_service=AuditorService(session=session, clock=effective_clock),
            lock_registry=lock_registry,
            config=config,
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Selection and preview
    # -------------------------------------------------------------------------

    def new_selection(
        self, employee_filter: EmployeeFilter | None = None,
    ) -> SelectionContext:
        """Fresh selection over active employees (nothing selected)."""
        return SelectionContext.from_directory(self._directory, employee_filter)

    def preview_adjustment(
        self,
        selection: SelectionContext | Sequence[UUID],
        adjustment: AdjustmentConfig,
    ) -> PreviewResult:
        """Recompute the preview for the current selection; never cached."""
        if isinstance(selection, SelectionContext):
            selected_ids = selection.selected_ids
        else:
            selected_ids = tuple(selection)
        return self._preview.build(selected_ids, adjustment)

    # -------------------------------------------------------------------------
    # Operation lifecycle
    # -------------------------------------------------------------------------

    def create_operation(
        self,
        metadata: OperationMetadata,
        preview: PreviewResult | Sequence[PreviewRow],
    ) -> BulkOperation:
        """Persist a confirmed preview.

        Bare rows carry no adjustment config, so each row is recomputed
        from the metadata adjustment and must match.

        Raises:
            ValidationError: metadata disagrees with the previewed adjustment.
        """
        if isinstance(preview, PreviewResult):
            if (
                preview.config.adjustment_type != metadata.adjustment_type
                or preview.config.adjustment_value != metadata.adjustment_value
            ):
                raise ValidationError(
                    "Operation adjustment differs from the confirmed preview",
                    "adjustment_value",
                    str(metadata.adjustment_value),
                )
            rows = preview.rows
        else:
            rows = tuple(preview)
            value = parse_adjustment_value(metadata.adjustment_value)
            for row in rows:
                expected = compute(row.current_salary, metadata.adjustment_type, value)
                if (
                    expected.new_salary != row.new_salary
                    or expected.change_amount != row.change_amount
                ):
                    raise ValidationError(
                        f"Preview row for employee {row.employee_id} does not "
                        f"reflect the operation adjustment",
                        "change_amount",
                        str(row.change_amount),
                    )
        return self._executor.create(metadata, rows)

    def execute_operation(
        self,
        operation_id: UUID,
        actor_id: UUID | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExecutionResult:
        return self._executor.execute(
            operation_id, actor_id or self._actor_id, on_progress,
        )

    def cancel_operation(
        self,
        operation_id: UUID,
        reason: str,
        actor_id: UUID | None = None,
    ) -> BulkOperation:
        return self._executor.cancel(operation_id, reason, actor_id or self._actor_id)

    # -------------------------------------------------------------------------
    # Rollback
    # -------------------------------------------------------------------------

    def plan_rollback(self, operation_id: UUID) -> RollbackPlan:
        return self._rollback.plan(operation_id)

    def execute_rollback(
        self,
        plan: RollbackPlan,
        reason: str,
        actor_id: UUID | None = None,
        item_ids: Sequence[UUID] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExecutionResult:
        return self._rollback.execute(
            plan,
            reason,
            actor_id or self._actor_id,
            item_ids=item_ids,
            on_progress=on_progress,
        )

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    def apply_template(
        self,
        template_id: UUID,
        selection: SelectionContext | None = None,
        actor_id: UUID | None = None,
    ) -> AdjustmentConfig:
        return self._templates.apply(
            template_id, actor_id or self._actor_id, selection=selection,
        )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def list_operations(
        self, operation_filter: OperationFilter | None = None,
    ) -> tuple[BulkOperation, ...]:
        return self._history.query_operations(operation_filter)

    def get_operation(self, operation_id: UUID) -> OperationDetail:
        """
        Raises:
            OperationNotFoundError: If operation_id does not exist.
        """
        detail = self._history.get_operation_by_id(operation_id)
        if detail is None:
            raise OperationNotFoundError(str(operation_id))
        return detail

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def templates(self) -> TemplateStore:
        return self._templates

    @property
    def analytics(self) -> AnalyticsAggregator:
        return self._analytics

    @property
    def executor(self) -> OperationExecutor:
        return self._executor

    @property
    def rollback(self) -> RollbackService:
        return self._rollback

    @property
    def directory(self) -> EmployeeDirectory:
        return self._directory

    @property
    def auditor(self) -> AuditorService:
        return self._auditor

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def config(self) -> BulkOperationsConfig:
        return self._config

    @property
    def actor_id(self) -> UUID:
        return self._actor_id
