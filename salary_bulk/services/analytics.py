"""
AnalyticsAggregator -- read-only summaries of bulk operation history.

Contract:
    ``summarize(start, end, ...)`` aggregates operations created in
    ``[start, end]`` and compares them with the preceding window of equal
    length.  Nothing is written.

Invariants enforced:
    - No ratio divides by zero; an empty range yields zeros.
    - Department impact is computed from item department snapshots, so it
      reflects the department at the time of the change.
    - Without a department filter, department impacts sum to the total
      cost impact.  With one, employee and cost totals (and their trends)
      count only items in those departments, so they agree with
      ``department_impact``.  Operation counts, rates, high-risk counts and
      top operations still describe whole operations.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from salary_kernel.domain.clock import Clock, SystemClock
from salary_kernel.logging_config import get_logger

from salary_bulk.domain.types import (
    AnalyticsReport,
    AnalyticsTrends,
    BulkOperation,
    BulkOperationItem,
    DepartmentImpact,
    GroupStat,
    OperationFilter,
    OperationStatus,
    OperationType,
    TopOperation,
)
from salary_bulk.services.history import HistoryStore

from salary_config.schema import BulkOperationsConfig

logger = get_logger("bulk.analytics")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

_APPLIED_ROLLBACK_STATUSES = frozenset({
    OperationStatus.COMPLETED,
    OperationStatus.PARTIALLY_COMPLETED,
})


def _ratio(numerator: Decimal | int, denominator: Decimal | int) -> Decimal:
    if not denominator:
        return _ZERO
    return Decimal(numerator) / Decimal(denominator)


def _totals(
    operations: Sequence[BulkOperation],
    items: Sequence[BulkOperationItem],
    departments: Sequence[str] | None,
) -> tuple[int, Decimal]:
    """Employees affected and cost impact, limited to ``departments`` if given."""
    if departments:
        return len(items), sum((i.salary_change_amount for i in items), _ZERO)
    return (
        sum(op.total_employees_affected for op in operations),
        sum((op.total_cost_impact for op in operations), _ZERO),
    )


def growth_percentage(current: Decimal | int, previous: Decimal | int) -> Decimal:
    """Percentage change from ``previous``; 0 when there is no baseline."""
    if not previous:
        return _ZERO
    return (Decimal(current) - Decimal(previous)) / abs(Decimal(previous)) * _HUNDRED


def _group(
    operations: Iterable[BulkOperation],
    key: Callable[[BulkOperation], str],
) -> tuple[GroupStat, ...]:
    counts: dict[str, int] = defaultdict(int)
    employees: dict[str, int] = defaultdict(int)
    impact: dict[str, Decimal] = defaultdict(lambda: _ZERO)
    for op in operations:
        k = key(op)
        counts[k] += 1
        employees[k] += op.total_employees_affected
        impact[k] += op.total_cost_impact
    return tuple(
        GroupStat(
            key=k,
            count=counts[k],
            employees_affected=employees[k],
            cost_impact=impact[k],
        )
        for k in sorted(counts)
    )


class AnalyticsAggregator:
    def __init__(
        self,
        history: HistoryStore,
        clock: Clock | None = None,
        config: BulkOperationsConfig | None = None,
    ):
        self._history = history
        self._clock = clock or SystemClock()
        self._config = config or BulkOperationsConfig()

    def summarize(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        operation_types: Sequence[OperationType] | None = None,
        departments: Sequence[str] | None = None,
        minimum_impact: Decimal | None = None,
        top_n: int | None = None,
    ) -> AnalyticsReport:
        """Aggregate history for ``[start, end]`` (defaults: trailing window)."""
        end = end or self._clock.now()
        start = start or end - timedelta(days=self._config.analytics.default_window_days)
        if start > end:
            raise ValueError("start must not be after end")

        operations, items = self._load(
            start, end, operation_types, departments, minimum_impact,
        )

        total = len(operations)
        total_employees, total_impact = _totals(operations, items, departments)
        completed = sum(1 for op in operations if op.status == OperationStatus.COMPLETED)
        threshold = self._config.risk.high_impact_threshold

        report = AnalyticsReport(
            start=start,
            end=end,
            total_operations=total,
            total_employees_affected=total_employees,
            total_cost_impact=total_impact,
            average_operation_size=_ratio(total_employees, total),
            success_rate=_ratio(completed, total),
            rollback_rate=self._rollback_rate(operations),
            average_processing_seconds=self._average_processing_seconds(operations),
            high_risk_operations=sum(
                1 for op in operations if abs(op.total_cost_impact) > threshold
            ),
            by_type=_group(operations, lambda op: op.operation_type.value),
            by_status=_group(operations, lambda op: op.status.value),
            by_month=_group(
                operations,
                lambda op: op.created_at.strftime("%Y-%m") if op.created_at else "unknown",
            ),
            department_impact=self._department_impact(items, departments),
            top_operations=self._top_operations(operations, top_n),
            trends=self._trends(
                start, end, operation_types, departments, minimum_impact,
                total, total_employees, total_impact,
            ),
        )

        logger.info(
            "analytics_summarized",
            extra={
                "start": start,
                "end": end,
                "total_operations": total,
                "total_cost_impact": total_impact,
            },
        )
        return report

    # Internal helpers

    def _load(
        self,
        start: datetime,
        end: datetime,
        operation_types: Sequence[OperationType] | None,
        departments: Sequence[str] | None,
        minimum_impact: Decimal | None,
    ) -> tuple[tuple[BulkOperation, ...], tuple[BulkOperationItem, ...]]:
        operations = self._history.query_operations(
            OperationFilter(
                start=start,
                end=end,
                operation_types=tuple(operation_types) if operation_types else None,
            )
        )
        if minimum_impact is not None:
            operations = tuple(
                op for op in operations if abs(op.total_cost_impact) >= minimum_impact
            )

        items = self._history.get_items_for_operations(
            [op.operation_id for op in operations]
        )
        if departments:
            wanted = set(departments)
            touching = {i.operation_id for i in items if i.department in wanted}
            operations = tuple(op for op in operations if op.operation_id in touching)
            items = tuple(i for i in items if i.department in wanted)
        return operations, items

    def _rollback_rate(self, operations: Sequence[BulkOperation]) -> Decimal:
        forward = [op for op in operations if not op.is_rollback]
        if not forward:
            return _ZERO
        rollbacks = self._history.rollbacks_of([op.operation_id for op in forward])
        rolled_back = sum(
            1
            for op in forward
            if any(
                r.status in _APPLIED_ROLLBACK_STATUSES
                for r in rollbacks.get(op.operation_id, ())
            )
        )
        return _ratio(rolled_back, len(forward))

    @staticmethod
    def _average_processing_seconds(operations: Sequence[BulkOperation]) -> Decimal:
        durations = [
            Decimal(str((op.completed_at - op.started_at).total_seconds()))
            for op in operations
            if op.started_at is not None and op.completed_at is not None
        ]
        return _ratio(sum(durations, _ZERO), len(durations))

    @staticmethod
    def _department_impact(
        items: Sequence[BulkOperationItem],
        departments: Sequence[str] | None,
    ) -> tuple[DepartmentImpact, ...]:
        employees: dict[str, set[UUID]] = defaultdict(set)
        impact: dict[str, Decimal] = defaultdict(lambda: _ZERO)
        for item in items:
            employees[item.department].add(item.employee_id)
            impact[item.department] += item.salary_change_amount

        ordered = sorted(impact, key=lambda d: (-abs(impact[d]), d))
        return tuple(
            DepartmentImpact(
                department=d,
                employee_count=len(employees[d]),
                total_impact=impact[d],
                average_change=_ratio(impact[d], len(employees[d])),
            )
            for d in ordered
        )

    def _top_operations(
        self,
        operations: Sequence[BulkOperation],
        top_n: int | None,
    ) -> tuple[TopOperation, ...]:
        limit = self._config.analytics.top_operations_limit if top_n is None else top_n
        ranked = sorted(
            operations,
            key=lambda op: (-abs(op.total_cost_impact), op.seq or 0),
        )
        return tuple(
            TopOperation(
                operation_id=op.operation_id,
                name=op.name,
                operation_type=op.operation_type,
                status=op.status,
                total_cost_impact=op.total_cost_impact,
                total_employees_affected=op.total_employees_affected,
                created_at=op.created_at,
            )
            for op in ranked[:max(limit, 0)]
        )

    def _trends(
        self,
        start: datetime,
        end: datetime,
        operation_types: Sequence[OperationType] | None,
        departments: Sequence[str] | None,
        minimum_impact: Decimal | None,
        total: int,
        total_employees: int,
        total_impact: Decimal,
    ) -> AnalyticsTrends:
        window = end - start
        previous_end = start - timedelta(microseconds=1)
        previous_start = previous_end - window
        previous, previous_items = self._load(
            previous_start, previous_end, operation_types, departments, minimum_impact,
        )
        previous_employees, previous_impact = _totals(previous, previous_items, departments)
        return AnalyticsTrends(
            operations_growth=growth_percentage(total, len(previous)),
            employees_growth=growth_percentage(total_employees, previous_employees),
            cost_growth=growth_percentage(total_impact, previous_impact),
        )
