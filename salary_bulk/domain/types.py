"""
salary_bulk.domain.types -- Pure frozen dataclasses for bulk salary operations.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.  ORM models convert to and from these via
``to_dto()`` / ``from_dto()``.

Invariants enforced:
    - All DTOs are frozen (immutable snapshots).
    - Monetary amounts are ``Decimal``; never float.
    - ``OperationStatus`` transitions are monotonic; the allowed edges are
      listed in ``ALLOWED_TRANSITIONS``.
    - ``ItemStatus`` moves only forward along ``ITEM_TRANSITIONS``; a
      finalized item changes again only when a rollback reverses it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =============================================================================
# Enums
# =============================================================================


class OperationType(str, Enum):
    """Business purpose of a bulk operation."""

    ANNUAL_REVIEW = "annual_review"
    MASS_INCREASE = "mass_increase"
    DEPARTMENT_ADJUSTMENT = "department_adjustment"
    PROMOTION_BATCH = "promotion_batch"
    COST_OF_LIVING = "cost_of_living"
    ROLLBACK = "rollback"  # Compensating operation; never user-selected


class AdjustmentType(str, Enum):
    """How the adjustment value is applied to the current gross salary."""

    PERCENTAGE = "percentage"  # new = current * (1 + value/100)
    FIXED_AMOUNT = "fixed_amount"  # new = current + value
    NEW_STRUCTURE = "new_structure"  # new = value
    ROLLBACK = "rollback"  # Inverse delta of a prior item


class OperationStatus(str, Enum):
    """Operation-level lifecycle status."""

    CREATED = "created"  # Confirmed, items pending
    EXECUTING = "executing"
    COMPLETED = "completed"  # Every item applied
    PARTIALLY_COMPLETED = "partially_completed"  # Mixed outcome
    FAILED = "failed"  # Every item failed
    CANCELLED = "cancelled"  # Never executed

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_rollback_eligible(self) -> bool:
        return self in (
            OperationStatus.COMPLETED,
            OperationStatus.PARTIALLY_COMPLETED,
        )


TERMINAL_STATUSES = frozenset({
    OperationStatus.COMPLETED,
    OperationStatus.PARTIALLY_COMPLETED,
    OperationStatus.FAILED,
    OperationStatus.CANCELLED,
})

ALLOWED_TRANSITIONS: dict[OperationStatus, frozenset[OperationStatus]] = {
    OperationStatus.CREATED: frozenset({
        OperationStatus.EXECUTING,
        OperationStatus.CANCELLED,
    }),
    OperationStatus.EXECUTING: frozenset({
        OperationStatus.COMPLETED,
        OperationStatus.PARTIALLY_COMPLETED,
        OperationStatus.FAILED,
    }),
    OperationStatus.COMPLETED: frozenset(),
    OperationStatus.PARTIALLY_COMPLETED: frozenset(),
    OperationStatus.FAILED: frozenset(),
    OperationStatus.CANCELLED: frozenset(),
}


def can_transition(current: OperationStatus, target: OperationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class ItemStatus(str, Enum):
    """Per-employee item status within an operation."""

    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"
    ROLLEDBACK = "rolledback"  # Reversed by a later rollback operation


ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.APPLIED, ItemStatus.FAILED}),
    ItemStatus.APPLIED: frozenset({ItemStatus.ROLLEDBACK}),
    ItemStatus.FAILED: frozenset(),
    ItemStatus.ROLLEDBACK: frozenset(),
}


def can_transition_item(current: ItemStatus, target: ItemStatus) -> bool:
    return target in ITEM_TRANSITIONS[current]


class ComponentType(str, Enum):
    BASIC_SALARY = "basic_salary"
    FIXED_ALLOWANCE = "fixed_allowance"
    VARIABLE = "variable"


GROSS_COMPONENT_TYPES = frozenset({
    ComponentType.BASIC_SALARY,
    ComponentType.FIXED_ALLOWANCE,
})


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    RESIGNED = "resigned"
    TERMINATED = "terminated"


class RiskLevel(str, Enum):
    """Rollback risk.  Ordered: LOW < MEDIUM < HIGH."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    def escalate(self, other: RiskLevel) -> RiskLevel:
        """Return the higher of the two levels (never descends)."""
        return other if other.rank > self.rank else self


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


# =============================================================================
# Employee directory DTOs
# =============================================================================


@dataclass(frozen=True)
class SalaryComponent:
    component_id: UUID
    name: str
    component_type: ComponentType
    amount: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class Employee:
    """Snapshot of an employee and their ordered salary components."""

    employee_id: UUID
    employee_number: str
    name: str
    department: str
    position: str
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    components: tuple[SalaryComponent, ...] = ()


@dataclass(frozen=True)
class EmployeeFilter:
    """Directory query.  ``None`` fields do not constrain the result."""

    department: str | None = None
    position: str | None = None
    status: EmployeeStatus | None = EmployeeStatus.ACTIVE
    employee_ids: tuple[UUID, ...] | None = None


@dataclass(frozen=True)
class ComponentChange:
    """One salary component write made (or to be made) by an item."""

    component_id: UUID
    component_name: str
    component_type: ComponentType
    previous_amount: Decimal
    new_amount: Decimal

    @property
    def delta(self) -> Decimal:
        return self.new_amount - self.previous_amount


# =============================================================================
# Calculation and preview DTOs
# =============================================================================


@dataclass(frozen=True)
class SalaryCalculation:
    new_salary: Decimal
    change_amount: Decimal
    change_percentage: Decimal


@dataclass(frozen=True)
class AdjustmentConfig:
    """Pending adjustment parameters, hydrated by the user or a template."""

    operation_type: OperationType
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    reason: str = ""
    name: str = ""
    description: str = ""
    effective_date: date | None = None
    template_id: UUID | None = None


@dataclass(frozen=True)
class PreviewRow:
    employee_id: UUID
    employee_name: str
    department: str
    position: str
    current_salary: Decimal
    new_salary: Decimal
    change_amount: Decimal
    change_percentage: Decimal
    component_changes: tuple[ComponentChange, ...] = ()


@dataclass(frozen=True)
class PreviewResult:
    """Rows in selection order plus aggregates over them."""

    rows: tuple[PreviewRow, ...]
    employee_count: int
    total_cost_impact: Decimal
    average_change_percentage: Decimal
    annual_impact: Decimal
    config: AdjustmentConfig
    skipped_employee_ids: tuple[UUID, ...] = ()


# =============================================================================
# Operation DTOs
# =============================================================================


@dataclass(frozen=True)
class OperationMetadata:
    """Caller-supplied header for a new operation."""

    name: str
    operation_type: OperationType
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    effective_date: date
    created_by: UUID
    description: str = ""
    change_reason: str = ""
    source_operation_id: UUID | None = None

    @classmethod
    def from_config(
        cls,
        config: AdjustmentConfig,
        effective_date: date,
        created_by: UUID,
    ) -> OperationMetadata:
        return cls(
            name=config.name,
            operation_type=config.operation_type,
            adjustment_type=config.adjustment_type,
            adjustment_value=config.adjustment_value,
            effective_date=config.effective_date or effective_date,
            created_by=created_by,
            description=config.description,
            change_reason=config.reason,
        )


@dataclass(frozen=True)
class BulkOperation:
    """Immutable snapshot of a bulk operation header."""

    operation_id: UUID
    operation_type: OperationType
    name: str
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    effective_date: date
    status: OperationStatus
    employee_ids: tuple[UUID, ...]
    total_employees_affected: int
    total_cost_impact: Decimal
    created_by: UUID
    description: str = ""
    change_reason: str = ""
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    successful_items: int = 0
    failed_items: int = 0
    source_operation_id: UUID | None = None
    error_summary: str | None = None
    seq: int | None = None

    @property
    def is_rollback(self) -> bool:
        return self.operation_type == OperationType.ROLLBACK


@dataclass(frozen=True)
class BulkOperationItem:
    """Immutable snapshot of one employee's unit of work."""

    item_id: UUID
    operation_id: UUID
    item_index: int
    employee_id: UUID
    employee_name: str
    department: str
    previous_gross_salary: Decimal
    new_gross_salary: Decimal
    salary_change_amount: Decimal
    item_status: ItemStatus = ItemStatus.PENDING
    component_changes: tuple[ComponentChange, ...] = ()
    error: str | None = None
    error_code: str | None = None
    source_item_id: UUID | None = None  # Set on rollback items
    applied_at: datetime | None = None


@dataclass(frozen=True)
class OperationDetail:
    """An operation together with its items in index order."""

    operation: BulkOperation
    items: tuple[BulkOperationItem, ...]


@dataclass(frozen=True)
class OperationFilter:
    """History query.  Date bounds apply to ``created_at`` (inclusive)."""

    start: datetime | None = None
    end: datetime | None = None
    operation_types: tuple[OperationType, ...] | None = None
    statuses: tuple[OperationStatus, ...] | None = None
    created_by: UUID | None = None
    source_operation_id: UUID | None = None


# =============================================================================
# Execution DTOs
# =============================================================================


@dataclass(frozen=True)
class ExecutionProgress:
    """Emitted after each item; the caller decides render cadence."""

    completed: int
    total: int
    current_employee_id: UUID

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 1.0


@dataclass(frozen=True)
class ItemError:
    item_id: UUID
    employee_id: UUID
    error_code: str
    message: str


@dataclass(frozen=True)
class ExecutionResult:
    """Returned by ``OperationExecutor.execute()``."""

    operation_id: UUID
    status: OperationStatus
    total: int
    successful: int
    failed: int
    errors: tuple[ItemError, ...] = ()
    duration_ms: int = 0


# =============================================================================
# Template DTOs
# =============================================================================


@dataclass(frozen=True)
class OperationTemplate:
    template_id: UUID
    name: str
    operation_type: OperationType
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    description: str = ""
    department_filter: str | None = None
    position_filter: str | None = None
    default_reason: str = ""
    is_favorite: bool = False
    usage_count: int = 0
    created_by: UUID | None = None
    created_at: datetime | None = None
    last_used_at: datetime | None = None


# =============================================================================
# Rollback DTOs
# =============================================================================


@dataclass(frozen=True)
class RiskAssessment:
    risk_level: RiskLevel
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class RollbackPlan:
    """Advisory reversal plan.  Only eligibility itself is a hard stop."""

    source_operation_id: UUID
    source_operation_name: str
    items: tuple[BulkOperationItem, ...]
    total_reversal_amount: Decimal
    risk_level: RiskLevel
    warnings: tuple[str, ...]
    estimated_duration: str
    days_since_completion: int
    conflicting_employee_ids: tuple[UUID, ...] = ()
    assessed_at: datetime | None = None

    @property
    def item_ids(self) -> tuple[UUID, ...]:
        return tuple(item.item_id for item in self.items)


# =============================================================================
# Analytics DTOs
# =============================================================================


@dataclass(frozen=True)
class GroupStat:
    key: str
    count: int
    employees_affected: int
    cost_impact: Decimal


@dataclass(frozen=True)
class DepartmentImpact:
    department: str
    employee_count: int
    total_impact: Decimal
    average_change: Decimal


@dataclass(frozen=True)
class TopOperation:
    operation_id: UUID
    name: str
    operation_type: OperationType
    status: OperationStatus
    total_cost_impact: Decimal
    total_employees_affected: int
    created_at: datetime | None = None


@dataclass(frozen=True)
class AnalyticsTrends:
    """Growth percentages against the preceding window of equal length."""

    operations_growth: Decimal = Decimal("0")
    employees_growth: Decimal = Decimal("0")
    cost_growth: Decimal = Decimal("0")


@dataclass(frozen=True)
class AnalyticsReport:
    start: datetime
    end: datetime
    total_operations: int
    total_employees_affected: int
    total_cost_impact: Decimal
    average_operation_size: Decimal
    success_rate: Decimal  # completed / total, 0..1
    rollback_rate: Decimal  # forward operations rolled back / forward operations
    average_processing_seconds: Decimal
    high_risk_operations: int
    by_type: tuple[GroupStat, ...] = ()
    by_status: tuple[GroupStat, ...] = ()
    by_month: tuple[GroupStat, ...] = ()
    department_impact: tuple[DepartmentImpact, ...] = ()
    top_operations: tuple[TopOperation, ...] = ()
    trends: AnalyticsTrends = field(default_factory=AnalyticsTrends)
