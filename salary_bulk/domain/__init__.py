"""Pure domain layer for bulk salary operations (no I/O)."""

from salary_bulk.domain.calculator import (
    compute,
    current_gross_salary,
    plan_component_changes,
    validate_adjustment,
)
from salary_bulk.domain.risk import assess_rollback_risk, estimate_duration
from salary_bulk.domain.types import (
    AdjustmentConfig,
    AdjustmentType,
    BulkOperation,
    BulkOperationItem,
    ComponentChange,
    ComponentType,
    Employee,
    EmployeeFilter,
    ExecutionProgress,
    ExecutionResult,
    ItemStatus,
    OperationMetadata,
    OperationStatus,
    OperationType,
    PreviewResult,
    RiskLevel,
    RollbackPlan,
    SalaryComponent,
)

__all__ = [
    "AdjustmentConfig",
    "AdjustmentType",
    "BulkOperation",
    "BulkOperationItem",
    "ComponentChange",
    "ComponentType",
    "Employee",
    "EmployeeFilter",
    "ExecutionProgress",
    "ExecutionResult",
    "ItemStatus",
    "OperationMetadata",
    "OperationStatus",
    "OperationType",
    "PreviewResult",
    "RiskLevel",
    "RollbackPlan",
    "SalaryComponent",
    "assess_rollback_risk",
    "compute",
    "current_gross_salary",
    "estimate_duration",
    "plan_component_changes",
    "validate_adjustment",
]
