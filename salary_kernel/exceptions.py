"""
Typed Exception Hierarchy for the bulk salary adjustment core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A bulk operation touches many employees; callers (UI, CLI, automation)
must distinguish an invalid request from a single failed employee from an
unreachable store without parsing messages:

    try:
        orchestrator.execute_operation(operation_id, actor_id)
    except PersistenceError as e:
        api_response(code=e.code, operation=e.operation_id)

Every exception has:
  1. A TYPED class (catch by type, not message)
  2. A ``code`` attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SalaryKernelError (base)
    |
    +-- ValidationError
    |
    +-- ItemExecutionError                (recorded on the item, never raised
    |   +-- EmployeeNotFoundError          out of OperationExecutor.execute)
    |   +-- StaleSalaryDataError
    |   +-- MissingSalaryComponentError
    |   +-- SalaryWriteConflictError
    |   +-- EmployeeLockedError
    |   +-- ItemAlreadyRolledBackError
    |
    +-- PersistenceError
    |
    +-- OperationError
    |   +-- OperationNotFoundError
    |   +-- InvalidOperationStateError
    |   +-- RollbackIneligibleError
    |
    +-- TemplateNotFoundError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised
----------------------------|------------------------------------------------
VALIDATION_ERROR            | Empty selection, missing name/reason, bad value
EMPLOYEE_NOT_FOUND          | Employee missing from the directory at apply time
STALE_SALARY_DATA           | Gross salary changed since the preview was taken
MISSING_SALARY_COMPONENT    | No active basic_salary component to adjust
SALARY_WRITE_CONFLICT       | Directory rejected the component write
EMPLOYEE_LOCKED             | Another operation holds the employee's lock
ITEM_ALREADY_ROLLED_BACK    | Source item was already reversed
PERSISTENCE_ERROR           | History store unavailable
OPERATION_NOT_FOUND         | Unknown operation id
INVALID_OPERATION_STATE     | Transition not allowed from the current status
ROLLBACK_INELIGIBLE         | Status/age/type rules forbid rollback outright
TEMPLATE_NOT_FOUND          | Unknown template id
AUDIT_CHAIN_BROKEN          | Audit hash chain validation failed
"""

from __future__ import annotations

from typing import Any


class SalaryKernelError(Exception):
    """
    Base exception for all bulk salary errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "SALARY_KERNEL_ERROR"


# Validation


class ValidationError(SalaryKernelError):
    """Request rejected synchronously before any persistence."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(message)


# Per-item execution failures


class ItemExecutionError(SalaryKernelError):
    """
    Failure of a single employee within a bulk operation.

    Recorded on the item (error_code / error) and rolled into the
    operation's failure count.  Never aborts the batch.
    """

    code: str = "ITEM_EXECUTION_ERROR"

    def __init__(self, employee_id: str, message: str):
        self.employee_id = employee_id
        super().__init__(message)


class EmployeeNotFoundError(ItemExecutionError):
    """Employee no longer present in the directory."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        super().__init__(employee_id, f"Employee not found: {employee_id}")


class StaleSalaryDataError(ItemExecutionError):
    """Current gross salary differs from the value captured in the preview."""

    code: str = "STALE_SALARY_DATA"

    def __init__(self, employee_id: str, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            employee_id,
            f"Salary for employee {employee_id} changed since preview: "
            f"expected {expected}, found {actual}",
        )


class MissingSalaryComponentError(ItemExecutionError):
    """Employee has no active basic_salary component to adjust."""

    code: str = "MISSING_SALARY_COMPONENT"

    def __init__(self, employee_id: str, component_type: str = "basic_salary"):
        self.component_type = component_type
        super().__init__(
            employee_id,
            f"Employee {employee_id} has no active {component_type} component",
        )


class SalaryWriteConflictError(ItemExecutionError):
    """The directory refused the salary component write."""

    code: str = "SALARY_WRITE_CONFLICT"

    def __init__(self, employee_id: str, reason: str):
        self.reason = reason
        super().__init__(
            employee_id,
            f"Salary write conflict for employee {employee_id}: {reason}",
        )


class EmployeeLockedError(ItemExecutionError):
    """Another operation holds the employee's lock past the timeout."""

    code: str = "EMPLOYEE_LOCKED"

    def __init__(self, employee_id: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            employee_id,
            f"Employee {employee_id} is locked by another operation "
            f"(waited {timeout_seconds}s)",
        )


class ItemAlreadyRolledBackError(ItemExecutionError):
    """Source item of a rollback was already reversed."""

    code: str = "ITEM_ALREADY_ROLLED_BACK"

    def __init__(self, employee_id: str, item_id: str):
        self.item_id = item_id
        super().__init__(
            employee_id,
            f"Item {item_id} for employee {employee_id} is not in applied status",
        )


# Persistence


class PersistenceError(SalaryKernelError):
    """History store unavailable; the call made no partial progress."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, action: str, detail: str, operation_id: str | None = None):
        self.action = action
        self.detail = detail
        self.operation_id = operation_id
        super().__init__(f"Persistence failure during {action}: {detail}")


# Operation lifecycle


class OperationError(SalaryKernelError):
    """Base exception for bulk operation lifecycle errors."""

    code: str = "OPERATION_ERROR"


class OperationNotFoundError(OperationError):
    """Bulk operation with given ID was not found."""

    code: str = "OPERATION_NOT_FOUND"

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"Bulk operation not found: {operation_id}")


class InvalidOperationStateError(OperationError):
    """Requested transition is not allowed from the current status."""

    code: str = "INVALID_OPERATION_STATE"

    def __init__(self, operation_id: str, current_status: str, action: str):
        self.operation_id = operation_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} operation {operation_id} in status {current_status}"
        )


class RollbackIneligibleError(OperationError):
    """Operation cannot be rolled back at all (hard stop, not a risk warning)."""

    code: str = "ROLLBACK_INELIGIBLE"

    def __init__(self, operation_id: str, reason: str):
        self.operation_id = operation_id
        self.reason = reason
        super().__init__(f"Operation {operation_id} cannot be rolled back: {reason}")


# Templates


class TemplateNotFoundError(SalaryKernelError):
    """Operation template with given ID was not found."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Operation template not found: {template_id}")


# Audit


class AuditError(SalaryKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at event {audit_event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
