"""Services for bulk salary operations (imperative shell)."""

from salary_bulk.services.analytics import AnalyticsAggregator
from salary_bulk.services.directory import EmployeeDirectory, SqlEmployeeDirectory
from salary_bulk.services.executor import OperationExecutor
from salary_bulk.services.history import HistoryStore, SqlHistoryStore
from salary_bulk.services.locks import EmployeeLockRegistry, process_lock_registry
from salary_bulk.services.preview import PreviewBuilder
from salary_bulk.services.rollback import RollbackService
from salary_bulk.services.selection import SelectionContext
from salary_bulk.services.templates import TemplateStore

__all__ = [
    "AnalyticsAggregator",
    "EmployeeDirectory",
    "EmployeeLockRegistry",
    "HistoryStore",
    "OperationExecutor",
    "PreviewBuilder",
    "RollbackService",
    "SelectionContext",
    "SqlEmployeeDirectory",
    "SqlHistoryStore",
    "TemplateStore",
    "process_lock_registry",
]
