"""ORM models for bulk salary operations."""

from salary_bulk.models.employee import (
    EmployeeModel,
    SalaryChangeLogModel,
    SalaryComponentModel,
)
from salary_bulk.models.operation import BulkOperationItemModel, BulkOperationModel
from salary_bulk.models.template import OperationTemplateModel

__all__ = [
    "BulkOperationItemModel",
    "BulkOperationModel",
    "EmployeeModel",
    "OperationTemplateModel",
    "SalaryChangeLogModel",
    "SalaryComponentModel",
    "import_bulk_models",
]


def import_bulk_models() -> None:
    """Import every bulk ORM model so Base.metadata knows its tables."""
    import salary_bulk.models.employee  # noqa: F401
    import salary_bulk.models.operation  # noqa: F401
    import salary_bulk.models.template  # noqa: F401
