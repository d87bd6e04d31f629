"""Services for the salary kernel (write side)."""

from salary_kernel.services.auditor_service import AuditorService, AuditTrace
from salary_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditorService",
    "AuditTrace",
    "SequenceService",
]
