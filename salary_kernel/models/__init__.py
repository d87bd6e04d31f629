"""ORM models owned by the salary kernel."""

from salary_kernel.models.audit_event import AuditAction, AuditEvent

__all__ = [
    "AuditAction",
    "AuditEvent",
    "import_kernel_models",
]


def import_kernel_models() -> None:
    """Import every kernel ORM model so Base.metadata knows its tables."""
    import salary_kernel.models.audit_event  # noqa: F401
    import salary_kernel.services.sequence_service  # noqa: F401
