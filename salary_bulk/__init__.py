"""
salary_bulk -- bulk salary adjustment core.

Select employees, preview an adjustment, execute it item by item with
partial-failure tolerance, and reverse it with a risk-assessed rollback.
``BulkSalaryOrchestrator`` is the entry point for callers.
"""
