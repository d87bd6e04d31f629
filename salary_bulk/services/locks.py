"""
EmployeeLockRegistry -- per-employee exclusivity across bulk operations.

Contract:
    ``hold(employee_id, timeout)`` is a context manager that holds the
    employee's lock for the duration of one item.  Two operations (forward
    or rollback) never mutate the same employee concurrently when they
    share a registry.

Invariants enforced:
    - One re-entrant lock per employee id, created on first use.
    - Acquisition waits at most ``timeout`` seconds, then raises
      EmployeeLockedError; the caller records it on the item.

Non-goals:
    - Cross-process exclusivity; the directory's SELECT ... FOR UPDATE
      covers that on PostgreSQL.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from salary_kernel.exceptions import EmployeeLockedError
from salary_kernel.logging_config import get_logger

logger = get_logger("bulk.locks")


class EmployeeLockRegistry:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.RLock] = {}

    def _lock_for(self, employee_id: UUID) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(employee_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[employee_id] = lock
            return lock

    @contextmanager
    def hold(self, employee_id: UUID, timeout: float) -> Iterator[None]:
        lock = self._lock_for(employee_id)
        if not lock.acquire(timeout=timeout):
            logger.warning(
                "employee_lock_timeout",
                extra={"employee_id": str(employee_id), "timeout_seconds": timeout},
            )
            raise EmployeeLockedError(str(employee_id), timeout)
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_process_registry = EmployeeLockRegistry()


def process_lock_registry() -> EmployeeLockRegistry:
    """Registry shared by every orchestrator in this process."""
    return _process_registry
