"""
Pure domain layer for the salary kernel.

NO dependencies on ORM, database, or I/O (SystemClock aside).
"""

from salary_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
