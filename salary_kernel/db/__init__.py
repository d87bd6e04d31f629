"""Database layer - engine, base classes, and column helpers."""

from salary_kernel.db.base import Base, TrackedBase, UUIDString
from salary_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from salary_kernel.db.types import ensure_utc, to_decimal

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "ensure_utc",
    "to_decimal",
]
