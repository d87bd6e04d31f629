"""
Column-value helpers shared by ORM ``to_dto()`` methods.

SQLite drops tzinfo on ``DateTime(timezone=True)`` columns; every
timestamp the kernel hands back to domain code must be timezone-aware so
that elapsed-time arithmetic against an injected Clock never mixes naive
and aware values.
"""

from datetime import datetime, timezone
from decimal import Decimal


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime (None passes through)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a stored numeric value to Decimal (None -> 0)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
