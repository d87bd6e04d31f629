"""
Deterministic hashing for the audit chain.

An audit event's hash covers its identity fields, the hash of its
payload, and the previous event's hash.  Payloads carry Decimal amounts,
UUIDs and enum statuses, so they are rendered to canonical JSON first.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

CHAIN_START = "GENESIS"


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # 1.50 and 1.5 are the same salary
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value

    raise TypeError(f"Cannot hash value of type {type(obj).__name__}")


def canonicalize_json(data: Any) -> str:
    """Sorted keys, no whitespace, stable rendering of non-JSON scalars."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash for one audit event.

    The first event of the chain links to ``CHAIN_START`` instead of a
    previous hash.  Changing any field of any earlier event changes every
    hash after it.
    """
    return _sha256(
        "|".join((entity_type, str(entity_id), action, payload_hash, prev_hash or CHAIN_START))
    )
