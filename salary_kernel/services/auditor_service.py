"""
AuditorService -- tamper-evident audit trail for bulk salary operations.

Responsibility:
    Creates immutable, hash-chained audit events for every significant
    state change of a bulk operation.  Provides chain validation for tamper
    detection and trace queries for review of a single operation.

Architecture position:
    Kernel > Services -- imperative shell, called by the bulk operation
    executor, rollback service, and template store.

Invariants enforced:
    - Sequence monotonicity via SequenceService.
    - Audit chain integrity: ``hash = H(payload_hash + prev_hash)``.
    - Append-only: audit events are never modified or deleted.

Failure modes:
    - AuditChainBrokenError: recomputed hash does not match stored hash,
      or prev_hash does not match the predecessor's hash.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from salary_kernel.db.types import ensure_utc
from salary_kernel.domain.clock import Clock, SystemClock
from salary_kernel.exceptions import AuditChainBrokenError
from salary_kernel.logging_config import get_logger
from salary_kernel.models.audit_event import AuditAction, AuditEvent
from salary_kernel.services.sequence_service import SequenceService
from salary_kernel.utils.hashing import canonicalize_json, hash_audit_event, hash_payload

logger = get_logger("services.auditor")

BULK_OPERATION_ENTITY = "BulkOperation"
TEMPLATE_ENTITY = "OperationTemplate"


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """Complete audit trace for an entity, in chronological order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)


class AuditorService:
    """
    Service for creating and validating tamper-evident audit events.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT interpret or act on audit events.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent)
            .order_by(AuditEvent.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

        return last_event.hash if last_event else None

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Create a new audit event with hash chain linkage.

        Postconditions:
            - A new ``AuditEvent`` row is flushed with a monotonically
              increasing ``seq`` and a valid hash chain link.
        """
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        # Stored payload must round-trip through the JSON column unchanged
        payload_data = json.loads(canonicalize_json(payload or {}))
        computed_payload_hash = hash_payload(payload_data)

        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )

        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )

        return audit_event

    # Bulk operation lifecycle

    def record_operation_created(
        self,
        operation_id: UUID,
        name: str,
        operation_type: str,
        total_items: int,
        total_cost_impact: Decimal,
        actor_id: UUID,
        source_operation_id: UUID | None = None,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type=BULK_OPERATION_ENTITY,
            entity_id=operation_id,
            action=AuditAction.OPERATION_CREATED,
            actor_id=actor_id,
            payload={
                "name": name,
                "operation_type": operation_type,
                "total_items": total_items,
                "total_cost_impact": total_cost_impact,
                "source_operation_id": source_operation_id,
            },
        )

    def record_operation_started(
        self,
        operation_id: UUID,
        total_items: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type=BULK_OPERATION_ENTITY,
            entity_id=operation_id,
            action=AuditAction.OPERATION_STARTED,
            actor_id=actor_id,
            payload={"total_items": total_items},
        )

    def record_item_failed(
        self,
        operation_id: UUID,
        employee_id: str,
        error_code: str,
        error_message: str,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type=BULK_OPERATION_ENTITY,
            entity_id=operation_id,
            action=AuditAction.ITEM_FAILED,
            actor_id=actor_id,
            payload={
                "employee_id": employee_id,
                "error_code": error_code,
                "error_message": error_message,
            },
        )

    def record_operation_finished(
        self,
        operation_id: UUID,
        status: str,
        successful: int,
        failed: int,
        duration_ms: int,
        actor_id: UUID,
    ) -> AuditEvent:
        action = (
            AuditAction.OPERATION_FAILED
            if status == "failed"
            else AuditAction.OPERATION_COMPLETED
        )
        return self._create_audit_event(
            entity_type=BULK_OPERATION_ENTITY,
            entity_id=operation_id,
            action=action,
            actor_id=actor_id,
            payload={
                "status": status,
                "successful": successful,
                "failed": failed,
                "duration_ms": duration_ms,
            },
        )

    def record_operation_cancelled(
        self,
        operation_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type=BULK_OPERATION_ENTITY,
            entity_id=operation_id,
            action=AuditAction.OPERATION_CANCELLED,
            actor_id=actor_id,
            payload={"reason": reason},
        )

    def record_rollback_requested(
        self,
        source_operation_id: UUID,
        rollback_operation_id: UUID,
        reason: str,
        risk_level: str,
        warnings: tuple[str, ...],
        item_count: int,
        actor_id: UUID,
    ) -> AuditEvent:
        """Record the human decision to roll back, including overridden warnings."""
        return self._create_audit_event(
            entity_type=BULK_OPERATION_ENTITY,
            entity_id=source_operation_id,
            action=AuditAction.ROLLBACK_REQUESTED,
            actor_id=actor_id,
            payload={
                "rollback_operation_id": rollback_operation_id,
                "reason": reason,
                "risk_level": risk_level,
                "warnings": list(warnings),
                "item_count": item_count,
            },
        )

    def record_template_applied(
        self,
        template_id: UUID,
        usage_count: int,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type=TEMPLATE_ENTITY,
            entity_id=template_id,
            action=AuditAction.TEMPLATE_APPLIED,
            actor_id=actor_id,
            payload={"usage_count": usage_count},
        )

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Raises:
            AuditChainBrokenError: If chain validation fails at any point.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        if not events:
            return True

        if events[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"seq": events[0].seq})
            raise AuditChainBrokenError(
                str(events[0].id),
                "None",
                events[0].prev_hash,
            )

        for i, event in enumerate(events):
            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=hash_payload(event.payload or {}),
                prev_hash=event.prev_hash,
            )

            if event.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id),
                    expected_hash,
                    event.hash,
                )

            if i > 0:
                expected_prev = events[i - 1].hash
                if event.prev_hash != expected_prev:
                    logger.critical("audit_chain_broken", extra={"seq": event.seq})
                    raise AuditChainBrokenError(
                        str(event.id),
                        expected_prev,
                        event.prev_hash or "None",
                    )

        logger.info(
            "audit_chain_valid",
            extra={"event_count": len(events)},
        )
        return True

    # Trace queries

    def get_trace(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> AuditTrace:
        """Get the complete audit trace for an entity."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        entries = tuple(
            AuditTraceEntry(
                seq=event.seq,
                action=AuditAction(event.action),
                occurred_at=ensure_utc(event.occurred_at),
                actor_id=event.actor_id,
                payload=event.payload or {},
                hash=event.hash,
            )
            for event in events
        )

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=entries,
        )
