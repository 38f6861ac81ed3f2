"""
AuditorService -- tamper-evident audit trail for vacation requests.

Responsibility:
    Appends a hash-chained ``AuditEvent`` for every submission and every
    applied approval transition, validates the chain, and returns the
    ordered trace of one request for forensic review.

Architecture position:
    Kernel > Services -- called by RequestStore inside the same
    transaction as the business write.

Invariants enforced:
    - Chain integrity: ``hash = H(entity_type|entity_id|action|payload_hash|prev_hash)``.
    - Sequence monotonicity via SequenceService (never ``MAX(seq) + 1``).
    - Append-only: AuditEvent rows are protected by ORM listeners.

Failure modes:
    - AuditChainBrokenError from ``validate_chain()`` on any recomputed
      hash or linkage mismatch.

Audit relevance:
    This IS the audit service.  Every event flows through
    ``_create_audit_event()``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from vacation_kernel.domain.clock import Clock, SystemClock
from vacation_kernel.domain.vacation import (
    ApproverRole,
    NewVacationRequest,
    VacationStatus,
    WorkflowAction,
)
from vacation_kernel.exceptions import AuditChainBrokenError
from vacation_kernel.logging_config import get_logger
from vacation_kernel.models.audit_event import AuditAction, AuditEvent
from vacation_kernel.services.sequence_service import SequenceService
from vacation_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")

VACATION_ENTITY = "VacationRequest"


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: str
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events of one entity, in chain order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def first_action(self) -> AuditAction | None:
        return self.entries[0].action if self.entries else None

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(e.action for e in self.entries)


def transition_action(
    action: WorkflowAction,
    next_status: VacationStatus,
) -> AuditAction:
    """Audit action for an applied transition."""
    if action is WorkflowAction.DENY:
        return AuditAction.VACATION_DENIED
    if next_status is VacationStatus.APPROVED:
        return AuditAction.VACATION_APPROVED
    return AuditAction.VACATION_STAGE_APPROVED


class AuditorService:
    """
    Creates and validates hash-chained audit events.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last_event.hash if last_event else None

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: str,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Append one audit event linked to the current chain head.

        Postconditions:
            - The event is flushed with a fresh ``seq`` and
              ``hash == H(entity_type, entity_id, action, payload_hash, prev_hash)``.
        """
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = payload or {}
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

    # Domain-specific recording methods

    def record_submitted(
        self,
        request_id: UUID,
        submission: NewVacationRequest,
    ) -> AuditEvent:
        """Record that an employee submitted a vacation request."""
        return self._create_audit_event(
            entity_type=VACATION_ENTITY,
            entity_id=request_id,
            action=AuditAction.VACATION_SUBMITTED,
            actor_id=submission.employee_id,
            payload={
                "employee_id": submission.employee_id,
                "start_date": str(submission.start_date),
                "end_date": str(submission.end_date),
                "replacement_user_id": submission.replacement_user_id,
            },
        )

    def record_transition(
        self,
        request_id: UUID,
        from_status: VacationStatus,
        to_status: VacationStatus,
        action: WorkflowAction,
        slot: ApproverRole,
        actor_id: str,
        actor_role: str,
        comment: str = "",
    ) -> AuditEvent:
        """
        Record an applied approve/deny transition.

        ``slot`` and ``actor_role`` differ when an admin acts on behalf of
        the stage owner; both are kept.
        """
        return self._create_audit_event(
            entity_type=VACATION_ENTITY,
            entity_id=request_id,
            action=transition_action(action, to_status),
            actor_id=actor_id,
            payload={
                "from_status": from_status.value,
                "to_status": to_status.value,
                "slot": slot.value,
                "actor_role": actor_role,
                "comment": comment,
            },
        )

    # Verification

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Raises:
            AuditChainBrokenError: At the first event whose stored hash or
                ``prev_hash`` disagrees with the recomputed chain.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        if not events:
            return True

        if events[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"seq": events[0].seq})
            raise AuditChainBrokenError(str(events[0].id), "None", events[0].prev_hash)

        for i, event in enumerate(events):
            if hash_payload(event.payload or {}) != event.payload_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id),
                    hash_payload(event.payload or {}),
                    event.payload_hash,
                )

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            if i > 0 and event.prev_hash != events[i - 1].hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id),
                    events[i - 1].hash,
                    event.prev_hash or "None",
                )

        logger.info("audit_chain_validated", extra={"event_count": len(events)})
        return True

    def get_trace(
        self,
        entity_id: UUID,
        entity_type: str = VACATION_ENTITY,
    ) -> AuditTrace:
        """Ordered audit trace of one entity."""
        events = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type)
            .where(AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=e.seq,
                    action=AuditAction(e.action),
                    occurred_at=e.occurred_at,
                    actor_id=e.actor_id,
                    payload=dict(e.payload or {}),
                    hash=e.hash,
                )
                for e in events
            ),
        )

