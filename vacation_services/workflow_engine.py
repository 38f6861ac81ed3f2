"""
vacation_services.workflow_engine -- Vacation approval coordinator.

Responsibility:
    Validates submissions, evaluates approve/deny actions against the pure
    approval policy, and persists the resulting transition through the
    request store.  Also serves the read-side projections the shell
    renders (lists, worklists, counters, history, leave calendar).

Architecture position:
    Services layer.  Thin coordinator: policy decisions come from
    ``vacation_engines``, persistence and audit from
    ``vacation_kernel.services``.  No ORM access here.

Invariants enforced:
    - Read-modify-write against the latest committed state: ``act``
      re-fetches the request right before deciding and writes
      conditionally on the version it read.
    - All-or-nothing: status, slot, ``updated_at`` and audit event commit
      together (delegated to RequestStore.update).
    - Deny requires a non-empty comment; a rejected action performs no
      write.
    - Check order in ``act``: NotFound, AlreadyFinalized,
      PermissionDenied, then the deny-comment ValidationError.

Failure modes:
    - ValidationError (field set) for malformed submissions or actions.
    - NotFoundError, PermissionDeniedError, AlreadyFinalizedError.
    - ConcurrentModificationError and StorageError are handed back
      unchanged; nothing is retried here.
"""

from __future__ import annotations

import time
from typing import Callable
from uuid import UUID

from vacation_engines.approval import (
    PolicyRejection,
    evaluate_transition,
    visible_filter,
)
from vacation_engines.calendar import calendar_days, leave_days
from vacation_engines.summary import (
    HistoryEntry,
    approval_history,
    awaiting_action,
    summarize,
)
from vacation_engines.workflows import VACATION_WORKFLOW
from vacation_kernel.domain.clock import Clock, SystemClock
from vacation_kernel.domain.vacation import (
    ALL_REQUESTS,
    STATUS_ORDER,
    LeaveDay,
    NewVacationRequest,
    RequestFilter,
    Role,
    UserProfile,
    VacationRequest,
    VacationStats,
    VacationStatus,
    WorkflowAction,
)
from vacation_kernel.domain.workflow import Workflow
from vacation_kernel.exceptions import (
    AlreadyFinalizedError,
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from vacation_kernel.logging_config import LogContext, get_logger
from vacation_kernel.services.auditor_service import AuditTrace
from vacation_kernel.services.request_store import RequestStore, TransitionWrite
from vacation_kernel.services.subscriptions import Subscription
from vacation_kernel.services.user_directory import UserDirectory

logger = get_logger("services.workflow_engine")

OUTCOME_APPLIED = "applied"
OUTCOME_REJECTED = "rejected"
OUTCOME_CONFLICT = "conflict"

# Statuses shown on the leave calendar by default; denied leave is hidden.
CALENDAR_STATUSES: tuple[VacationStatus, ...] = STATUS_ORDER


def _emit_transition_trace(
    request_id: UUID,
    action: WorkflowAction,
    actor_role: Role,
    from_status: VacationStatus,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_status: VacationStatus | None = None,
) -> None:
    """One structured record per act() outcome."""
    record = {
        "vacation_request_id": str(request_id),
        "workflow": VACATION_WORKFLOW.name,
        "action": action.value,
        "actor_role": actor_role.value,
        "from_status": from_status.value,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_status is not None:
        record["to_status"] = to_status.value

    if outcome == OUTCOME_APPLIED:
        logger.info("vacation_transition_applied", extra=record)
    else:
        logger.warning("vacation_transition_rejected", extra=record)


def _coerce_request_id(request_id: UUID | str) -> UUID:
    if isinstance(request_id, UUID):
        return request_id
    try:
        return UUID(str(request_id))
    except ValueError:
        raise NotFoundError("VacationRequest", str(request_id)) from None


class VacationWorkflowEngine:
    """Orchestrates submission and the HR -> PM -> Manager approval chain.

    Contract:
        ``actor_role`` and ``actor_id`` are trusted, already-authenticated
        inputs.  The engine authorizes, it never authenticates.

    Non-goals:
        - No automatic retries.
        - No background work; every call completes synchronously.
    """

    def __init__(
        self,
        store: RequestStore,
        clock: Clock | None = None,
        directory: UserDirectory | None = None,
        workflow: Workflow = VACATION_WORKFLOW,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._directory = directory
        self._workflow = workflow

    @property
    def store(self) -> RequestStore:
        return self._store

    @property
    def directory(self) -> UserDirectory | None:
        return self._directory

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _validate_submission(self, request: NewVacationRequest) -> None:
        if not (request.employee_id or "").strip():
            raise ValidationError("employee_id", "requester identity is required")
        Role.parse(request.employee_role, field_name="employee_role")

        if request.start_date is None:
            raise ValidationError("start_date", "start date is required")
        if request.end_date is None:
            raise ValidationError("end_date", "end date is required")
        if request.start_date < self._clock.today():
            raise ValidationError(
                "start_date",
                f"{request.start_date} is in the past (today is {self._clock.today()})",
            )
        if not request.start_date < request.end_date:
            raise ValidationError(
                "end_date",
                f"{request.end_date} must be after start date {request.start_date}",
            )

        if not (request.reason or "").strip():
            raise ValidationError("reason", "a reason is required")

        requester = request.employee_id.strip()
        replacement = (request.replacement_user_id or "").strip()
        if not replacement:
            raise ValidationError("replacement_user_id", "a replacement must be selected")
        if replacement == requester:
            raise ValidationError(
                "replacement_user_id",
                "the requester cannot be their own replacement",
            )

    def _with_snapshot_names(self, request: NewVacationRequest) -> NewVacationRequest:
        """Normalized copy; blank display names are filled from the directory."""
        employee_name = request.employee_name
        replacement_name = request.replacement_user_name
        if self._directory is not None:
            if not employee_name:
                profile = self._directory.find_profile(request.employee_id)
                if profile is not None:
                    employee_name = profile.display_name
            if not replacement_name:
                profile = self._directory.find_profile(request.replacement_user_id.strip())
                if profile is not None:
                    replacement_name = profile.display_name
        return NewVacationRequest(
            employee_id=request.employee_id.strip(),
            employee_name=employee_name,
            employee_role=request.employee_role,
            start_date=request.start_date,
            end_date=request.end_date,
            reason=request.reason.strip(),
            replacement_user_id=request.replacement_user_id.strip(),
            replacement_user_name=replacement_name,
        )

    def submit(self, request: NewVacationRequest) -> VacationRequest:
        """
        Validate and persist a new vacation request.

        Postconditions:
            - Returned record has ``status == pending``, ``version == 1``
              and all three approval slots empty.

        Raises:
            ValidationError: ``field`` names the offending input.
            StorageError: Persistence failed; nothing was written.
        """
        role_name = getattr(request.employee_role, "value", request.employee_role)
        with LogContext.bind(actor_id=request.employee_id, actor_role=str(role_name)):
            try:
                self._validate_submission(request)
            except ValidationError as exc:
                logger.warning(
                    "vacation_submission_rejected",
                    extra={"field": exc.field, "reason": exc.reason},
                )
                raise

            created = self._store.create(self._with_snapshot_names(request))
            logger.info(
                "vacation_submitted",
                extra={
                    "vacation_request_id": str(created.id),
                    "employee_id": created.employee_id,
                    "start_date": created.start_date,
                    "end_date": created.end_date,
                    "calendar_days": calendar_days(created.start_date, created.end_date),
                },
            )
            return created

    # ------------------------------------------------------------------
    # Approval chain
    # ------------------------------------------------------------------

    def act(
        self,
        request_id: UUID | str,
        actor_role: Role | str,
        action: WorkflowAction | str,
        comment: str = "",
        *,
        actor_id: str | None = None,
    ) -> VacationRequest:
        """
        Approve or deny a request as ``actor_role``.

        Args:
            request_id: Request to act on.
            actor_role: Authenticated role of the actor.  ``admin`` acts
                as whichever role owns the current stage.
            action: ``approve`` or ``deny``.
            comment: Required for ``deny``, optional for ``approve``.
            actor_id: Authenticated id of the actor, kept in the slot row
                and the audit trail.  Defaults to the role name.

        Returns:
            The committed record after the transition.

        Raises:
            NotFoundError: Unknown request id.
            AlreadyFinalizedError: Request is approved or denied.
            PermissionDeniedError: Not this role's turn.
            ValidationError: Deny without comment, unknown role or action.
            ConcurrentModificationError: Another transition committed
                between the read and the conditional write.
            StorageError: Persistence failed.
        """
        t0 = time.monotonic()
        role = Role.parse(actor_role)
        wf_action = WorkflowAction.parse(action)
        comment = (comment or "").strip()
        rid = _coerce_request_id(request_id)
        actor = actor_id or role.value

        with LogContext.bind(request_id=str(rid), actor_id=actor, actor_role=role.value):
            current = self._store.get(rid)
            decision = evaluate_transition(current.status, role, wf_action, self._workflow)

            if not decision.allowed:
                exc: InvalidTransitionError
                if decision.rejection is PolicyRejection.FINALIZED:
                    exc = AlreadyFinalizedError(
                        str(rid), current.status.value, role.value, wf_action.value,
                    )
                else:
                    exc = PermissionDeniedError(
                        current.status.value,
                        role.value,
                        wf_action.value,
                        decision.stage_owner.value if decision.stage_owner else None,
                    )
                _emit_transition_trace(
                    rid, wf_action, role, current.status,
                    outcome=OUTCOME_REJECTED,
                    reason=exc.code,
                    duration_ms=(time.monotonic() - t0) * 1000,
                )
                raise exc

            if wf_action is WorkflowAction.DENY and not comment:
                _emit_transition_trace(
                    rid, wf_action, role, current.status,
                    outcome=OUTCOME_REJECTED,
                    reason=ValidationError.code,
                    duration_ms=(time.monotonic() - t0) * 1000,
                )
                raise ValidationError("comment", "a comment is required when denying")

            write = TransitionWrite(
                from_status=current.status,
                to_status=decision.next_status,
                action=wf_action,
                slot=decision.slot,
                actor_id=actor,
                actor_role=role,
                comment=comment,
            )
            try:
                updated = self._store.update(rid, current.version, write)
            except ConcurrentModificationError:
                _emit_transition_trace(
                    rid, wf_action, role, current.status,
                    outcome=OUTCOME_CONFLICT,
                    reason=ConcurrentModificationError.code,
                    duration_ms=(time.monotonic() - t0) * 1000,
                )
                raise

            _emit_transition_trace(
                rid, wf_action, role, current.status,
                outcome=OUTCOME_APPLIED,
                reason=decision.reason,
                duration_ms=(time.monotonic() - t0) * 1000,
                to_status=updated.status,
            )
            return updated

    def approve(
        self,
        request_id: UUID | str,
        actor_role: Role | str,
        comment: str = "",
        *,
        actor_id: str | None = None,
    ) -> VacationRequest:
        return self.act(request_id, actor_role, WorkflowAction.APPROVE, comment, actor_id=actor_id)

    def deny(
        self,
        request_id: UUID | str,
        actor_role: Role | str,
        comment: str,
        *,
        actor_id: str | None = None,
    ) -> VacationRequest:
        return self.act(request_id, actor_role, WorkflowAction.DENY, comment, actor_id=actor_id)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get(self, request_id: UUID | str) -> VacationRequest:
        return self._store.get(_coerce_request_id(request_id))

    def list(self, request_filter: RequestFilter = ALL_REQUESTS) -> list[VacationRequest]:
        """Requests matching ``request_filter``, newest first. No side effects."""
        return self._store.query(request_filter)

    def list_for_actor(self, actor_id: str, actor_role: Role | str) -> list[VacationRequest]:
        """Self-service view for employees, oversight view for everyone else."""
        return self.list(visible_filter(actor_id, Role.parse(actor_role)))

    def awaiting_action(self, actor_role: Role | str) -> list[VacationRequest]:
        """Requests whose current stage ``actor_role`` may act on."""
        role = Role.parse(actor_role)
        open_requests = self.list(
            RequestFilter(statuses=tuple(s for s in STATUS_ORDER if s is not VacationStatus.APPROVED))
        )
        return awaiting_action(open_requests, role)

    def stats(self, request_filter: RequestFilter = ALL_REQUESTS) -> VacationStats:
        return summarize(self.list(request_filter))

    def history(self, request_id: UUID | str) -> tuple[HistoryEntry, ...]:
        """Approval slots of one request in chain order."""
        return approval_history(self.get(request_id))

    def trace(self, request_id: UUID | str) -> AuditTrace:
        return self._store.trace(_coerce_request_id(request_id))

    def leave_days(
        self,
        year: int | None = None,
        month: int | None = None,
        statuses: tuple[VacationStatus, ...] = CALENDAR_STATUSES,
        request_filter: RequestFilter = ALL_REQUESTS,
    ) -> list[LeaveDay]:
        """Per-day leave calendar, optionally restricted to one month."""
        return leave_days(self.list(request_filter), year, month, statuses)

    def replacement_candidates(self, requester_id: str) -> list[UserProfile]:
        if self._directory is None:
            raise RuntimeError("No user directory configured for this engine")
        return self._directory.replacement_candidates(requester_id)

    def subscribe(
        self,
        request_filter: RequestFilter,
        callback: Callable[[VacationRequest], None],
        *,
        replay: bool = False,
    ) -> Subscription:
        return self._store.subscribe(request_filter, callback, replay=replay)
