"""
RequestStore -- persistence adapter for vacation requests.

Responsibility:
    get / create / conditional update / query / subscribe for vacation
    requests over SQLAlchemy.  Every operation runs in its own short
    transaction opened from the injected session factory.

Architecture position:
    Kernel > Services -- imperative shell.  Called only by the workflow
    engine (writes) and by read-side callers (queries, subscriptions).

Invariants enforced:
    - Compare-and-swap: a transition is written with
      ``UPDATE ... WHERE id = :id AND version = :expected AND status = :from``
      as the first statement of its transaction.  Zero matched rows means
      another writer got there first.
    - One slot row per approver role (UNIQUE(request_id, role)); a
      duplicate is reported as a concurrent modification, never as an
      overwrite.
    - Atomicity: status, ``updated_at``, version, approval slot and audit
      event commit together or not at all.
    - Subscribers are notified only after commit.

Failure modes:
    - NotFoundError for an unknown request id.
    - ConcurrentModificationError when the version token no longer
      matches or the slot was already written.
    - StorageError wrapping any driver or connection failure
      (``sqlalchemy.exc.DBAPIError`` and subclasses).  Not retried.

Audit relevance:
    ``create`` and ``update`` append the matching AuditEvent in the same
    transaction as the business write.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from vacation_kernel.db.engine import session_scope
from vacation_kernel.domain.clock import Clock, SystemClock
from vacation_kernel.domain.vacation import (
    ALL_REQUESTS,
    ApproverRole,
    NewVacationRequest,
    RequestFilter,
    Role,
    VacationRequest,
    VacationStatus,
    WorkflowAction,
)
from vacation_kernel.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    StorageError,
)
from vacation_kernel.logging_config import get_logger
from vacation_kernel.models.vacation_request import (
    VacationApprovalModel,
    VacationRequestModel,
)
from vacation_kernel.services.auditor_service import AuditorService, AuditTrace
from vacation_kernel.services.subscriptions import (
    RequestCallback,
    Subscription,
    SubscriptionHub,
)

logger = get_logger("services.request_store")


@contextmanager
def storage_scope(
    session_factory: Callable[[], Session],
    operation: str,
) -> Iterator[Session]:
    """Transactional scope that reports driver failures as StorageError."""
    try:
        with session_scope(session_factory) as session:
            yield session
    except DBAPIError as exc:
        logger.error(
            "storage_failure",
            exc_info=True,
            extra={"operation": operation},
        )
        raise StorageError(operation, str(exc.orig or exc)) from exc


@dataclass(frozen=True)
class TransitionWrite:
    """Fields written by one applied transition."""

    from_status: VacationStatus
    to_status: VacationStatus
    action: WorkflowAction
    slot: ApproverRole
    actor_id: str
    actor_role: Role
    comment: str = ""

    @property
    def approved(self) -> bool:
        return self.action is WorkflowAction.APPROVE


class RequestStore:
    """
    SQLAlchemy-backed store for vacation requests.

    Contract:
        Safe to share between threads: it holds no session, only a
        factory, and opens one session per call.

    Non-goals:
        - No automatic retry of conflicts or storage failures.
        - No multi-request transactions.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        hub: SubscriptionHub | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._hub = hub or SubscriptionHub()

    @property
    def hub(self) -> SubscriptionHub:
        return self._hub

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find(self, request_id: UUID) -> VacationRequest | None:
        with storage_scope(self._session_factory, "get") as session:
            model = session.get(VacationRequestModel, request_id)
            return model.to_dto() if model is not None else None

    def get(self, request_id: UUID) -> VacationRequest:
        """Latest committed state of a request.

        Raises:
            NotFoundError: If no request has this id.
        """
        request = self.find(request_id)
        if request is None:
            raise NotFoundError("VacationRequest", str(request_id))
        return request

    def query(self, request_filter: RequestFilter = ALL_REQUESTS) -> list[VacationRequest]:
        """Requests matching ``request_filter``, newest first."""
        stmt = select(VacationRequestModel)
        if request_filter.employee_id is not None:
            stmt = stmt.where(VacationRequestModel.employee_id == request_filter.employee_id)
        if request_filter.statuses:
            stmt = stmt.where(
                VacationRequestModel.status.in_([s.value for s in request_filter.statuses])
            )
        stmt = stmt.order_by(
            VacationRequestModel.created_at.desc(),
            VacationRequestModel.id,
        )
        with storage_scope(self._session_factory, "query") as session:
            return [m.to_dto() for m in session.execute(stmt).scalars().all()]

    def trace(self, request_id: UUID) -> AuditTrace:
        """Audit trace of one request, in chain order."""
        with storage_scope(self._session_factory, "trace") as session:
            return AuditorService(session, self._clock).get_trace(request_id)

    def validate_audit_chain(self) -> bool:
        with storage_scope(self._session_factory, "validate_audit_chain") as session:
            return AuditorService(session, self._clock).validate_chain()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, submission: NewVacationRequest) -> VacationRequest:
        """
        Persist a validated submission as a new ``pending`` request.

        Preconditions:
            - ``submission`` has already passed the engine's validation.

        Postconditions:
            - The record has ``version == 1``, all three slots empty, and
              a ``vacation_submitted`` audit event.
        """
        now = self._clock.now()
        with storage_scope(self._session_factory, "create") as session:
            model = VacationRequestModel(
                id=uuid4(),
                employee_id=submission.employee_id,
                employee_name=submission.employee_name,
                employee_role=Role.parse(submission.employee_role, "employee_role").value,
                start_date=submission.start_date,
                end_date=submission.end_date,
                reason=submission.reason,
                replacement_user_id=submission.replacement_user_id,
                replacement_user_name=submission.replacement_user_name,
                status=VacationStatus.PENDING.value,
                version=1,
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.flush()

            AuditorService(session, self._clock).record_submitted(model.id, submission)
            created = model.to_dto()

        logger.info(
            "store_request_created",
            extra={"vacation_request_id": str(created.id), "employee_id": created.employee_id},
        )
        self._hub.publish(created)
        return created

    def update(
        self,
        request_id: UUID,
        expected_version: int,
        write: TransitionWrite,
    ) -> VacationRequest:
        """
        Conditionally apply one transition.

        Args:
            request_id: Request to change.
            expected_version: Version the caller read and decided on.
            write: Status change and slot contents.

        Returns:
            The committed record (``version == expected_version + 1``).

        Raises:
            NotFoundError: Unknown request id.
            ConcurrentModificationError: The version token is stale or the
                slot has already been written.
            StorageError: Driver or connection failure.
        """
        now = self._clock.now()
        with storage_scope(self._session_factory, "update") as session:
            result = session.execute(
                update(VacationRequestModel)
                .where(VacationRequestModel.id == request_id)
                .where(VacationRequestModel.version == expected_version)
                .where(VacationRequestModel.status == write.from_status.value)
                .values(
                    status=write.to_status.value,
                    updated_at=now,
                    version=VacationRequestModel.version + 1,
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                exists = session.execute(
                    select(VacationRequestModel.id).where(VacationRequestModel.id == request_id)
                ).first()
                if exists is None:
                    raise NotFoundError("VacationRequest", str(request_id))
                logger.warning(
                    "store_conflict",
                    extra={
                        "vacation_request_id": str(request_id),
                        "expected_version": expected_version,
                        "cause": "version_mismatch",
                    },
                )
                raise ConcurrentModificationError(str(request_id), expected_version)

            session.add(
                VacationApprovalModel(
                    request_id=request_id,
                    role=write.slot.value,
                    approved=write.approved,
                    comment=write.comment,
                    decided_at=now,
                    actor_id=write.actor_id,
                    actor_role=write.actor_role.value,
                )
            )
            try:
                session.flush()
            except IntegrityError as exc:
                logger.warning(
                    "store_conflict",
                    extra={
                        "vacation_request_id": str(request_id),
                        "expected_version": expected_version,
                        "cause": "slot_already_written",
                        "slot": write.slot.value,
                    },
                )
                raise ConcurrentModificationError(str(request_id), expected_version) from exc

            AuditorService(session, self._clock).record_transition(
                request_id=request_id,
                from_status=write.from_status,
                to_status=write.to_status,
                action=write.action,
                slot=write.slot,
                actor_id=write.actor_id,
                actor_role=write.actor_role.value,
                comment=write.comment,
            )

            model = session.get(VacationRequestModel, request_id, populate_existing=True)
            updated = model.to_dto()

        self._hub.publish(updated)
        return updated

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(
        self,
        request_filter: RequestFilter,
        callback: RequestCallback,
        *,
        replay: bool = False,
    ) -> Subscription:
        """
        Observe committed changes of matching requests.

        With ``replay=True`` the current matching records are delivered
        first, newest first.  The subscription is registered before the
        replay, so a change committed meanwhile is never missed; a replayed
        snapshot no newer than one already delivered is dropped.  Replay
        goes through the same guarded delivery as live changes, so a
        failing callback is logged rather than raised here.
        """
        subscription = self._hub.subscribe(callback, request_filter)
        if replay:
            for request in self.query(request_filter):
                subscription.deliver(request)
        return subscription
