"""
Concurrent approval tests.

Two approvers act on the same request at the same moment, each on its
own thread and its own database connection.  The conditional write must
let exactly one of them through; the other sees either the version
conflict (it read before the winner committed) or a policy rejection
(it read after).
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import func, select

from vacation_kernel.domain.vacation import ApproverRole, Role, VacationStatus
from vacation_kernel.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    PermissionDeniedError,
)
from vacation_kernel.models.audit_event import AuditEvent
from vacation_kernel.models.vacation_request import VacationApprovalModel

pytestmark = pytest.mark.slow_locks

LOSING_ERRORS = (ConcurrentModificationError, InvalidTransitionError)


def race(workflow_engine, request_id, actors):
    """Run ``act(approve)`` for every (role, actor_id) pair simultaneously."""
    barrier = Barrier(len(actors))

    def attempt(role, actor_id):
        barrier.wait(timeout=10)
        try:
            return workflow_engine.act(request_id, role, "approve", actor_id=actor_id)
        except LOSING_ERRORS as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(actors)) as pool:
        futures = [pool.submit(attempt, role, actor_id) for role, actor_id in actors]
        return [f.result(timeout=60) for f in futures]


@pytest.mark.parametrize("attempt", range(5))
def test_two_hr_approvers_only_one_wins(workflow_engine, submitted, session_factory, attempt):
    request = submitted()

    results = race(workflow_engine, request.id, [(Role.HR, "u-hana"), (Role.HR, "u-hugo")])

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], LOSING_ERRORS)

    final = workflow_engine.get(request.id)
    assert final.status is VacationStatus.HR_REVIEW
    assert final.version == 2

    with session_factory() as session:
        slot_rows = session.execute(
            select(func.count()).select_from(VacationApprovalModel)
            .where(VacationApprovalModel.request_id == request.id)
            .where(VacationApprovalModel.role == ApproverRole.HR.value)
        ).scalar_one()
        audit_rows = session.execute(
            select(func.count()).select_from(AuditEvent)
            .where(AuditEvent.entity_id == request.id)
        ).scalar_one()
    assert slot_rows == 1
    assert audit_rows == 2


def test_hr_and_admin_race(workflow_engine, submitted, session_factory):
    request = submitted()

    hr_result, admin_result = race(
        workflow_engine, request.id, [(Role.HR, "u-hana"), (Role.ADMIN, "u-root")],
    )

    with session_factory() as session:
        hr_slot_actors = session.execute(
            select(VacationApprovalModel.actor_id)
            .where(VacationApprovalModel.request_id == request.id)
            .where(VacationApprovalModel.role == ApproverRole.HR.value)
        ).scalars().all()
    assert len(hr_slot_actors) == 1

    final = workflow_engine.get(request.id)
    assert final.slot(ApproverRole.HR).approved is True
    if hr_slot_actors == ["u-hana"]:
        # HR went first; the admin either lost the version race or
        # escalated the PM stage on top of the committed HR approval.
        assert not isinstance(hr_result, Exception)
        if isinstance(admin_result, Exception):
            assert isinstance(admin_result, (ConcurrentModificationError, PermissionDeniedError))
            assert final.status is VacationStatus.HR_REVIEW
            assert final.version == 2
        else:
            assert admin_result.status is VacationStatus.PM_REVIEW
            assert final.status is VacationStatus.PM_REVIEW
            assert final.version == 3
    else:
        # Admin escalated the HR stage first; HR has nothing left to approve.
        assert hr_slot_actors == ["u-root"]
        assert admin_result.status is VacationStatus.HR_REVIEW
        assert isinstance(hr_result, (ConcurrentModificationError, PermissionDeniedError))
        assert final.status is VacationStatus.HR_REVIEW
        assert final.version == 2
    assert workflow_engine.store.validate_audit_chain() is True


def test_concurrent_requests_do_not_interfere(workflow_engine, submitted):
    requests = [submitted(employee_id=f"u-{i}") for i in range(4)]
    barrier = Barrier(len(requests))

    def approve(request_id):
        barrier.wait(timeout=10)
        return workflow_engine.act(request_id, Role.HR, "approve")

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        results = list(pool.map(approve, [r.id for r in requests]))

    assert all(r.status is VacationStatus.HR_REVIEW for r in results)
    assert workflow_engine.store.validate_audit_chain() is True
