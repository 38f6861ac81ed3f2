"""
Tests for VacationWorkflowEngine.

Tests cover:
- Submission validation (field named on every failure)
- The HR -> PM -> Manager chain and deny at every stage
- Rejections: wrong role, finalized, unknown id, deny without comment
- Admin escalation
- Read side: list, list_for_actor, awaiting_action, stats, history,
  leave calendar, replacement candidates
- Structured log records for applied and rejected transitions
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from vacation_kernel.domain.vacation import (
    ApproverRole,
    RequestFilter,
    Role,
    VacationStatus,
)
from vacation_kernel.exceptions import (
    AlreadyFinalizedError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from vacation_services.workflow_engine import VacationWorkflowEngine

from tests.factories import TEST_NOW, TODAY, make_submission


class TestSubmission:

    def test_start_date_yesterday_rejected(self, workflow_engine):
        with pytest.raises(ValidationError) as exc_info:
            workflow_engine.submit(make_submission(start_date=TODAY - timedelta(days=1)))
        assert exc_info.value.field == "start_date"
        assert workflow_engine.list() == []

    def test_start_date_today_accepted(self, workflow_engine):
        request = workflow_engine.submit(make_submission(start_date=TODAY))
        assert request.start_date == TODAY

    def test_valid_submission_is_pending_with_empty_slots(self, submitted):
        request = submitted()
        assert request.status is VacationStatus.PENDING
        assert request.version == 1
        assert request.created_at == TEST_NOW
        assert request.updated_at == TEST_NOW
        assert all(not request.slot(role).is_recorded for role in ApproverRole)

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"employee_id": "  "}, "employee_id"),
            ({"employee_role": "intern"}, "employee_role"),
            ({"start_date": None}, "start_date"),
            ({"end_date": None}, "end_date"),
            ({"end_date": TODAY + timedelta(days=10)}, "end_date"),
            ({"end_date": TODAY + timedelta(days=5)}, "end_date"),
            ({"reason": "   "}, "reason"),
            ({"replacement_user_id": None}, "replacement_user_id"),
            ({"replacement_user_id": "u-anna"}, "replacement_user_id"),
            ({"employee_id": " u-x ", "replacement_user_id": "u-x"}, "replacement_user_id"),
            ({"replacement_user_id": " u-anna "}, "replacement_user_id"),
        ],
    )
    def test_invalid_submission_names_field(self, workflow_engine, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            workflow_engine.submit(make_submission(**overrides))
        assert exc_info.value.field == field

    def test_inputs_are_normalized(self, submitted):
        request = submitted(reason="  Family trip  ", replacement_user_id=" u-ben ")
        assert request.reason == "Family trip"
        assert request.replacement_user_id == "u-ben"

    def test_blank_names_filled_from_directory(self, seeded_directory, submitted):
        request = submitted(employee_name="", replacement_user_name="")
        assert request.employee_name == "Anna Berger"
        assert request.replacement_user_name == "Ben Okafor"

    def test_snapshot_names_survive_profile_edits(self, seeded_directory, submitted):
        from vacation_kernel.domain.vacation import UserProfile

        request = submitted(employee_name="")
        seeded_directory.upsert_profile(UserProfile("u-anna", "Anna Schmidt"))
        assert request.employee_name == "Anna Berger"


class TestApprovalChain:

    def test_hr_approval_moves_to_hr_review(self, workflow_engine, submitted):
        request = submitted()
        updated = workflow_engine.act(request.id, Role.HR, "approve")

        assert updated.status is VacationStatus.HR_REVIEW
        assert updated.version == 2
        assert updated.slot(ApproverRole.HR).approved is True
        assert updated.slot(ApproverRole.HR).date == TEST_NOW
        assert not updated.slot(ApproverRole.PM).is_recorded

    def test_full_chain_approves(self, workflow_engine, advanced):
        request = advanced(VacationStatus.APPROVED)
        assert request.version == 4
        assert all(request.slot(role).approved for role in ApproverRole)

    def test_manager_cannot_act_at_hr_review(self, workflow_engine, advanced):
        request = advanced(VacationStatus.HR_REVIEW)
        with pytest.raises(PermissionDeniedError) as exc_info:
            workflow_engine.act(request.id, Role.MANAGER, "approve")
        assert exc_info.value.stage_owner == "pm"
        assert workflow_engine.get(request.id) == request

    def test_manager_denies_at_pm_review(self, workflow_engine, advanced, deterministic_clock):
        request = advanced(VacationStatus.PM_REVIEW)
        deterministic_clock.advance(60)

        denied = workflow_engine.act(request.id, Role.MANAGER, "deny", "budget")

        slot = denied.slot(ApproverRole.MANAGER)
        assert denied.status is VacationStatus.DENIED
        assert slot.approved is False
        assert slot.comment == "budget"
        assert slot.date == deterministic_clock.now()
        assert denied.updated_at == deterministic_clock.now()

    @pytest.mark.parametrize(
        "stage,role",
        [
            (VacationStatus.PENDING, Role.HR),
            (VacationStatus.HR_REVIEW, Role.PM),
            (VacationStatus.PM_REVIEW, Role.MANAGER),
        ],
    )
    def test_deny_at_every_stage(self, workflow_engine, advanced, stage, role):
        request = advanced(stage)
        denied = workflow_engine.deny(request.id, role, "not now")
        assert denied.status is VacationStatus.DENIED
        assert denied.slot(ApproverRole(role.value)).comment == "not now"

    def test_deny_without_comment_writes_nothing(self, workflow_engine, submitted):
        request = submitted()
        with pytest.raises(ValidationError) as exc_info:
            workflow_engine.act(request.id, Role.HR, "deny", "   ")
        assert exc_info.value.field == "comment"

        after = workflow_engine.get(request.id)
        assert after.version == request.version
        assert after.status is VacationStatus.PENDING
        assert not after.slot(ApproverRole.HR).is_recorded

    def test_permission_checked_before_deny_comment(self, workflow_engine, submitted):
        request = submitted()
        with pytest.raises(PermissionDeniedError):
            workflow_engine.act(request.id, Role.PM, "deny", "")

    def test_comment_on_approve_is_kept(self, workflow_engine, submitted):
        request = submitted()
        updated = workflow_engine.approve(request.id, Role.HR, "  ok  ")
        assert updated.slot(ApproverRole.HR).comment == "ok"


class TestRejections:

    def test_approved_request_is_final(self, workflow_engine, advanced):
        request = advanced(VacationStatus.APPROVED)
        with pytest.raises(AlreadyFinalizedError):
            workflow_engine.act(request.id, Role.ADMIN, "deny", "too late")

    def test_denied_request_is_final(self, workflow_engine, submitted):
        request = submitted()
        workflow_engine.deny(request.id, Role.HR, "no")
        with pytest.raises(AlreadyFinalizedError) as exc_info:
            workflow_engine.act(request.id, Role.HR, "approve")
        assert isinstance(exc_info.value, InvalidTransitionError)

    def test_unknown_request(self, workflow_engine):
        with pytest.raises(NotFoundError):
            workflow_engine.act(uuid4(), Role.HR, "approve")

    def test_malformed_request_id_is_not_found(self, workflow_engine):
        with pytest.raises(NotFoundError):
            workflow_engine.get("not-a-uuid")

    def test_unknown_role(self, workflow_engine, submitted):
        request = submitted()
        with pytest.raises(ValidationError) as exc_info:
            workflow_engine.act(request.id, "janitor", "approve")
        assert exc_info.value.field == "actor_role"

    def test_unknown_action(self, workflow_engine, submitted):
        request = submitted()
        with pytest.raises(ValidationError) as exc_info:
            workflow_engine.act(request.id, Role.HR, "escalate")
        assert exc_info.value.field == "action"

    def test_employee_cannot_approve(self, workflow_engine, submitted):
        request = submitted()
        with pytest.raises(PermissionDeniedError):
            workflow_engine.act(request.id, Role.EMPLOYEE, "approve")


class TestAdminEscalation:

    def test_admin_writes_stage_owner_slot(self, workflow_engine, advanced):
        request = advanced(VacationStatus.HR_REVIEW)
        updated = workflow_engine.act(request.id, "admin", "approve", actor_id="u-root")

        assert updated.status is VacationStatus.PM_REVIEW
        assert updated.slot(ApproverRole.PM).approved is True

        last = workflow_engine.trace(request.id).entries[-1]
        assert last.actor_id == "u-root"
        assert last.payload["actor_role"] == "admin"
        assert last.payload["slot"] == "pm"

    def test_admin_can_walk_the_whole_chain(self, workflow_engine, submitted):
        request = submitted()
        for _ in range(3):
            request = workflow_engine.approve(request.id, Role.ADMIN)
        assert request.status is VacationStatus.APPROVED


class TestReadSide:

    def test_list_has_no_side_effects(self, workflow_engine, submitted):
        submitted()
        first = workflow_engine.list()
        second = workflow_engine.list()
        assert first == second
        assert len(first) == 1

    def test_list_newest_first(self, workflow_engine, submitted, deterministic_clock):
        older = submitted()
        deterministic_clock.advance(5)
        newer = submitted(employee_id="u-carl")
        assert [r.id for r in workflow_engine.list()] == [newer.id, older.id]

    def test_list_for_actor(self, workflow_engine, submitted):
        mine = submitted()
        submitted(employee_id="u-carl")
        assert [r.id for r in workflow_engine.list_for_actor("u-anna", "employee")] == [mine.id]
        assert len(workflow_engine.list_for_actor("u-hana", Role.HR)) == 2

    def test_awaiting_action(self, workflow_engine, submitted, advanced):
        pending = submitted()
        at_pm = advanced(VacationStatus.HR_REVIEW)
        advanced(VacationStatus.APPROVED)

        assert [r.id for r in workflow_engine.awaiting_action(Role.HR)] == [pending.id]
        assert [r.id for r in workflow_engine.awaiting_action(Role.PM)] == [at_pm.id]
        assert workflow_engine.awaiting_action(Role.MANAGER) == []
        assert len(workflow_engine.awaiting_action(Role.ADMIN)) == 2

    def test_stats(self, workflow_engine, submitted, advanced):
        submitted()
        advanced(VacationStatus.PM_REVIEW)
        advanced(VacationStatus.APPROVED)
        denied = submitted()
        workflow_engine.deny(denied.id, Role.HR, "no")

        stats = workflow_engine.stats()
        assert (stats.pending, stats.approved, stats.denied, stats.total) == (2, 1, 1, 4)
        assert workflow_engine.stats(RequestFilter(employee_id="u-nobody")).total == 0

    def test_history(self, workflow_engine, advanced):
        request = advanced(VacationStatus.PM_REVIEW)
        outcomes = [h.outcome for h in workflow_engine.history(request.id)]
        assert outcomes == ["approved", "approved", "pending"]

    def test_leave_days_hide_denied(self, workflow_engine, submitted):
        kept = submitted(start_date=TODAY + timedelta(days=3), end_date=TODAY + timedelta(days=4))
        dropped = submitted(start_date=TODAY + timedelta(days=3), end_date=TODAY + timedelta(days=4))
        workflow_engine.deny(dropped.id, Role.HR, "no")

        days = workflow_engine.leave_days(2024, 3)
        assert {d.request_id for d in days} == {kept.id}
        assert len(days) == 2

    def test_replacement_candidates(self, workflow_engine, seeded_directory):
        names = [p.user_id for p in workflow_engine.replacement_candidates("u-anna")]
        assert names == ["u-ben", "u-carl", "u-hana"]

    def test_replacement_candidates_require_directory(self, request_store):
        engine = VacationWorkflowEngine(request_store)
        with pytest.raises(RuntimeError):
            engine.replacement_candidates("u-anna")


class TestLogging:

    def test_applied_transition_logged(self, workflow_engine, submitted, captured_logs):
        request = submitted()
        workflow_engine.act(request.id, Role.HR, "approve", actor_id="u-hana")

        records = [r for r in captured_logs() if r["message"] == "vacation_transition_applied"]
        assert len(records) == 1
        record = records[0]
        assert record["vacation_request_id"] == str(request.id)
        assert record["from_status"] == "pending"
        assert record["to_status"] == "hr_review"
        assert record["actor_id"] == "u-hana"
        assert record["outcome"] == "applied"

    def test_rejected_transition_logged(self, workflow_engine, advanced, captured_logs):
        request = advanced(VacationStatus.HR_REVIEW)
        with pytest.raises(PermissionDeniedError):
            workflow_engine.act(request.id, Role.MANAGER, "approve")

        records = [r for r in captured_logs() if r["message"] == "vacation_transition_rejected"]
        assert records[-1]["reason"] == "PERMISSION_DENIED"
        assert records[-1]["level"] == "WARNING"

    def test_submission_rejection_logged(self, workflow_engine, captured_logs):
        with pytest.raises(ValidationError):
            workflow_engine.submit(make_submission(reason=""))
        records = [r for r in captured_logs() if r["message"] == "vacation_submission_rejected"]
        assert records[0]["field"] == "reason"
