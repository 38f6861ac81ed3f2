"""
Tests for the pure approval policy.

Tests cover:
- evaluate_transition: the full (status, role, action) table
- admin escalation into the stage owner's slot
- rejections: finalized vs. not this role's turn
- allowed_actions / can_act / visible_filter / is_legal_progression
"""

import itertools

import pytest

from vacation_engines.approval import (
    PolicyRejection,
    acting_role,
    allowed_actions,
    can_act,
    evaluate_transition,
    is_legal_progression,
    stage_owner,
    visible_filter,
)
from vacation_kernel.domain.vacation import (
    ALL_REQUESTS,
    ApproverRole,
    RequestFilter,
    Role,
    VacationStatus,
    WorkflowAction,
)

S = VacationStatus
A = WorkflowAction

# (status, role, action) -> next status, for every allowed combination
ALLOWED = {
    (S.PENDING, Role.HR, A.APPROVE): S.HR_REVIEW,
    (S.HR_REVIEW, Role.PM, A.APPROVE): S.PM_REVIEW,
    (S.PM_REVIEW, Role.MANAGER, A.APPROVE): S.APPROVED,
    (S.PENDING, Role.HR, A.DENY): S.DENIED,
    (S.HR_REVIEW, Role.PM, A.DENY): S.DENIED,
    (S.PM_REVIEW, Role.MANAGER, A.DENY): S.DENIED,
    (S.PENDING, Role.ADMIN, A.APPROVE): S.HR_REVIEW,
    (S.HR_REVIEW, Role.ADMIN, A.APPROVE): S.PM_REVIEW,
    (S.PM_REVIEW, Role.ADMIN, A.APPROVE): S.APPROVED,
    (S.PENDING, Role.ADMIN, A.DENY): S.DENIED,
    (S.HR_REVIEW, Role.ADMIN, A.DENY): S.DENIED,
    (S.PM_REVIEW, Role.ADMIN, A.DENY): S.DENIED,
}


class TestEvaluateTransition:

    @pytest.mark.parametrize(
        "status,role,action",
        list(itertools.product(S, Role, A)),
        ids=lambda v: v.value,
    )
    def test_full_table(self, status, role, action):
        decision = evaluate_transition(status, role, action)
        expected = ALLOWED.get((status, role, action))
        if expected is None:
            assert not decision.allowed
            assert decision.next_status is None
            assert decision.rejection is not None
        else:
            assert decision.allowed
            assert decision.next_status is expected
            assert decision.rejection is None

    @pytest.mark.parametrize("status", [S.APPROVED, S.DENIED])
    @pytest.mark.parametrize("role", list(Role))
    def test_terminal_rejects_as_finalized(self, status, role):
        decision = evaluate_transition(status, role, A.APPROVE)
        assert decision.rejection is PolicyRejection.FINALIZED
        assert decision.stage_owner is None

    def test_wrong_role_rejected_as_not_actors_turn(self):
        decision = evaluate_transition(S.HR_REVIEW, Role.MANAGER, A.APPROVE)
        assert decision.rejection is PolicyRejection.NOT_ACTORS_TURN
        assert decision.stage_owner is ApproverRole.PM

    def test_employee_never_acts(self):
        for status in (S.PENDING, S.HR_REVIEW, S.PM_REVIEW):
            assert not evaluate_transition(status, Role.EMPLOYEE, A.APPROVE).allowed

    def test_slot_is_stage_owner(self):
        assert evaluate_transition(S.PENDING, Role.HR, A.APPROVE).slot is ApproverRole.HR
        assert evaluate_transition(S.PM_REVIEW, Role.MANAGER, A.DENY).slot is ApproverRole.MANAGER

    @pytest.mark.parametrize(
        "status,owner",
        [(S.PENDING, ApproverRole.HR), (S.HR_REVIEW, ApproverRole.PM), (S.PM_REVIEW, ApproverRole.MANAGER)],
    )
    def test_admin_writes_into_stage_owner_slot(self, status, owner):
        decision = evaluate_transition(status, Role.ADMIN, A.APPROVE)
        assert decision.allowed
        assert decision.slot is owner


class TestStageHelpers:

    def test_stage_owner(self):
        assert stage_owner(S.PENDING) is ApproverRole.HR
        assert stage_owner(S.HR_REVIEW) is ApproverRole.PM
        assert stage_owner(S.PM_REVIEW) is ApproverRole.MANAGER
        assert stage_owner(S.APPROVED) is None
        assert stage_owner(S.DENIED) is None

    def test_acting_role(self):
        assert acting_role(S.PENDING, Role.ADMIN) is ApproverRole.HR
        assert acting_role(S.PENDING, Role.HR) is ApproverRole.HR
        assert acting_role(S.PENDING, Role.PM) is None
        assert acting_role(S.APPROVED, Role.ADMIN) is None

    def test_allowed_actions(self):
        assert allowed_actions(S.PENDING, Role.HR) == (A.APPROVE, A.DENY)
        assert allowed_actions(S.PENDING, Role.MANAGER) == ()
        assert allowed_actions(S.DENIED, Role.ADMIN) == ()

    def test_can_act(self):
        assert can_act(S.PM_REVIEW, Role.MANAGER)
        assert can_act(S.PM_REVIEW, Role.ADMIN)
        assert not can_act(S.PM_REVIEW, Role.HR)


class TestVisibility:

    def test_employee_sees_own_requests(self):
        assert visible_filter("u-anna", Role.EMPLOYEE) == RequestFilter(employee_id="u-anna")

    @pytest.mark.parametrize("role", [Role.HR, Role.PM, Role.MANAGER, Role.ADMIN])
    def test_oversight_roles_see_everything(self, role):
        assert visible_filter("u-x", role) == ALL_REQUESTS


class TestLegalProgression:

    def test_forward_steps(self):
        assert is_legal_progression(S.PENDING, S.HR_REVIEW)
        assert is_legal_progression(S.HR_REVIEW, S.PM_REVIEW)
        assert is_legal_progression(S.PM_REVIEW, S.APPROVED)

    def test_skips_and_regressions_are_illegal(self):
        assert not is_legal_progression(S.PENDING, S.PM_REVIEW)
        assert not is_legal_progression(S.PENDING, S.APPROVED)
        assert not is_legal_progression(S.PM_REVIEW, S.HR_REVIEW)

    def test_deny_from_any_non_terminal(self):
        for status in (S.PENDING, S.HR_REVIEW, S.PM_REVIEW):
            assert is_legal_progression(status, S.DENIED)

    def test_terminal_states_never_move(self):
        assert not is_legal_progression(S.APPROVED, S.DENIED)
        assert not is_legal_progression(S.DENIED, S.PENDING)
        assert is_legal_progression(S.DENIED, S.DENIED)
