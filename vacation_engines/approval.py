"""
vacation_engines.approval -- Pure approval policy.

Responsibility:
    Map (current status, actor role, action) to either the next status
    and the audit slot to write, or a rejection.  Also answers the
    read-side questions the shell asks ("may this role act here?",
    "what may this actor see?").

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import vacation_kernel/domain/ types and the workflow
    declaration.

Invariants enforced:
    - Single source of truth: every decision is a lookup in
      ``VACATION_WORKFLOW.transitions``; there are no per-role
      conditionals elsewhere.
    - Escalation override: ``admin`` acts at any non-terminal stage as
      the stage owner and writes into the stage owner's slot.
    - Terminal states accept nothing.
    - Purity: no clock access, no I/O, no database.

Failure modes:
    - Returns ``PolicyDecision(allowed=False)`` with a ``rejection``
      reason; never raises for a well-typed input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from vacation_engines.workflows import VACATION_WORKFLOW
from vacation_kernel.domain.vacation import (
    ALL_REQUESTS,
    STATUS_ORDER,
    ApproverRole,
    RequestFilter,
    Role,
    VacationStatus,
    WorkflowAction,
)
from vacation_kernel.domain.workflow import Workflow


class PolicyRejection(str, Enum):
    """Why the policy refused a transition."""

    FINALIZED = "finalized"
    NOT_ACTORS_TURN = "not_actors_turn"


@dataclass(frozen=True)
class PolicyDecision:
    """Result of evaluating one (status, role, action) triple."""

    allowed: bool
    next_status: VacationStatus | None = None
    slot: ApproverRole | None = None
    stage_owner: ApproverRole | None = None
    rejection: PolicyRejection | None = None
    reason: str = ""


def stage_owner(
    status: VacationStatus,
    workflow: Workflow = VACATION_WORKFLOW,
) -> ApproverRole | None:
    """Return the approver role whose turn it is, or None when terminal."""
    for t in workflow.transitions:
        if t.from_state == status.value:
            return ApproverRole(t.actor_role)
    return None


def acting_role(
    status: VacationStatus,
    actor_role: Role,
    workflow: Workflow = VACATION_WORKFLOW,
) -> ApproverRole | None:
    """The slot role the actor would act as at ``status``, if any.

    Admin escalates into the stage owner; every other role acts only as
    itself and only when it owns the stage.
    """
    owner = stage_owner(status, workflow)
    if owner is None:
        return None
    if actor_role is Role.ADMIN:
        return owner
    if actor_role.value == owner.value:
        return owner
    return None


def evaluate_transition(
    status: VacationStatus,
    actor_role: Role,
    action: WorkflowAction,
    workflow: Workflow = VACATION_WORKFLOW,
) -> PolicyDecision:
    """Decide whether ``actor_role`` may apply ``action`` at ``status``.

    Args:
        status: Current status of the request.
        actor_role: Already-authenticated role of the actor.
        action: approve or deny.
        workflow: State machine to evaluate against.

    Returns:
        PolicyDecision with ``next_status`` and ``slot`` when allowed,
        otherwise ``rejection`` and the current ``stage_owner``.
    """
    if workflow.is_terminal(status.value):
        return PolicyDecision(
            allowed=False,
            rejection=PolicyRejection.FINALIZED,
            reason=f"{status.value} is terminal",
        )

    owner = stage_owner(status, workflow)
    as_role = acting_role(status, actor_role, workflow)
    if as_role is None:
        return PolicyDecision(
            allowed=False,
            stage_owner=owner,
            rejection=PolicyRejection.NOT_ACTORS_TURN,
            reason=f"{status.value} awaits {owner.value if owner else 'nobody'}",
        )

    transition = workflow.find(status.value, action.value)
    if transition is None or transition.actor_role != as_role.value:
        return PolicyDecision(
            allowed=False,
            stage_owner=owner,
            rejection=PolicyRejection.NOT_ACTORS_TURN,
            reason=f"no {action.value} edge out of {status.value}",
        )

    return PolicyDecision(
        allowed=True,
        next_status=VacationStatus(transition.to_state),
        slot=ApproverRole(transition.records_slot or transition.actor_role),
        stage_owner=owner,
        reason=f"{as_role.value} {action.value}: {status.value} -> {transition.to_state}",
    )


def can_act(status: VacationStatus, actor_role: Role) -> bool:
    """True when the role may approve or deny at ``status``."""
    return bool(allowed_actions(status, actor_role))


def allowed_actions(
    status: VacationStatus,
    actor_role: Role,
    workflow: Workflow = VACATION_WORKFLOW,
) -> tuple[WorkflowAction, ...]:
    """Actions the role may take at ``status``, in declaration order."""
    return tuple(
        action
        for action in WorkflowAction
        if evaluate_transition(status, actor_role, action, workflow).allowed
    )


def visible_filter(actor_id: str, actor_role: Role) -> RequestFilter:
    """Employees see their own requests; every other role sees all."""
    if actor_role is Role.EMPLOYEE:
        return RequestFilter(employee_id=actor_id)
    return ALL_REQUESTS


def is_legal_progression(old: VacationStatus, new: VacationStatus) -> bool:
    """True if ``old -> new`` is one forward step or a jump to denied.

    Used to assert monotonicity over observed status histories.
    """
    if old == new:
        return True
    if old in (VacationStatus.APPROVED, VacationStatus.DENIED):
        return False
    if new is VacationStatus.DENIED:
        return True
    return STATUS_ORDER.index(new) == STATUS_ORDER.index(old) + 1
