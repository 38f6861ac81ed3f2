"""
Vacation Request Workflow (``vacation_engines.workflows``).

Responsibility
--------------
Declares the state machine for the vacation request lifecycle: the
fixed approval chain HR -> PM -> Manager, with a deny edge out of every
non-terminal stage.  Each transition names the role whose turn it is
and the audit slot it writes.

Architecture position
---------------------
**Engines layer** -- declarative workflow definition.  Imports canonical
Transition, Workflow from ``vacation_kernel.domain.workflow``.
Consumed by the approval policy in ``vacation_engines.approval``.

Invariants enforced
-------------------
* ``VACATION_WORKFLOW`` is frozen -- immutable after module load.
* Exactly one approver role owns each non-terminal stage.
* ``approved`` and ``denied`` have no outgoing transitions.
"""

from vacation_kernel.domain.vacation import ApproverRole, VacationStatus, WorkflowAction
from vacation_kernel.domain.workflow import Transition, Workflow
from vacation_kernel.logging_config import get_logger

logger = get_logger("engines.workflows")


def _stage(
    from_status: VacationStatus,
    approve_to: VacationStatus,
    owner: ApproverRole,
) -> tuple[Transition, Transition]:
    """Approve and deny edges for one stage of the chain."""
    return (
        Transition(
            from_status.value,
            approve_to.value,
            action=WorkflowAction.APPROVE.value,
            actor_role=owner.value,
            records_slot=owner.value,
        ),
        Transition(
            from_status.value,
            VacationStatus.DENIED.value,
            action=WorkflowAction.DENY.value,
            actor_role=owner.value,
            records_slot=owner.value,
        ),
    )


VACATION_WORKFLOW = Workflow(
    name="vacation_request",
    description="Vacation request approval chain (HR, then PM, then Manager)",
    initial_state=VacationStatus.PENDING.value,
    states=tuple(s.value for s in VacationStatus),
    terminal_states=(VacationStatus.APPROVED.value, VacationStatus.DENIED.value),
    transitions=(
        *_stage(VacationStatus.PENDING, VacationStatus.HR_REVIEW, ApproverRole.HR),
        *_stage(VacationStatus.HR_REVIEW, VacationStatus.PM_REVIEW, ApproverRole.PM),
        *_stage(VacationStatus.PM_REVIEW, VacationStatus.APPROVED, ApproverRole.MANAGER),
    ),
)

logger.debug(
    "vacation_workflow_registered",
    extra={
        "workflow_name": VACATION_WORKFLOW.name,
        "state_count": len(VACATION_WORKFLOW.states),
        "transition_count": len(VACATION_WORKFLOW.transitions),
        "initial_state": VACATION_WORKFLOW.initial_state,
    },
)
