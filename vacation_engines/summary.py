"""
vacation_engines.summary -- Read-side projections of vacation requests.

Responsibility:
    Dashboard counters, the "action required" worklist of an approver,
    human-readable stage labels, and the formatted approval history of a
    single request.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``pending`` in ``VacationStats`` counts every non-terminal status.
    - The approval history lists slots in chain order (HR, PM, Manager)
      regardless of which ones were written.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from vacation_engines.approval import can_act
from vacation_kernel.domain.vacation import (
    ApproverRole,
    Role,
    VacationRequest,
    VacationStats,
    VacationStatus,
)

STATUS_LABELS: dict[VacationStatus, str] = {
    VacationStatus.PENDING: "Awaiting HR review",
    VacationStatus.HR_REVIEW: "Awaiting PM review",
    VacationStatus.PM_REVIEW: "Awaiting manager review",
    VacationStatus.APPROVED: "Fully approved",
    VacationStatus.DENIED: "Denied",
}

ROLE_LABELS: dict[ApproverRole, str] = {
    ApproverRole.HR: "HR",
    ApproverRole.PM: "PM",
    ApproverRole.MANAGER: "Manager",
}


@dataclass(frozen=True)
class HistoryEntry:
    """One line of the approval history shown under a request."""

    role: ApproverRole
    label: str
    outcome: str  # "approved", "denied" or "pending"
    decided_at: datetime | None
    comment: str

    def render(self) -> str:
        line = f"{self.label}: {self.outcome}"
        if self.decided_at is not None:
            line = f"{line} on {self.decided_at:%Y-%m-%d %H:%M}"
        if self.comment:
            line = f"{line} ({self.comment})"
        return line


def status_label(status: VacationStatus) -> str:
    return STATUS_LABELS[status]


def summarize(requests: Iterable[VacationRequest]) -> VacationStats:
    """Count requests by outcome."""
    pending = approved = denied = total = 0
    for request in requests:
        total += 1
        if request.status is VacationStatus.APPROVED:
            approved += 1
        elif request.status is VacationStatus.DENIED:
            denied += 1
        else:
            pending += 1
    return VacationStats(pending=pending, approved=approved, denied=denied, total=total)


def awaiting_action(
    requests: Iterable[VacationRequest],
    actor_role: Role,
) -> list[VacationRequest]:
    """Requests whose current stage ``actor_role`` may act on."""
    return [r for r in requests if can_act(r.status, actor_role)]


def approval_history(request: VacationRequest) -> tuple[HistoryEntry, ...]:
    """Approval slots of a request in chain order."""
    entries = []
    for role in ApproverRole:
        slot = request.slot(role)
        if not slot.is_recorded:
            outcome = "pending"
        elif slot.approved:
            outcome = "approved"
        else:
            outcome = "denied"
        entries.append(
            HistoryEntry(
                role=role,
                label=ROLE_LABELS[role],
                outcome=outcome,
                decided_at=slot.date,
                comment=slot.comment,
            )
        )
    return tuple(entries)
