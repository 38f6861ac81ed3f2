"""
Vacation domain types (``vacation_kernel.domain.vacation``).

Responsibility
--------------
Pure value objects for the vacation approval workflow: closed role,
status and action enumerations, the request record, its per-role audit
slots, submission input, list filters and summary projections.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``domain/`` siblings and ``exceptions``.

Invariants enforced
-------------------
* Roles, statuses and actions are closed enumerations; raw strings are
  parsed once at the boundary (``Role.parse`` and friends).
* ``VacationRequest.approvals`` always carries all three approver slots.
* Identity fields (``employee_name``, ``replacement_user_name``) are
  snapshots taken at submission time, never live references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Mapping
from uuid import UUID

from vacation_kernel.exceptions import ValidationError


# =========================================================================
# Closed enumerations
# =========================================================================


class Role(str, Enum):
    """User roles read from the profile document."""

    EMPLOYEE = "employee"
    HR = "hr"
    PM = "pm"
    MANAGER = "manager"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: "Role | str", field_name: str = "actor_role") -> "Role":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(field_name, f"unknown role {value!r}") from None


class ApproverRole(str, Enum):
    """Roles that own an audit slot in ``approvals``."""

    HR = "hr"
    PM = "pm"
    MANAGER = "manager"


class VacationStatus(str, Enum):
    """Vacation request lifecycle states."""

    PENDING = "pending"
    HR_REVIEW = "hr_review"
    PM_REVIEW = "pm_review"
    APPROVED = "approved"
    DENIED = "denied"


TERMINAL_STATUSES: frozenset[VacationStatus] = frozenset({
    VacationStatus.APPROVED,
    VacationStatus.DENIED,
})

# Forward order along the approval chain; DENIED sits outside it.
STATUS_ORDER: tuple[VacationStatus, ...] = (
    VacationStatus.PENDING,
    VacationStatus.HR_REVIEW,
    VacationStatus.PM_REVIEW,
    VacationStatus.APPROVED,
)


class WorkflowAction(str, Enum):
    """Decisions an approver can make."""

    APPROVE = "approve"
    DENY = "deny"

    @classmethod
    def parse(cls, value: "WorkflowAction | str") -> "WorkflowAction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("action", f"unknown action {value!r}") from None


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class ApprovalSlot:
    """Audit entry for one approver role. Immutable once ``date`` is set."""

    approved: bool = False
    date: datetime | None = None
    comment: str = ""

    @property
    def is_recorded(self) -> bool:
        return self.date is not None


EMPTY_SLOT = ApprovalSlot()


def empty_approvals() -> dict[ApproverRole, ApprovalSlot]:
    """All three slots, none written."""
    return {role: EMPTY_SLOT for role in ApproverRole}


@dataclass(frozen=True)
class NewVacationRequest:
    """Submission input collected by the presentation shell."""

    employee_id: str
    employee_name: str
    employee_role: Role | str
    start_date: date | None
    end_date: date | None
    reason: str
    replacement_user_id: str | None
    replacement_user_name: str = ""


@dataclass(frozen=True)
class VacationRequest:
    """Immutable snapshot of a persisted vacation request.

    ``version`` is the compare-and-swap token; it starts at 1 and is
    incremented by every applied transition.
    """

    id: UUID
    employee_id: str
    employee_name: str
    employee_role: str
    start_date: date
    end_date: date
    reason: str
    replacement_user_id: str
    replacement_user_name: str
    status: VacationStatus
    approvals: Mapping[ApproverRole, ApprovalSlot] = field(default_factory=empty_approvals)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def slot(self, role: ApproverRole | str) -> ApprovalSlot:
        return self.approvals.get(ApproverRole(role), EMPTY_SLOT)


# =========================================================================
# Queries and projections
# =========================================================================


@dataclass(frozen=True)
class RequestFilter:
    """List/subscription filter.

    ``employee_id`` restricts to one requester (self-service view);
    ``statuses`` restricts to the given states.  The default filter
    matches everything (oversight view).
    """

    employee_id: str | None = None
    statuses: tuple[VacationStatus, ...] = ()

    def matches(self, request: VacationRequest) -> bool:
        if self.employee_id is not None and request.employee_id != self.employee_id:
            return False
        if self.statuses and request.status not in self.statuses:
            return False
        return True


ALL_REQUESTS = RequestFilter()


@dataclass(frozen=True)
class VacationStats:
    """Dashboard counters. ``pending`` counts every non-terminal status."""

    pending: int = 0
    approved: int = 0
    denied: int = 0
    total: int = 0


@dataclass(frozen=True)
class LeaveDay:
    """One calendar day covered by a vacation request."""

    day: date
    request_id: UUID
    employee_id: str
    employee_name: str
    status: VacationStatus


@dataclass(frozen=True)
class UserProfile:
    """Profile document of a user, as kept by the users directory."""

    user_id: str
    full_name: str
    email: str = ""
    role: Role = Role.EMPLOYEE
    is_approved: bool = True

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or self.user_id
