"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from vacation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from vacation_kernel.domain.vacation import (
    ALL_REQUESTS,
    EMPTY_SLOT,
    STATUS_ORDER,
    TERMINAL_STATUSES,
    ApprovalSlot,
    ApproverRole,
    LeaveDay,
    NewVacationRequest,
    RequestFilter,
    Role,
    UserProfile,
    VacationRequest,
    VacationStats,
    VacationStatus,
    WorkflowAction,
    empty_approvals,
)
from vacation_kernel.domain.workflow import Transition, Workflow

__all__ = [
    "ALL_REQUESTS",
    "EMPTY_SLOT",
    "STATUS_ORDER",
    "TERMINAL_STATUSES",
    "ApprovalSlot",
    "ApproverRole",
    "Clock",
    "DeterministicClock",
    "LeaveDay",
    "NewVacationRequest",
    "RequestFilter",
    "Role",
    "SystemClock",
    "Transition",
    "UserProfile",
    "VacationRequest",
    "VacationStats",
    "VacationStatus",
    "Workflow",
    "WorkflowAction",
    "empty_approvals",
]
