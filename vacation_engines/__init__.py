"""
vacation_engines -- pure calculation layer.

Everything here is side-effect free: the approval policy, the workflow
declaration it evaluates, calendar arithmetic and read-side summaries.
No clock, no database, no logging of business decisions.
"""

from vacation_engines.approval import (
    PolicyDecision,
    PolicyRejection,
    acting_role,
    allowed_actions,
    can_act,
    evaluate_transition,
    is_legal_progression,
    stage_owner,
    visible_filter,
)
from vacation_engines.calendar import calendar_days, leave_days, month_bounds, overlaps
from vacation_engines.summary import (
    HistoryEntry,
    approval_history,
    awaiting_action,
    status_label,
    summarize,
)
from vacation_engines.workflows import VACATION_WORKFLOW

__all__ = [
    "HistoryEntry",
    "PolicyDecision",
    "PolicyRejection",
    "VACATION_WORKFLOW",
    "acting_role",
    "allowed_actions",
    "approval_history",
    "awaiting_action",
    "calendar_days",
    "can_act",
    "evaluate_transition",
    "is_legal_progression",
    "leave_days",
    "month_bounds",
    "overlaps",
    "stage_owner",
    "status_label",
    "summarize",
    "visible_filter",
]
