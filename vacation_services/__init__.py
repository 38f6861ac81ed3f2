"""
vacation_services -- coordinators above the kernel.

``VacationWorkflowEngine`` is the inbound surface (submit / act / list and
the read-side projections); ``build_workflow_engine`` wires it from
settings.
"""

from vacation_services.bootstrap import build_workflow_engine
from vacation_services.workflow_engine import (
    CALENDAR_STATUSES,
    VacationWorkflowEngine,
)

__all__ = ["CALENDAR_STATUSES", "VacationWorkflowEngine", "build_workflow_engine"]
