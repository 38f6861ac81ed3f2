"""ORM models for the vacation kernel."""

from vacation_kernel.models.audit_event import AuditAction, AuditEvent
from vacation_kernel.models.user_profile import UserProfileModel
from vacation_kernel.models.vacation_request import (
    VacationApprovalModel,
    VacationRequestModel,
)

__all__ = [
    "AuditAction",
    "AuditEvent",
    "UserProfileModel",
    "VacationApprovalModel",
    "VacationRequestModel",
]
