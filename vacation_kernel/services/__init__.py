"""Kernel services: persistence, audit chain, notifications, directory."""

from vacation_kernel.services.auditor_service import (
    AuditorService,
    AuditTrace,
    AuditTraceEntry,
)
from vacation_kernel.services.request_store import (
    RequestStore,
    TransitionWrite,
    storage_scope,
)
from vacation_kernel.services.sequence_service import SequenceCounter, SequenceService
from vacation_kernel.services.subscriptions import Subscription, SubscriptionHub
from vacation_kernel.services.user_directory import UserDirectory

__all__ = [
    "AuditTrace",
    "AuditTraceEntry",
    "AuditorService",
    "RequestStore",
    "SequenceCounter",
    "SequenceService",
    "Subscription",
    "SubscriptionHub",
    "TransitionWrite",
    "UserDirectory",
    "storage_scope",
]
