"""
Module: vacation_kernel.models.vacation_request
Responsibility: ORM persistence for vacation requests and their per-role
    approval slots.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - Status values limited by a check constraint; transitions themselves are
      enforced by the approval policy before anything is written.
    - ``version`` is the compare-and-swap token.  The store only ever changes
      a request through ``UPDATE ... WHERE id = :id AND version = :expected``.
    - Approval slots are append-only: UNIQUE(request_id, role) allows one
      write per role, and ORM listeners forbid UPDATE/DELETE of a slot row.

Failure modes:
    - IntegrityError on a second slot row for the same role.
    - ImmutabilityViolationError on slot UPDATE/DELETE.

Audit relevance:
    Requests are never physically deleted in normal operation; together with
    the slot rows they are the record of who approved or denied what, when.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vacation_kernel.db.base import Base, UUIDString
from vacation_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from vacation_kernel.domain.vacation import ApprovalSlot, VacationRequest


class VacationRequestModel(Base):
    """Persistent vacation request.

    Contract:
        Content fields are written once at submission.  ``status``,
        ``updated_at`` and ``version`` change only through the store's
        conditional update.
    """

    __tablename__ = "vacation_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'hr_review', 'pm_review', 'approved', 'denied')",
            name="ck_vacation_requests_valid_status",
        ),
        CheckConstraint(
            "start_date < end_date",
            name="ck_vacation_requests_date_order",
        ),
        CheckConstraint(
            "version >= 1",
            name="ck_vacation_requests_version_positive",
        ),
        # Self-service listing
        Index(
            "ix_vacation_requests_employee_created",
            "employee_id", "created_at",
        ),
        # Oversight listing / worklists
        Index(
            "ix_vacation_requests_status_created",
            "status", "created_at",
        ),
    )

    employee_id: Mapped[str] = mapped_column(String(128), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    employee_role: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    replacement_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    replacement_user_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    approvals: Mapped[list["VacationApprovalModel"]] = relationship(
        "VacationApprovalModel",
        back_populates="request",
        order_by="VacationApprovalModel.decided_at",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<VacationRequest {self.id} employee={self.employee_id} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> VacationRequest:
        """Convert ORM model to frozen domain DTO."""
        from vacation_kernel.domain.vacation import (
            ApproverRole,
            VacationRequest as VacationRequestDTO,
            VacationStatus,
            empty_approvals,
        )

        approvals = empty_approvals()
        for slot in self.approvals:
            approvals[ApproverRole(slot.role)] = slot.to_dto()

        return VacationRequestDTO(
            id=self.id,
            employee_id=self.employee_id,
            employee_name=self.employee_name,
            employee_role=self.employee_role,
            start_date=self.start_date,
            end_date=self.end_date,
            reason=self.reason,
            replacement_user_id=self.replacement_user_id,
            replacement_user_name=self.replacement_user_name,
            status=VacationStatus(self.status),
            approvals=approvals,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class VacationApprovalModel(Base):
    """One written approval slot. Append-only.

    Contract:
        Slots are immutable once created -- no UPDATE, no DELETE.
        ``actor_id``/``actor_role`` record who actually acted, so an admin
        escalation into another role's slot stays traceable.
    """

    __tablename__ = "vacation_approvals"

    __table_args__ = (
        Index("ix_vacation_approvals_request_id", "request_id"),
        UniqueConstraint(
            "request_id", "role",
            name="uq_vacation_approvals_role",
        ),
        CheckConstraint(
            "role IN ('hr', 'pm', 'manager')",
            name="ck_vacation_approvals_valid_role",
        ),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vacation_requests.id"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False)
    comment: Mapped[str] = mapped_column(Text, default="", nullable=False)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)
    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)

    request: Mapped["VacationRequestModel"] = relationship(
        "VacationRequestModel",
        back_populates="approvals",
    )

    def __repr__(self) -> str:
        return (
            f"<VacationApproval request={self.request_id} role={self.role} "
            f"approved={self.approved}>"
        )

    def to_dto(self) -> ApprovalSlot:
        """Convert ORM model to frozen domain DTO."""
        from vacation_kernel.domain.vacation import ApprovalSlot as ApprovalSlotDTO

        return ApprovalSlotDTO(
            approved=self.approved,
            date=self.decided_at,
            comment=self.comment,
        )


# =============================================================================
# ORM-Level Immutability for Approval Slots (Append-Only)
# =============================================================================


@event.listens_for(VacationApprovalModel, "before_update")
def prevent_slot_update(mapper, connection, target):
    """Prevent updates to recorded approval slots."""
    raise ImmutabilityViolationError(
        entity_type="VacationApproval",
        entity_id=f"{target.request_id}/{target.role}",
        reason="Approval slots are immutable once recorded -- cannot modify",
    )


@event.listens_for(VacationApprovalModel, "before_delete")
def prevent_slot_delete(mapper, connection, target):
    """Prevent deletion of recorded approval slots."""
    raise ImmutabilityViolationError(
        entity_type="VacationApproval",
        entity_id=f"{target.request_id}/{target.role}",
        reason="Approval slots are immutable once recorded -- cannot delete",
    )
