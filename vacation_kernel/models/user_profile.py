"""
Module: vacation_kernel.models.user_profile
Responsibility: ORM persistence for user profile documents (display name,
    e-mail, role string, approval flag).

Architecture position: Kernel > Models.  May import from db/base.py only.

Audit relevance:
    Profiles are a lookup source only.  Vacation requests copy the names they
    need at submission time, so later profile edits never rewrite history.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from vacation_kernel.db.base import Base

if TYPE_CHECKING:
    from vacation_kernel.domain.vacation import UserProfile


class UserProfileModel(Base):
    """Persistent user profile keyed by the auth provider's user id."""

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="employee")
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<UserProfile {self.user_id} role={self.role}>"

    def to_dto(self) -> UserProfile:
        from vacation_kernel.domain.vacation import Role, UserProfile as UserProfileDTO

        return UserProfileDTO(
            user_id=self.user_id,
            full_name=self.full_name,
            email=self.email,
            role=Role.parse(self.role, field_name="role"),
            is_approved=self.is_approved,
        )
