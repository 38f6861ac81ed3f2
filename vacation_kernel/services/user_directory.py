"""
UserDirectory -- profile lookups for display names and replacement pickers.

Responsibility:
    Stores user profile documents and answers the two questions the
    submission form needs: "who is this user?" and "who may cover for
    this requester?".

Architecture position:
    Kernel > Services.  Identity is an already-authenticated input; this
    directory never authenticates anyone.

Failure modes:
    - NotFoundError from ``get_profile`` for an unknown user id.
    - StorageError on driver or connection failure.
"""

from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from vacation_kernel.domain.vacation import UserProfile
from vacation_kernel.exceptions import NotFoundError
from vacation_kernel.logging_config import get_logger
from vacation_kernel.models.user_profile import UserProfileModel
from vacation_kernel.services.request_store import storage_scope

logger = get_logger("services.user_directory")


class UserDirectory:
    """Profile store over the ``user_profiles`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def upsert_profile(self, profile: UserProfile) -> UserProfile:
        with storage_scope(self._session_factory, "upsert_profile") as session:
            model = session.execute(
                select(UserProfileModel).where(UserProfileModel.user_id == profile.user_id)
            ).scalar_one_or_none()
            if model is None:
                model = UserProfileModel(user_id=profile.user_id)
                session.add(model)
            model.full_name = profile.full_name
            model.email = profile.email
            model.role = profile.role.value
            model.is_approved = profile.is_approved
            session.flush()
            stored = model.to_dto()

        logger.info(
            "user_profile_upserted",
            extra={"user_id": stored.user_id, "role": stored.role.value},
        )
        return stored

    def find_profile(self, user_id: str) -> UserProfile | None:
        with storage_scope(self._session_factory, "get_profile") as session:
            model = session.execute(
                select(UserProfileModel).where(UserProfileModel.user_id == user_id)
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def get_profile(self, user_id: str) -> UserProfile:
        profile = self.find_profile(user_id)
        if profile is None:
            raise NotFoundError("UserProfile", user_id)
        return profile

    def list_profiles(self) -> list[UserProfile]:
        with storage_scope(self._session_factory, "list_profiles") as session:
            models = session.execute(select(UserProfileModel)).scalars().all()
            profiles = [m.to_dto() for m in models]
        return sorted(profiles, key=lambda p: (p.display_name.lower(), p.user_id))

    def replacement_candidates(self, requester_id: str) -> list[UserProfile]:
        """Approved colleagues other than the requester, sorted by name."""
        return [
            p for p in self.list_profiles()
            if p.user_id != requester_id and p.is_approved
        ]
