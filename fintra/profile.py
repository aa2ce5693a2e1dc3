"""
Profile Store

The signed-in user's profile, mirrored into session storage under
`fintra_user_profile` so the header and currency settings render before
the server answers. An unreadable stored profile is discarded.
"""

import json
from collections.abc import MutableMapping
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from fintra.models.workspace import UserProfile
from fintra.services.remote import RemoteDataService, RemoteServiceError


logger = structlog.get_logger(__name__)

PROFILE_STORAGE_KEY = "fintra_user_profile"


class ProfileStore:
    """Session-cached user profile."""

    def __init__(
        self,
        remote: RemoteDataService,
        storage: MutableMapping[str, str],
    ):
        self._remote = remote
        self._storage = storage
        self.profile: Optional[UserProfile] = self.cached()

    def cached(self) -> Optional[UserProfile]:
        raw = self._storage.get(PROFILE_STORAGE_KEY)
        if raw is None:
            return None
        try:
            return UserProfile.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("stored_profile_discarded", error=str(e))
            self._storage.pop(PROFILE_STORAGE_KEY, None)
            return None

    def _store(self, profile: UserProfile) -> None:
        self.profile = profile
        self._storage[PROFILE_STORAGE_KEY] = profile.model_dump_json()

    async def load(self, user_id: str) -> Optional[UserProfile]:
        """
        Fetch the profile from the server and refresh the stored copy.

        If the server cannot be reached, a stored profile of the same user
        is kept.

        Raises:
            RemoteServiceError: If the fetch fails and nothing usable is stored
        """
        cached = self.cached()
        if cached is not None and cached.id != user_id:
            self.clear()
            cached = None

        try:
            profile = await self._remote.get_user_profile(user_id)
        except RemoteServiceError as e:
            if cached is None:
                raise
            logger.warning("profile_fetch_failed_using_cached", user_id=user_id, error=str(e))
            self.profile = cached
            return cached

        if profile is None:
            self.clear()
            return None
        self._store(profile)
        return profile

    async def update(self, changes: dict[str, Any]) -> UserProfile:
        """Save profile changes and return the updated profile."""
        if self.profile is None:
            raise RuntimeError("No profile loaded")
        updated = UserProfile.model_validate({**self.profile.model_dump(), **changes})
        await self._remote.update_user_profile(self.profile.id, changes)
        self._store(updated)
        return updated

    def clear(self) -> None:
        self.profile = None
        self._storage.pop(PROFILE_STORAGE_KEY, None)
