"""Profile lookups used to enrich nearby results."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Optional, Protocol

import asyncpg

from pawmap.domain.locations.errors import ProfileLookupFailure
from pawmap.domain.locations.models import Profile

logger = logging.getLogger(__name__)


class ProfileStore(Protocol):
    """Read-only view of user profiles owned by the account service."""

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """Return the profile or ``None`` when the user has none."""

    async def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        """Batch variant; users without a profile are absent from the mapping."""


class PostgresProfileStore(ProfileStore):
    """Reads the dog fields of the ``users`` table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        profiles = await self.get_profiles([user_id])
        return profiles.get(user_id)

    async def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = list(dict.fromkeys(str(uid) for uid in user_ids))
        if not ids:
            return {}
        query = """
        SELECT id, "dogName" AS display_name, "dogBreed" AS category, "avatarUrl" AS avatar_ref
        FROM users
        WHERE id = ANY($1::varchar[])
        """
        try:
            rows = await self.pool.fetch(query, ids)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
            raise ProfileLookupFailure("get_profiles", detail=str(exc)) from exc
        return {
            str(row["id"]): Profile(
                user_id=str(row["id"]),
                display_name=row["display_name"],
                category=row["category"],
                avatar_ref=row["avatar_ref"],
            )
            for row in rows
        }


class InMemoryProfileStore(ProfileStore):
    """Dictionary-backed profiles for local development and tests."""

    def __init__(self, profiles: Iterable[Profile] = ()) -> None:
        self._profiles: Dict[str, Profile] = {profile.user_id: profile for profile in profiles}

    def put(self, profile: Profile) -> None:
        self._profiles[profile.user_id] = profile

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)

    async def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        return {uid: self._profiles[uid] for uid in user_ids if uid in self._profiles}
