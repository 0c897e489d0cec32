"""Storage contracts for user profiles and blocks, plus in-memory references."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Sequence

from beacon.domain.identity.models import UserProfile
from beacon.infra.locks import KeyedLock
from beacon.moderation.domain.errors import NotFoundError

ProfileMutator = Callable[[UserProfile], UserProfile]


class UserRepository(Protocol):
    """Storage layer contract for user profiles.

    ``mutate`` is the only write path for moderation fields. Implementations must
    serialize concurrent calls for the same user so read-modify-write cycles never
    lose an update; a mutator returning its input unchanged skips the write.
    """

    async def get(self, user_id: int) -> UserProfile | None:
        ...

    async def add(self, profile: UserProfile) -> UserProfile:
        ...

    async def mutate(self, user_id: int, mutator: ProfileMutator) -> UserProfile:
        ...

    async def list_discoverable(self) -> Sequence[UserProfile]:
        ...

    async def list_banned(self, *, limit: int, offset: int, query: str = "") -> tuple[Sequence[UserProfile], int]:
        ...

    async def count(self, *, banned: Optional[bool] = None, banned_since: Optional[datetime] = None) -> int:
        ...

    async def average_trust(self) -> float | None:
        ...


class BlockRepository(Protocol):
    async def add(self, blocker_id: int, blocked_id: int) -> bool:
        ...

    async def remove(self, blocker_id: int, blocked_id: int) -> bool:
        ...

    async def related_ids(self, user_id: int) -> set[int]:
        ...


def _matches(profile: UserProfile, query: str) -> bool:
    if not query:
        return True
    needle = query.lower()
    return any(needle in (value or "").lower() for value in (profile.email, profile.display_name))


def _ban_sort_key(profile: UserProfile) -> tuple[float, int]:
    banned_at = profile.banned_at or datetime.min.replace(tzinfo=timezone.utc)
    return (-banned_at.timestamp(), profile.id)


class InMemoryUserRepository(UserRepository):
    """Reference repository used in tests and developer environments."""

    def __init__(self, profiles: Sequence[UserProfile] = ()) -> None:
        self.profiles: dict[int, UserProfile] = {profile.id: profile for profile in profiles}
        self._locks = KeyedLock()

    async def get(self, user_id: int) -> UserProfile | None:
        return self.profiles.get(user_id)

    async def add(self, profile: UserProfile) -> UserProfile:
        self.profiles[profile.id] = profile
        return profile

    async def mutate(self, user_id: int, mutator: ProfileMutator) -> UserProfile:
        async with self._locks.hold(user_id):
            current = self.profiles.get(user_id)
            if current is None:
                raise NotFoundError("user_not_found")
            updated = mutator(current)
            if updated is current:
                return current
            updated.version = current.version + 1
            self.profiles[user_id] = updated
            return updated

    async def list_discoverable(self) -> Sequence[UserProfile]:
        return [
            profile
            for profile in sorted(self.profiles.values(), key=lambda p: p.id)
            if profile.visible and not profile.banned
        ]

    async def list_banned(self, *, limit: int, offset: int, query: str = "") -> tuple[Sequence[UserProfile], int]:
        matches = [profile for profile in self.profiles.values() if profile.banned and _matches(profile, query)]
        matches.sort(key=_ban_sort_key)
        return matches[offset : offset + limit], len(matches)

    async def count(self, *, banned: Optional[bool] = None, banned_since: Optional[datetime] = None) -> int:
        total = 0
        for profile in self.profiles.values():
            if banned is not None and profile.banned != banned:
                continue
            if banned_since is not None and (profile.banned_at is None or profile.banned_at < banned_since):
                continue
            total += 1
        return total

    async def average_trust(self) -> float | None:
        if not self.profiles:
            return None
        return sum(profile.trust_score for profile in self.profiles.values()) / len(self.profiles)


class InMemoryBlockRepository(BlockRepository):
    def __init__(self) -> None:
        self.pairs: set[tuple[int, int]] = set()

    async def add(self, blocker_id: int, blocked_id: int) -> bool:
        key = (blocker_id, blocked_id)
        if key in self.pairs:
            return False
        self.pairs.add(key)
        return True

    async def remove(self, blocker_id: int, blocked_id: int) -> bool:
        key = (blocker_id, blocked_id)
        if key not in self.pairs:
            return False
        self.pairs.discard(key)
        return True

    async def related_ids(self, user_id: int) -> set[int]:
        related: set[int] = set()
        for blocker, blocked in self.pairs:
            if blocker == user_id:
                related.add(blocked)
            elif blocked == user_id:
                related.add(blocker)
        return related
