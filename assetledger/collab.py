"""
Keyed stores that sit beside the registry core.

Sessions, subscriptions, the tag directory and user profiles have no invariant
beyond existence checks. They hold data only; the registry performs the
existence, write-access and audit steps around them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from .errors import NotFoundError

MAX_PARTICIPANTS = 50
UPLOAD_REPUTATION = 10
REVISION_REPUTATION = 5


@dataclass(frozen=True)
class CollaborationSession:
    session_id: int
    asset_id: int
    organizer: str
    participants: tuple[str, ...]
    starts_at: int
    ends_at: int
    created_at: int

    def is_open(self, now: int) -> bool:
        return self.starts_at <= now < self.ends_at

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["participants"] = list(self.participants)
        return data


@dataclass(frozen=True)
class Subscription:
    asset_id: int
    user: str
    notify_on_update: bool
    notify_on_access: bool
    subscribed_at: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UserProfile:
    user: str
    assets_registered: int = 0
    versions_authored: int = 0
    reputation: int = 0
    last_active: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SessionBook:
    def __init__(self) -> None:
        self._sessions: dict[int, CollaborationSession] = {}

    def add(self, session: CollaborationSession) -> None:
        self._sessions[session.session_id] = session

    def get(self, session_id: int) -> CollaborationSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise NotFoundError(f"Unknown session: {session_id}") from None

    def for_asset(self, asset_id: int) -> list[CollaborationSession]:
        return [s for s in self._sessions.values() if s.asset_id == asset_id]

    def __len__(self) -> int:
        return len(self._sessions)


class SubscriptionBook:
    def __init__(self) -> None:
        self._subs: dict[tuple[int, str], Subscription] = {}

    def upsert(self, sub: Subscription) -> None:
        self._subs[(sub.asset_id, sub.user)] = sub

    def get(self, asset_id: int, user: str) -> Subscription | None:
        return self._subs.get((asset_id, user))

    def subscribers(self, asset_id: int, *, on_update: bool | None = None) -> list[Subscription]:
        subs = [s for (aid, _), s in self._subs.items() if aid == asset_id]
        if on_update is not None:
            subs = [s for s in subs if s.notify_on_update == on_update]
        return subs


class CategoryDirectory:
    """Tag -> asset ids, in registration order."""

    def __init__(self) -> None:
        self._index: dict[str, list[int]] = {}

    def index(self, asset_id: int, tags: Iterable[str]) -> None:
        for tag in dict.fromkeys(tags):
            ids = self._index.setdefault(tag, [])
            if asset_id not in ids:
                ids.append(asset_id)

    def unindex(self, asset_id: int, tags: Iterable[str]) -> None:
        for tag in tags:
            ids = self._index.get(tag)
            if ids and asset_id in ids:
                ids.remove(asset_id)
                if not ids:
                    del self._index[tag]

    def assets_tagged(self, tag: str) -> list[int]:
        return list(self._index.get(tag, []))

    def tags(self) -> list[str]:
        return sorted(self._index)


class ProfileDirectory:
    def __init__(self) -> None:
        self._profiles: dict[str, UserProfile] = {}

    def get(self, user: str) -> UserProfile:
        return self._profiles.get(user) or UserProfile(user=user)

    def _touch(self, user: str, now: int) -> UserProfile:
        profile = self._profiles.setdefault(user, UserProfile(user=user))
        profile.last_active = now
        return profile

    def record_registration(self, user: str, now: int) -> UserProfile:
        profile = self._touch(user, now)
        profile.assets_registered += 1
        profile.reputation += UPLOAD_REPUTATION
        return profile

    def record_revision(self, user: str, now: int) -> UserProfile:
        profile = self._touch(user, now)
        profile.versions_authored += 1
        profile.reputation += REVISION_REPUTATION
        return profile
