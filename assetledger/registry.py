"""
Asset registry: the orchestrator for every public operation.

Each mutating operation follows the same shape, all under the store lock:

    validate call (actor, sequence) -> existence -> authorization -> fields
    -> mutate asset / ledgers -> append exactly one audit entry

Nothing is written until every check has passed, so a rejected call leaves no
trace. Successful calls are reported to commit hooks (the operation journal
uses this) after the audit entry has been appended.
"""

from __future__ import annotations

import dataclasses
import functools
import inspect
import logging
from typing import Any, Callable, Sequence

from . import audit as actions
from .access import AccessPolicy
from .collab import MAX_PARTICIPANTS, CollaborationSession, Subscription, UserProfile
from .errors import (
    DuplicateEntryError,
    ForbiddenError,
    NotFoundError,
    RegistryError,
    UnauthorizedError,
)
from .ids import ASSET_COUNTER, SESSION_COUNTER
from .models import (
    STATUS_DELETED,
    AccessStatus,
    AnalyticsRecord,
    Asset,
    AssetView,
    AuditEntry,
    SystemStatistics,
    VersionRecord,
)
from .store import RegistryStore
from .validation import (
    Violations,
    check_identity,
    check_sequence,
    validate_metadata_update,
    validate_rating,
    validate_registration,
    validate_revision,
)

logger = logging.getLogger(__name__)

INITIAL_VERSION_SUMMARY = "Initial version"

CommitHook = Callable[[str, dict[str, Any], AuditEntry | None], None]

# Operations whose successful calls change state and are reported to hooks.
JOURNALED_OPERATIONS: set[str] = set()


def operation(method: Callable[..., Any]) -> Callable[..., Any]:
    """
    Run a registry method as one atomic, journaled operation.

    The call's bound arguments, and the audit entry the call appended (or
    None), are passed to the commit hooks only when the method returns
    normally. Hooks run after the in-memory commit: if a hook
    fails (for example the journal cannot be written), the error is logged and
    re-raised, and the operation stays applied in memory but is not durable.
    """
    name = method.__name__
    signature = inspect.signature(method)
    JOURNALED_OPERATIONS.add(name)

    @functools.wraps(method)
    def wrapper(self: Registry, *args: Any, **kwargs: Any) -> Any:
        bound = signature.bind(self, *args, **kwargs)
        bound.apply_defaults()
        call = {k: v for k, v in bound.arguments.items() if k != "self"}
        with self.store.lock:
            audited_before = len(self.store.audit)
            try:
                result = method(self, *args, **kwargs)
            except RegistryError as e:
                logger.debug("%s rejected (%s): %s", name, e.kind, e.message)
                raise
            entry = self.store.audit.last() if len(self.store.audit) > audited_before else None
            try:
                self._notify(name, call, entry)
            except OSError:
                logger.error("%s applied in memory but a commit hook failed", name, exc_info=True)
                raise
        return result

    return wrapper


class Registry:
    """Public operation surface over a ``RegistryStore``."""

    def __init__(self, store: RegistryStore | None = None):
        self.store = store or RegistryStore()
        self._hooks: list[CommitHook] = []

    @classmethod
    def create(cls, *, admin: str, policy: AccessPolicy | None = None) -> Registry:
        return cls(RegistryStore(admin=admin, policy=policy))

    # -------------------------------------------------------------------------
    # Commit hooks
    # -------------------------------------------------------------------------

    def add_commit_hook(self, hook: CommitHook) -> None:
        self._hooks.append(hook)

    def remove_commit_hook(self, hook: CommitHook) -> None:
        self._hooks.remove(hook)

    def _notify(self, op: str, call: dict[str, Any], entry: AuditEntry | None) -> None:
        for hook in self._hooks:
            hook(op, call, entry)

    # -------------------------------------------------------------------------
    # Internal checks
    # -------------------------------------------------------------------------

    def _check_call(self, actor: str, now: int, *, mutating: bool = True) -> None:
        v = Violations()
        check_identity(v, "actor", actor)
        check_sequence(v, now, floor=self.store.last_sequence if mutating else 0)
        v.raise_if_any()

    def _require_asset(self, asset_id: int) -> Asset:
        asset = self.store.asset(asset_id)
        if asset is None:
            raise NotFoundError(f"Unknown asset: {asset_id}")
        return asset

    def _require_write(self, asset: Asset, actor: str, now: int) -> None:
        if not self.store.access.has_write_access(asset, actor, now):
            raise UnauthorizedError(f"{actor} has no write access to asset {asset.asset_id}")

    def _require_read(self, asset: Asset, actor: str, now: int) -> None:
        if not self.store.access.has_read_access(asset, actor, now):
            raise ForbiddenError(f"{actor} may not read asset {asset.asset_id}")

    @staticmethod
    def _check_active(v: Violations, asset: Asset) -> None:
        if not asset.is_active:
            v.add(f"asset {asset.asset_id} is retired")

    def _clock(self, now: int) -> int:
        """Sequence used for expiry checks on reads. Never earlier than the last commit."""
        return max(now, self.store.last_sequence)

    def _advance(self, now: int) -> None:
        self.store.last_sequence = max(self.store.last_sequence, now)

    # -------------------------------------------------------------------------
    # Mutating operations
    # -------------------------------------------------------------------------

    @operation
    def register(
        self,
        name: str,
        size: int,
        description: str,
        tags: Sequence[str],
        encrypted: bool,
        key_hash: str,
        content_hash: str,
        metadata: str,
        actor: str,
        now: int,
    ) -> int:
        """
        Register a new asset owned by ``actor``.

        Creates the asset at version 1, the owner's full grant, a zeroed
        analytics record and version record #1.

        Returns:
            The new asset id

        Raises:
            ValidationError: any field out of bounds (CapacityExceededError for
                size or tag-count overflow)
        """
        self._check_call(actor, now)
        validate_registration(
            name=name,
            size=size,
            description=description,
            tags=tags,
            key_hash=key_hash,
            content_hash=content_hash,
            metadata=metadata,
        ).raise_if_any()

        store = self.store
        if store.ids.current(ASSET_COUNTER) + 1 in store.assets:
            raise DuplicateEntryError("asset id collision")
        asset_id = store.ids.next(ASSET_COUNTER)

        asset = Asset(
            asset_id=asset_id,
            name=name,
            owner=actor,
            size=size,
            created_at=now,
            description=description,
            tags=list(tags),
            encrypted=bool(encrypted),
            key_hash=key_hash,
            content_hash=content_hash,
            metadata=metadata,
            current_version=1,
            total_versions=1,
            last_modified=now,
        )
        store.assets[asset_id] = asset
        store.access.install_owner(asset_id, actor, granted_by=actor, now=now)
        store.analytics.open(asset_id)
        store.versions.append(
            VersionRecord(
                asset_id=asset_id,
                version=1,
                description=description,
                editor=actor,
                created_at=now,
                size=size,
                content_hash=content_hash,
                summary=INITIAL_VERSION_SUMMARY,
            )
        )
        store.categories.index(asset_id, asset.tags)
        store.profiles.record_registration(actor, now)
        self._advance(now)

        store.audit.record(asset_id, actions.ASSET_REGISTERED, f"Registered '{name}' ({size} bytes)", actor, now)
        logger.info("registered asset %d (%s) for %s", asset_id, name, actor)
        return asset_id

    @operation
    def revise(
        self,
        asset_id: int,
        description: str,
        size: int,
        content_hash: str,
        summary: str,
        actor: str,
        now: int,
    ) -> int:
        """
        Append a new content version.

        Returns:
            The new version number

        Raises:
            NotFoundError: unknown asset
            UnauthorizedError: actor has no write access
            ValidationError: field out of bounds or asset retired
        """
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        self._require_write(asset, actor, now)
        v = validate_revision(description=description, size=size, content_hash=content_hash, summary=summary)
        self._check_active(v, asset)
        v.raise_if_any()

        store = self.store
        new_version = asset.total_versions + 1
        store.versions.append(
            VersionRecord(
                asset_id=asset_id,
                version=new_version,
                description=description,
                editor=actor,
                created_at=now,
                size=size,
                content_hash=content_hash,
                summary=summary,
            )
        )
        asset.current_version = new_version
        asset.total_versions = new_version
        asset.last_modified = now
        asset.size = size
        asset.content_hash = content_hash
        store.profiles.record_revision(actor, now)
        self._advance(now)

        detail = actions.clip_detail(f"Version {new_version}: {summary}")
        store.audit.record(asset_id, actions.VERSION_CREATED, detail, actor, now)
        logger.info("asset %d revised to version %d by %s", asset_id, new_version, actor)
        return new_version

    # Name used by the external operation surface.
    def create_version(self, *args: Any, **kwargs: Any) -> int:
        return self.revise(*args, **kwargs)

    @operation
    def update_metadata(
        self,
        asset_id: int,
        name: str,
        size: int,
        description: str,
        tags: Sequence[str],
        actor: str,
        now: int,
    ) -> bool:
        """Rewrite display fields. Does not create a version."""
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        self._require_write(asset, actor, now)
        v = validate_metadata_update(name=name, size=size, description=description, tags=tags)
        self._check_active(v, asset)
        v.raise_if_any()

        store = self.store
        store.categories.unindex(asset_id, asset.tags)
        asset.name = name
        asset.size = size
        asset.description = description
        asset.tags = list(tags)
        asset.last_modified = now
        store.categories.index(asset_id, asset.tags)
        self._advance(now)

        store.audit.record(asset_id, actions.METADATA_UPDATED, f"Metadata updated: '{name}'", actor, now)
        logger.info("asset %d metadata updated by %s", asset_id, actor)
        return True

    @operation
    def grant_access(
        self,
        asset_id: int,
        target: str,
        read: bool,
        write: bool,
        admin: bool,
        expires_at: int | None,
        actor: str,
        now: int,
    ) -> bool:
        """
        Create or replace ``target``'s grant on an asset.

        Raises:
            NotFoundError: unknown asset
            UnauthorizedError: actor is neither owner nor system administrator
            ValidationError: bad target or expiry, target is the owner, or
                asset retired
        """
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        if not self.store.access.can_administer(asset, actor):
            raise UnauthorizedError(f"{actor} may not change grants on asset {asset_id} (owner or administrator only)")

        v = Violations()
        check_identity(v, "target", target)
        if target == asset.owner:
            v.add("the owner's grant cannot be modified")
        if expires_at is not None and (isinstance(expires_at, bool) or not isinstance(expires_at, int) or expires_at < 0):
            v.add("expires_at must be a non-negative sequence number")
        self._check_active(v, asset)
        v.raise_if_any()

        self.store.access.grant(
            asset, target, read=read, write=write, admin=admin, expires_at=expires_at, actor=actor, now=now
        )
        self._advance(now)

        flags = "".join(c for c, on in (("r", read), ("w", write), ("a", admin)) if on) or "-"
        expiry = f" until {expires_at}" if expires_at is not None else ""
        detail = actions.clip_detail(f"Granted {flags} to {target}{expiry}")
        self.store.audit.record(asset_id, actions.ACCESS_GRANTED, detail, actor, now)
        logger.info("asset %d: %s granted %s to %s", asset_id, actor, flags, target)
        return True

    @operation
    def transfer_ownership(self, asset_id: int, new_owner: str, actor: str, now: int) -> bool:
        """
        Hand the asset to ``new_owner``, who receives a full non-expiring grant.

        The previous owner's grant is kept unless the access policy says
        otherwise.
        """
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        if actor != asset.owner:
            raise UnauthorizedError(f"only the owner may transfer asset {asset_id}")

        v = Violations()
        check_identity(v, "new_owner", new_owner)
        if new_owner == asset.owner:
            v.add("new owner is already the owner")
        self._check_active(v, asset)
        v.raise_if_any()

        previous = self.store.access.transfer(asset, new_owner, actor=actor, now=now)
        asset.last_modified = now
        self._advance(now)

        detail = actions.clip_detail(f"Ownership {previous} -> {new_owner}")
        self.store.audit.record(asset_id, actions.OWNERSHIP_TRANSFERRED, detail, actor, now)
        logger.info("asset %d transferred from %s to %s", asset_id, previous, new_owner)
        return True

    @operation
    def retire(self, asset_id: int, actor: str, now: int) -> bool:
        """Soft-delete: status becomes deleted, the record stays readable."""
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        if actor != asset.owner:
            raise UnauthorizedError(f"only the owner may retire asset {asset_id}")
        v = Violations()
        self._check_active(v, asset)
        v.raise_if_any()

        asset.status = STATUS_DELETED
        asset.last_modified = now
        self._advance(now)

        self.store.audit.record(asset_id, actions.ASSET_RETIRED, f"Retired '{asset.name}'", actor, now)
        logger.info("asset %d retired by %s", asset_id, actor)
        return True

    @operation
    def rate(self, asset_id: int, rating: int, actor: str, now: int) -> int:
        """
        Fold a 1..5 rating into the asset's running mean.

        Returns:
            The new (truncated) average rating
        """
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        if not self.store.analytics.has(asset_id):
            raise NotFoundError(f"no analytics for asset {asset_id}")
        v = validate_rating(rating)
        self._check_active(v, asset)
        v.raise_if_any()

        record = self.store.analytics.rate(asset_id, rating)
        self._advance(now)

        self.store.audit.record(
            asset_id, actions.ASSET_RATED, f"Rated {rating} (average {record.average_rating})", actor, now
        )
        logger.info("asset %d rated %d by %s", asset_id, rating, actor)
        return record.average_rating

    @operation
    def create_collaboration_session(
        self,
        asset_id: int,
        participants: Sequence[str],
        starts_at: int,
        ends_at: int,
        actor: str,
        now: int,
    ) -> int:
        """Schedule a collaboration session on an asset the actor can write."""
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        self._require_write(asset, actor, now)

        v = Violations()
        if isinstance(participants, str) or not participants:
            v.add("at least one participant is required")
        else:
            if len(participants) > MAX_PARTICIPANTS:
                v.over_capacity(f"no more than {MAX_PARTICIPANTS} participants are allowed")
            for p in participants:
                check_identity(v, "participant", p)
        check_sequence(v, starts_at)
        check_sequence(v, ends_at)
        if isinstance(starts_at, int) and isinstance(ends_at, int) and starts_at >= ends_at:
            v.add("session must start before it ends")
        self._check_active(v, asset)
        v.raise_if_any()

        store = self.store
        session_id = store.ids.next(SESSION_COUNTER)
        store.sessions.add(
            CollaborationSession(
                session_id=session_id,
                asset_id=asset_id,
                organizer=actor,
                participants=tuple(participants),
                starts_at=starts_at,
                ends_at=ends_at,
                created_at=now,
            )
        )
        store.analytics.record_collaboration(asset_id, now)
        self._advance(now)

        store.audit.record(
            asset_id,
            actions.SESSION_CREATED,
            f"Session {session_id} with {len(participants)} participants",
            actor,
            now,
        )
        logger.info("session %d created on asset %d by %s", session_id, asset_id, actor)
        return session_id

    @operation
    def subscribe(
        self,
        asset_id: int,
        notify_on_update: bool,
        notify_on_access: bool,
        actor: str,
        now: int,
    ) -> bool:
        """Record the actor's notification preferences for an asset."""
        self._check_call(actor, now)
        asset = self._require_asset(asset_id)
        v = Violations()
        self._check_active(v, asset)
        v.raise_if_any()

        self.store.subscriptions.upsert(
            Subscription(
                asset_id=asset_id,
                user=actor,
                notify_on_update=bool(notify_on_update),
                notify_on_access=bool(notify_on_access),
                subscribed_at=now,
            )
        )
        self._advance(now)

        self.store.audit.record(asset_id, actions.SUBSCRIPTION_UPDATED, "Subscription updated", actor, now)
        return True

    # -------------------------------------------------------------------------
    # Reads with analytics side effects
    # -------------------------------------------------------------------------

    @operation
    def read(self, asset_id: int, actor: str, now: int) -> AssetView:
        """
        Full view of an asset. Counts as a view.

        Grant expiry is evaluated at the later of ``now`` and the last
        committed sequence, so a stale ``now`` cannot revive an expired grant.

        Raises:
            NotFoundError: unknown asset
            ForbiddenError: no live read grant and not the owner
        """
        self._check_call(actor, now, mutating=False)
        now = self._clock(now)
        asset = self._require_asset(asset_id)
        self._require_read(asset, actor, now)
        analytics = self.store.analytics.record_view(asset_id, now)
        return AssetView.build(asset, analytics)

    @operation
    def record_download(self, asset_id: int, actor: str, now: int) -> int:
        """Count a download by a reader. Returns the new download count."""
        self._check_call(actor, now, mutating=False)
        now = self._clock(now)
        asset = self._require_asset(asset_id)
        self._require_read(asset, actor, now)
        return self.store.analytics.record_download(asset_id, now).downloads

    # -------------------------------------------------------------------------
    # Pure reads
    # -------------------------------------------------------------------------

    def has_write_access(self, asset_id: int, actor: str, now: int) -> bool:
        with self.store.lock:
            return self.store.access.has_write_access(self.store.asset(asset_id), actor, self._clock(now))

    def has_read_access(self, asset_id: int, actor: str, now: int) -> bool:
        with self.store.lock:
            return self.store.access.has_read_access(self.store.asset(asset_id), actor, self._clock(now))

    def get_access_status(self, asset_id: int, user: str, now: int) -> AccessStatus:
        with self.store.lock:
            asset = self._require_asset(asset_id)
            return self.store.access.status(asset, user, self._clock(now))

    def get_owner(self, asset_id: int) -> str:
        with self.store.lock:
            return self._require_asset(asset_id).owner

    def get_version_count(self, asset_id: int) -> int:
        with self.store.lock:
            return self._require_asset(asset_id).total_versions

    def get_version(self, asset_id: int, version: int, actor: str, now: int) -> VersionRecord:
        with self.store.lock:
            asset = self._require_asset(asset_id)
            self._require_read(asset, actor, self._clock(now))
            return self.store.versions.get(asset_id, version)

    def version_history(self, asset_id: int, actor: str, now: int) -> list[VersionRecord]:
        with self.store.lock:
            asset = self._require_asset(asset_id)
            self._require_read(asset, actor, self._clock(now))
            return self.store.versions.history(asset_id)

    def get_analytics(self, asset_id: int) -> AnalyticsRecord:
        with self.store.lock:
            self._require_asset(asset_id)
            return dataclasses.replace(self.store.analytics.get(asset_id))

    def audit_trail(self, asset_id: int) -> list[AuditEntry]:
        with self.store.lock:
            self._require_asset(asset_id)
            return self.store.audit.query(asset_id=asset_id)

    def get_profile(self, user: str) -> UserProfile:
        with self.store.lock:
            return dataclasses.replace(self.store.profiles.get(user))

    def assets_tagged(self, tag: str) -> list[int]:
        with self.store.lock:
            return self.store.categories.assets_tagged(tag)

    def get_session(self, session_id: int) -> CollaborationSession:
        with self.store.lock:
            return self.store.sessions.get(session_id)

    def get_system_statistics(self) -> SystemStatistics:
        with self.store.lock:
            store = self.store
            retired = sum(1 for a in store.assets.values() if not a.is_active)
            return SystemStatistics(
                total_assets=store.ids.current(ASSET_COUNTER),
                active_assets=len(store.assets) - retired,
                retired_assets=retired,
                total_versions=len(store.versions),
                total_audit_entries=len(store.audit),
                total_sessions=store.ids.current(SESSION_COUNTER),
                total_grants=len(store.access),
            )

    @property
    def last_sequence(self) -> int:
        return self.store.last_sequence
