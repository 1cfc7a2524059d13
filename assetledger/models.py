"""
Records held by the registry store.

Asset and AnalyticsRecord are mutated in place by the registry (single writer
path). VersionRecord and AuditEntry are frozen: once appended they never change.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

# Lifecycle states
STATUS_ACTIVE = "active"
STATUS_DELETED = "deleted"


@dataclass
class Asset:
    """Canonical record for one asset."""

    asset_id: int
    name: str
    owner: str
    size: int
    created_at: int  # sequence number
    description: str
    tags: list[str]
    encrypted: bool
    key_hash: str  # "" or 64 chars
    content_hash: str  # 64 chars
    metadata: str = ""
    current_version: int = 1
    total_versions: int = 1
    last_modified: int = 0
    status: str = STATUS_ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tags"] = list(self.tags)
        return data


@dataclass(frozen=True)
class AccessGrant:
    """Capability set for one (asset, user) pair."""

    asset_id: int
    user: str
    read: bool
    write: bool
    admin: bool
    granted_by: str
    granted_at: int
    expires_at: int | None = None  # None = never expires

    def is_live(self, now: int) -> bool:
        """A grant whose expiry is at or before ``now`` counts as absent."""
        return self.expires_at is None or self.expires_at > now

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VersionRecord:
    """Immutable snapshot of one content revision."""

    asset_id: int
    version: int
    description: str
    editor: str
    created_at: int
    size: int
    content_hash: str
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of one state-changing action."""

    audit_id: int
    asset_id: int
    action: str
    actor: str
    sequence: int
    detail: str
    context_hash: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnalyticsRecord:
    """Per-asset usage counters and the running rating."""

    asset_id: int
    views: int = 0
    downloads: int = 0
    collaborations: int = 0
    last_access: int = 0
    average_rating: int = 0
    total_ratings: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# -----------------------------------------------------------------------------
# Read-side views
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class AssetView:
    """Denormalized view returned by ``Registry.read``."""

    asset_id: int
    name: str
    owner: str
    size: int
    created_at: int
    description: str
    tags: tuple[str, ...]
    encrypted: bool
    key_hash: str
    content_hash: str
    metadata: str
    current_version: int
    total_versions: int
    last_modified: int
    status: str
    views: int
    downloads: int
    average_rating: int
    total_ratings: int

    @classmethod
    def build(cls, asset: Asset, analytics: AnalyticsRecord) -> AssetView:
        return cls(
            asset_id=asset.asset_id,
            name=asset.name,
            owner=asset.owner,
            size=asset.size,
            created_at=asset.created_at,
            description=asset.description,
            tags=tuple(asset.tags),
            encrypted=asset.encrypted,
            key_hash=asset.key_hash,
            content_hash=asset.content_hash,
            metadata=asset.metadata,
            current_version=asset.current_version,
            total_versions=asset.total_versions,
            last_modified=asset.last_modified,
            status=asset.status,
            views=analytics.views,
            downloads=analytics.downloads,
            average_rating=analytics.average_rating,
            total_ratings=analytics.total_ratings,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tags"] = list(self.tags)
        return data


@dataclass(frozen=True)
class AccessStatus:
    """Effective capabilities of one user on one asset."""

    read: bool
    write: bool
    admin: bool
    is_owner: bool
    expires_at: int | None
    can_view: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SystemStatistics:
    total_assets: int
    active_assets: int
    retired_assets: int
    total_versions: int
    total_audit_entries: int
    total_sessions: int
    total_grants: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
