"""
Access control matrix.

Grants are keyed by (asset_id, user). Effective capabilities are computed fresh
on every call by ``capabilities()``, a pure function of the asset, the stored
grant, the actor and the current sequence number. Expired grants are never
purged; they are treated as absent at evaluation time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from .errors import AuthorizationError, NotFoundError
from .models import AccessGrant, AccessStatus, Asset

logger = logging.getLogger(__name__)

DEFAULT_ADMIN = "system:admin"


@dataclass(frozen=True)
class AccessPolicy:
    """
    Behavioural switches for the two ambiguous access rules.

    enforce_expiry: expired grants confer nothing on any path. When False,
        write checks ignore expiry (expiry is only recorded and reported).
    revoke_previous_owner: ownership transfer drops the previous owner's
        grant. When False, it persists as an ordinary grant.
    """

    enforce_expiry: bool = True
    revoke_previous_owner: bool = False


def capabilities(
    asset: Asset | None,
    grant: AccessGrant | None,
    actor: str,
    now: int,
    *,
    enforce_expiry: bool = True,
) -> AccessStatus:
    """Combine ownership and the stored grant into an effective capability set."""
    if asset is None:
        return AccessStatus(read=False, write=False, admin=False, is_owner=False, expires_at=None, can_view=False)

    is_owner = asset.owner == actor
    live = grant is not None and grant.is_live(now)

    read = bool(grant and live and grant.read)
    admin = bool(grant and live and grant.admin)
    if enforce_expiry:
        write = bool(grant and live and grant.write)
    else:
        write = bool(grant and grant.write)

    return AccessStatus(
        read=read,
        write=write,
        admin=admin,
        is_owner=is_owner,
        expires_at=grant.expires_at if grant else None,
        can_view=read or is_owner,
    )


class AccessControlMatrix:
    """Per-(asset, user) grant table."""

    def __init__(self, admin: str = DEFAULT_ADMIN, policy: AccessPolicy | None = None):
        self.admin = admin
        self.policy = policy or AccessPolicy()
        self._grants: dict[tuple[int, str], AccessGrant] = {}

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def lookup(self, asset_id: int, user: str) -> AccessGrant | None:
        """Stored grant, live or not."""
        return self._grants.get((asset_id, user))

    def grants_for(self, asset_id: int) -> list[AccessGrant]:
        return [g for (aid, _), g in self._grants.items() if aid == asset_id]

    def __iter__(self) -> Iterator[AccessGrant]:
        return iter(self._grants.values())

    def __len__(self) -> int:
        return len(self._grants)

    def status(self, asset: Asset | None, actor: str, now: int) -> AccessStatus:
        grant = self.lookup(asset.asset_id, actor) if asset is not None else None
        return capabilities(asset, grant, actor, now, enforce_expiry=self.policy.enforce_expiry)

    def has_write_access(self, asset: Asset | None, actor: str, now: int) -> bool:
        if asset is None:
            return False
        caps = self.status(asset, actor, now)
        return caps.is_owner or caps.write

    def has_read_access(self, asset: Asset | None, actor: str, now: int) -> bool:
        if asset is None:
            return False
        return self.status(asset, actor, now).can_view

    def can_administer(self, asset: Asset, actor: str) -> bool:
        """Only the owner or the system administrator may change grants."""
        return actor == asset.owner or actor == self.admin

    # -------------------------------------------------------------------------
    # Mutations (callers hold the store lock)
    # -------------------------------------------------------------------------

    def grant(
        self,
        asset: Asset | None,
        target: str,
        *,
        read: bool,
        write: bool,
        admin: bool,
        expires_at: int | None,
        actor: str,
        now: int,
    ) -> AccessGrant:
        """
        Create or replace the grant for (asset, target).

        Raises:
            NotFoundError: asset does not exist
            AuthorizationError: actor is neither owner nor system administrator
        """
        if asset is None:
            raise NotFoundError("Unknown asset")
        if not self.can_administer(asset, actor):
            raise AuthorizationError(
                f"{actor} may not change grants on asset {asset.asset_id} (owner or administrator only)"
            )
        return self._install(asset.asset_id, target, read=read, write=write, admin=admin,
                             expires_at=expires_at, granted_by=actor, now=now)

    def install_owner(self, asset_id: int, owner: str, *, granted_by: str, now: int) -> AccessGrant:
        """Full, non-expiring grant for an owner."""
        return self._install(asset_id, owner, read=True, write=True, admin=True,
                             expires_at=None, granted_by=granted_by, now=now)

    def transfer(self, asset: Asset | None, new_owner: str, *, actor: str, now: int) -> str:
        """
        Reassign ownership. Returns the previous owner.

        Raises:
            NotFoundError: asset does not exist
            AuthorizationError: actor is not the current owner
        """
        if asset is None:
            raise NotFoundError("Unknown asset")
        if actor != asset.owner:
            raise AuthorizationError(f"only the owner may transfer asset {asset.asset_id}")

        previous = asset.owner
        asset.owner = new_owner
        self.install_owner(asset.asset_id, new_owner, granted_by=actor, now=now)
        if self.policy.revoke_previous_owner and previous != new_owner:
            self._grants.pop((asset.asset_id, previous), None)
            logger.debug("revoked previous owner %s on asset %d", previous, asset.asset_id)
        return previous

    def _install(
        self,
        asset_id: int,
        user: str,
        *,
        read: bool,
        write: bool,
        admin: bool,
        expires_at: int | None,
        granted_by: str,
        now: int,
    ) -> AccessGrant:
        grant = AccessGrant(
            asset_id=asset_id,
            user=user,
            read=bool(read),
            write=bool(write),
            admin=bool(admin),
            granted_by=granted_by,
            granted_at=now,
            expires_at=expires_at,
        )
        self._grants[(asset_id, user)] = grant
        return grant
