"""
The registry store: every counter and keyed collection in one object.

The store is passed to the registry explicitly rather than living in module
globals. Its re-entrant lock is the single serializing discipline: every public
registry operation runs inside ``with store.lock:`` so an id allocation and the
insert that consumes it are always observed together, and the audit append is
ordered after the mutation it describes.
"""

from __future__ import annotations

import threading

from .access import DEFAULT_ADMIN, AccessControlMatrix, AccessPolicy
from .analytics import AnalyticsBook
from .audit import AuditTrail
from .collab import CategoryDirectory, ProfileDirectory, SessionBook, SubscriptionBook
from .ids import AUDIT_COUNTER, IdentityAllocator
from .models import Asset
from .versions import VersionLedger


class RegistryStore:
    def __init__(self, *, admin: str = DEFAULT_ADMIN, policy: AccessPolicy | None = None):
        self.lock = threading.RLock()
        self.ids = IdentityAllocator()

        # Core maps
        self.assets: dict[int, Asset] = {}
        self.access = AccessControlMatrix(admin=admin, policy=policy)
        self.versions = VersionLedger()
        self.audit = AuditTrail(lambda: self.ids.next(AUDIT_COUNTER))
        self.analytics = AnalyticsBook()

        # Out-of-core collaborators
        self.sessions = SessionBook()
        self.subscriptions = SubscriptionBook()
        self.categories = CategoryDirectory()
        self.profiles = ProfileDirectory()

        # Highest sequence number committed by a mutation
        self.last_sequence = 0

    def asset(self, asset_id: int) -> Asset | None:
        return self.assets.get(asset_id)
