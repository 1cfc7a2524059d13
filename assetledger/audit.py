"""
Append-only audit trail.

One entry is appended as the last step of every state-changing operation.
Recording never fails: malformed action or detail strings are replaced by
sentinels instead of being rejected, so a bad audit string cannot block the
operation it describes.

Each entry's context hash chains to the previous entry:

    context_hash = sha256(prev_hash + canonical_json(entry fields))

so the order of the trail can be verified after the fact.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Callable, Iterator, Literal

from .models import AuditEntry
from .validation import MAX_METADATA_LENGTH

logger = logging.getLogger(__name__)

MAX_ACTION_LENGTH = 32
MAX_DETAIL_LENGTH = MAX_METADATA_LENGTH

UNKNOWN_ACTION = "UNKNOWN"
NO_DETAILS = "No details provided"

GENESIS_HASH = "0" * 64

# Action tags
ASSET_REGISTERED = "asset.registered"
VERSION_CREATED = "version.created"
METADATA_UPDATED = "metadata.updated"
ACCESS_GRANTED = "access.granted"
OWNERSHIP_TRANSFERRED = "ownership.transferred"
ASSET_RETIRED = "asset.retired"
ASSET_RATED = "asset.rated"
SESSION_CREATED = "session.created"
SUBSCRIPTION_UPDATED = "subscription.updated"


def coerce_action(action: Any) -> str:
    if not isinstance(action, str) or not action or len(action) > MAX_ACTION_LENGTH:
        return UNKNOWN_ACTION
    return action


def coerce_detail(detail: Any) -> str:
    if not isinstance(detail, str) or not detail or len(detail) > MAX_DETAIL_LENGTH:
        return NO_DETAILS
    return detail


def clip_detail(detail: str) -> str:
    """Truncate a composed detail to MAX_DETAIL_LENGTH, ending with an ellipsis."""
    if len(detail) <= MAX_DETAIL_LENGTH:
        return detail
    return detail[: MAX_DETAIL_LENGTH - 1] + "…"


def compute_context_hash(prev_hash: str, fields: dict[str, Any]) -> str:
    canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256((prev_hash + canonical).encode("utf-8")).hexdigest()


def _hashed_fields(entry_id: int, asset_id: int, action: str, actor: str, sequence: int, detail: str) -> dict[str, Any]:
    return {
        "audit_id": entry_id,
        "asset_id": asset_id,
        "action": action,
        "actor": actor,
        "sequence": sequence,
        "detail": detail,
    }


class AuditTrail:
    """
    Globally ordered, append-only log of state-changing actions.

    INVARIANT: entries are never modified or removed. Audit ids come from the
    allocator passed in, so the trail order is the total order of mutations.
    """

    def __init__(self, allocate: Callable[[], int]):
        self._allocate = allocate
        self._entries: list[AuditEntry] = []
        self._by_asset: dict[int, list[int]] = {}

    def record(self, asset_id: int, action: str, detail: str, actor: str, now: int) -> AuditEntry:
        action = coerce_action(action)
        detail = coerce_detail(detail)
        audit_id = self._allocate()
        prev_hash = self._entries[-1].context_hash if self._entries else GENESIS_HASH
        entry = AuditEntry(
            audit_id=audit_id,
            asset_id=asset_id,
            action=action,
            actor=actor,
            sequence=now,
            detail=detail,
            context_hash=compute_context_hash(
                prev_hash, _hashed_fields(audit_id, asset_id, action, actor, now, detail)
            ),
        )
        self._by_asset.setdefault(asset_id, []).append(len(self._entries))
        self._entries.append(entry)
        logger.debug("audit #%d %s asset=%d actor=%s", audit_id, action, asset_id, actor)
        return entry

    def __iter__(self) -> Iterator[AuditEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, audit_id: int) -> AuditEntry | None:
        # Audit ids are dense and start at 1
        if isinstance(audit_id, bool) or not isinstance(audit_id, int) or not 1 <= audit_id <= len(self._entries):
            return None
        return self._entries[audit_id - 1]

    def last(self) -> AuditEntry | None:
        return self._entries[-1] if self._entries else None

    def query(
        self,
        *,
        asset_id: int | None = None,
        actor: str | None = None,
        action: str | None = None,
        since: int | None = None,
        until: int | None = None,
        where: Callable[[AuditEntry], bool] | None = None,
        limit: int | None = None,
        order: Literal["asc", "desc"] = "asc",
    ) -> list[AuditEntry]:
        """
        Query entries with composable filters.

        Args:
            asset_id: Filter by asset
            actor: Filter by actor
            action: Filter by action tag
            since: Entries at or after this sequence number
            until: Entries at or before this sequence number
            where: Custom predicate
            limit: Maximum number of entries (applied in the requested order)
            order: "asc" = append order, "desc" = newest first

        Returns:
            Matching entries
        """
        if asset_id is not None:
            candidates = [self._entries[i] for i in self._by_asset.get(asset_id, [])]
        else:
            candidates = list(self._entries)

        if order == "desc":
            candidates.reverse()

        results: list[AuditEntry] = []
        for entry in candidates:
            if actor is not None and entry.actor != actor:
                continue
            if action is not None and entry.action != action:
                continue
            if since is not None and entry.sequence < since:
                continue
            if until is not None and entry.sequence > until:
                continue
            if where is not None and not where(entry):
                continue
            results.append(entry)
            if limit is not None and len(results) >= limit:
                break
        return results

    def verify(self) -> int | None:
        """
        Recompute the hash chain.

        Returns:
            The audit id of the first entry whose hash does not match, or None
            if the whole chain is intact.
        """
        prev_hash = GENESIS_HASH
        for entry in self._entries:
            expected = compute_context_hash(
                prev_hash,
                _hashed_fields(entry.audit_id, entry.asset_id, entry.action, entry.actor, entry.sequence, entry.detail),
            )
            if expected != entry.context_hash:
                return entry.audit_id
            prev_hash = entry.context_hash
        return None


def format_audit_entry(entry: AuditEntry) -> str:
    """Format an audit entry for human-readable display."""
    return "\n".join([
        f"[#{entry.audit_id} @ {entry.sequence}] {entry.action} asset={entry.asset_id}",
        f"  actor: {entry.actor}",
        f"  detail: {entry.detail}",
        f"  hash: {entry.context_hash[:16]}â¦",
    ])
