"""
Append-only operation journal.

The journal stands in for the host ledger: every successful state-changing
registry call is written as one JSON line, after the call has committed. The
in-memory registry is rebuilt by replaying the journal in order; replay is
deterministic because id allocation is.

A call that appended an audit entry also records that entry's id and context
hash. The audit trail is rebuilt on replay, so those recorded hashes are what
``verify_audit()`` checks the rebuilt chain against.

INVARIANT: this module NEVER modifies existing journal lines.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from .config import RegistryConfig
from .audit import AuditTrail
from .errors import RegistryError
from .models import AuditEntry
from .registry import JOURNALED_OPERATIONS, Registry

logger = logging.getLogger(__name__)

JOURNAL_FILENAME = "journal.jsonl"


class JournalError(ValueError):
    """The journal cannot be replayed."""


@dataclass(frozen=True)
class JournalEntry:
    op: str
    args: dict[str, Any] = field(default_factory=dict)
    audit_id: int | None = None
    audit_hash: str | None = None

    @property
    def actor(self) -> str | None:
        return self.args.get("actor")

    @property
    def now(self) -> int | None:
        return self.args.get("now")

    def to_json(self) -> str:
        """Serialize to JSON string (single line)."""
        data: dict[str, Any] = {"op": self.op, "args": self.args}
        if self.audit_id is not None:
            data["audit"] = {"id": self.audit_id, "hash": self.audit_hash}
        return json.dumps(data, separators=(",", ":"), sort_keys=True)

    @classmethod
    def from_json(cls, line: str) -> JournalEntry:
        data = json.loads(line)
        audit = data.get("audit") or {}
        return cls(
            op=data["op"],
            args=data.get("args", {}),
            audit_id=audit.get("id"),
            audit_hash=audit.get("hash"),
        )


class OperationJournal:
    """JSON Lines journal at ``<data_dir>/journal.jsonl``."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.journal_path = data_dir / JOURNAL_FILENAME

    def _ensure_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def append(self, entry: JournalEntry) -> None:
        """Append one entry. This is the only write operation."""
        self._ensure_dir()
        with self.journal_path.open("a", encoding="utf-8") as f:
            f.write(entry.to_json() + "\n")

    def record(self, op: str, call: dict[str, Any], entry: AuditEntry | None = None) -> None:
        """Commit hook: journal a successful registry call and the audit entry it appended."""
        self.append(JournalEntry(
            op=op,
            args=dict(call),
            audit_id=entry.audit_id if entry else None,
            audit_hash=entry.context_hash if entry else None,
        ))

    def iter_entries(self) -> Iterator[JournalEntry]:
        """Entries in append order."""
        if not self.journal_path.exists():
            return
        with self.journal_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield JournalEntry.from_json(line)

    def count(self) -> int:
        return sum(1 for _ in self.iter_entries())

    def verify_audit(self, trail: AuditTrail) -> int | None:
        """
        Compare recorded audit hashes with a trail rebuilt from this journal.

        Returns:
            The audit id of the first recorded entry that is missing from the
            trail or whose context hash differs, or None if all match.
        """
        for entry in self.iter_entries():
            if entry.audit_id is None:
                continue
            rebuilt = trail.get(entry.audit_id)
            if rebuilt is None or rebuilt.context_hash != entry.audit_hash:
                return entry.audit_id
        return None


def replay(registry: Registry, entries: Iterator[JournalEntry] | list[JournalEntry]) -> int:
    """
    Re-apply journal entries to a registry.

    Returns:
        Number of entries applied

    Raises:
        JournalError: unknown operation, or an entry the registry now rejects
    """
    applied = 0
    for lineno, entry in enumerate(entries, start=1):
        if entry.op not in JOURNALED_OPERATIONS:
            raise JournalError(f"journal entry {lineno}: unknown operation {entry.op!r}")
        try:
            getattr(registry, entry.op)(**entry.args)
        except RegistryError as e:
            raise JournalError(f"journal entry {lineno} ({entry.op}) no longer applies: {e.message}") from e
        except TypeError as e:
            raise JournalError(f"journal entry {lineno} ({entry.op}) has bad arguments: {e}") from e
        applied += 1
    return applied


def open_registry(config: RegistryConfig) -> tuple[Registry, OperationJournal]:
    """
    Build a registry from the journal in ``config.data_dir`` and attach the
    journal so new calls are recorded.
    """
    registry = Registry.create(admin=config.admin, policy=config.policy)
    journal = OperationJournal(config.data_dir)
    applied = replay(registry, journal.iter_entries())
    logger.debug("replayed %d journal entries from %s", applied, journal.journal_path)
    registry.add_commit_hook(journal.record)
    return registry, journal
