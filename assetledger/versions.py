"""
Append-only version ledger.

INVARIANT: records are keyed by (asset_id, version) and are never replaced or
removed. The only write operation is append().
"""

from __future__ import annotations

from .errors import DuplicateEntryError, NotFoundError
from .models import VersionRecord


class VersionLedger:
    """Insert-only store of version snapshots."""

    def __init__(self) -> None:
        self._records: dict[tuple[int, int], VersionRecord] = {}
        self._latest: dict[int, int] = {}  # asset_id -> highest version

    def append(self, record: VersionRecord) -> None:
        """
        Append a version record.

        Versions for an asset must arrive as 1, 2, 3, ... with no gaps.

        Raises:
            DuplicateEntryError: (asset_id, version) already written, or the
                version does not directly follow the latest one
        """
        key = (record.asset_id, record.version)
        if key in self._records:
            raise DuplicateEntryError(f"version {record.version} of asset {record.asset_id} already exists")
        expected = self._latest.get(record.asset_id, 0) + 1
        if record.version != expected:
            raise DuplicateEntryError(
                f"asset {record.asset_id} expects version {expected}, got {record.version}"
            )
        self._records[key] = record
        self._latest[record.asset_id] = record.version

    def get(self, asset_id: int, version: int) -> VersionRecord:
        try:
            return self._records[(asset_id, version)]
        except KeyError:
            raise NotFoundError(f"asset {asset_id} has no version {version}") from None

    def latest(self, asset_id: int) -> int:
        """Highest version written for an asset (0 if none)."""
        return self._latest.get(asset_id, 0)

    def history(self, asset_id: int) -> list[VersionRecord]:
        """All versions of an asset, oldest first."""
        return [self._records[(asset_id, v)] for v in range(1, self.latest(asset_id) + 1)]

    def __len__(self) -> int:
        return len(self._records)
