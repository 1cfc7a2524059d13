"""
Per-asset analytics and the running rating mean.

The rating average is an integer recomputed from (old average, old count, new
rating) at every step:

    new_average = (old_average * old_total + rating) // (old_total + 1)

Truncation happens at each step, so the result drifts away from the true mean
under repeated updates. That drift is part of the observable behaviour and is
kept as is.
"""

from __future__ import annotations

from typing import Iterator

from .errors import NotFoundError
from .models import AnalyticsRecord


def running_mean(old_average: int, old_total: int, rating: int) -> int:
    """One step of the truncating running mean."""
    return (old_average * old_total + rating) // (old_total + 1)


class AnalyticsBook:
    """Analytics records keyed by asset id. Mutated in place."""

    def __init__(self) -> None:
        self._records: dict[int, AnalyticsRecord] = {}

    def open(self, asset_id: int) -> AnalyticsRecord:
        record = AnalyticsRecord(asset_id=asset_id)
        self._records[asset_id] = record
        return record

    def get(self, asset_id: int) -> AnalyticsRecord:
        try:
            return self._records[asset_id]
        except KeyError:
            raise NotFoundError(f"no analytics for asset {asset_id}") from None

    def has(self, asset_id: int) -> bool:
        return asset_id in self._records

    def __iter__(self) -> Iterator[AnalyticsRecord]:
        return iter(self._records.values())

    # -------------------------------------------------------------------------
    # Side counters
    # -------------------------------------------------------------------------

    def record_view(self, asset_id: int, now: int) -> AnalyticsRecord:
        record = self.get(asset_id)
        record.views += 1
        record.last_access = now
        return record

    def record_download(self, asset_id: int, now: int) -> AnalyticsRecord:
        record = self.get(asset_id)
        record.downloads += 1
        record.last_access = now
        return record

    def record_collaboration(self, asset_id: int, now: int) -> AnalyticsRecord:
        record = self.get(asset_id)
        record.collaborations += 1
        record.last_access = now
        return record

    # -------------------------------------------------------------------------
    # Rating aggregation
    # -------------------------------------------------------------------------

    def rate(self, asset_id: int, rating: int) -> AnalyticsRecord:
        """Fold one rating into the running mean. Rating bounds are checked by the caller."""
        record = self.get(asset_id)
        record.average_rating = running_mean(record.average_rating, record.total_ratings, rating)
        record.total_ratings += 1
        return record
