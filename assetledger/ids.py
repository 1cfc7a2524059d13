"""
Identity allocation.

Ids are plain monotonically increasing integers. Allocation happens under the
store lock together with the insert that consumes the id, so two operations can
never observe the same value.
"""

from __future__ import annotations

from dataclasses import dataclass


ASSET_COUNTER = "asset"
AUDIT_COUNTER = "audit"
SESSION_COUNTER = "session"

COUNTER_NAMES = (ASSET_COUNTER, AUDIT_COUNTER, SESSION_COUNTER)


@dataclass
class Counter:
    """A single never-decreasing counter. The first issued id is 1."""

    name: str
    value: int = 0

    def next(self) -> int:
        self.value += 1
        return self.value


class IdentityAllocator:
    """The three independent id counters (assets, audit entries, sessions)."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {name: Counter(name) for name in COUNTER_NAMES}

    def next(self, counter: str) -> int:
        try:
            return self._counters[counter].next()
        except KeyError:
            raise ValueError(f"Unknown counter: {counter}") from None

    def current(self, counter: str) -> int:
        """Highest id issued so far (0 when nothing has been issued)."""
        return self._counters[counter].value
