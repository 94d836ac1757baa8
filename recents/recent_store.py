"""
Recency store - newest-first list of recently viewed users.

One entry per normalized identity; a repeat lookup replaces the old entry
and moves it to the front. Overflow drops the oldest entries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Tuple

from .models import MAX_RECENT, EntityRef, RecentEntry, utc_now
from .normalize import normalize_identity

Clock = Callable[[], datetime]


class RecentStore:
    """In-memory recency list. Not thread-safe; CacheManager serializes access."""

    def __init__(self, max_size: int = MAX_RECENT, clock: Clock = utc_now):
        self.max_size = max_size
        self._clock = clock
        self._entries: List[RecentEntry] = []

    def entries(self) -> Tuple[RecentEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, ref: EntityRef) -> RecentEntry:
        """Record a lookup of ``ref`` and move it to the front."""
        entry = RecentEntry.observe(ref, self._clock())
        kept = [e for e in self._entries if e.key != entry.key]
        self._entries = [entry, *kept][: self.max_size]
        return entry

    def remove(self, identity: str) -> bool:
        """Drop the entry matching ``identity`` (any casing). Returns True if one was removed."""
        key = normalize_identity(identity)
        kept = [e for e in self._entries if e.key != key]
        removed = len(kept) != len(self._entries)
        self._entries = kept
        return removed

    def replace(self, entries: Iterable[RecentEntry]) -> None:
        """
        Swap in entries loaded from storage.

        Stored order is kept; later duplicates of an identity and anything
        past capacity are dropped.
        """
        seen = set()
        kept: List[RecentEntry] = []
        for entry in entries:
            if entry.key in seen:
                continue
            seen.add(entry.key)
            kept.append(entry)
        self._entries = kept[: self.max_size]

    def clear(self) -> None:
        self._entries = []
