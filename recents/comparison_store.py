"""
Comparison store - newest-first list of user groups compared together.

Groups are deduplicated by their set of normalized identities. Unlike the
recency store, repeating a comparison leaves the existing group where it is.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .models import MAX_RECENT, ComparisonGroup, EntityRef, RecentEntry, utc_now
from .normalize import identity_set
from .recent_store import Clock


class ComparisonStore:
    """In-memory comparison list. Not thread-safe; CacheManager serializes access."""

    def __init__(self, max_size: int = MAX_RECENT, clock: Clock = utc_now):
        self.max_size = max_size
        self._clock = clock
        self._groups: List[ComparisonGroup] = []

    def groups(self) -> Tuple[ComparisonGroup, ...]:
        return tuple(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def find(self, key: FrozenSet[str]) -> Optional[ComparisonGroup]:
        for group in self._groups:
            if group.key == key:
                return group
        return None

    def add(self, refs: Sequence[EntityRef]) -> Optional[ComparisonGroup]:
        """
        Record a comparison of ``refs``.

        Returns:
            The new group, or None when fewer than two refs were given or the
            same set of users is already stored
        """
        if len(refs) < 2:
            return None

        if self.find(identity_set(r.identity for r in refs)) is not None:
            return None

        members = tuple(r.ref if isinstance(r, RecentEntry) else r for r in refs)
        group = ComparisonGroup(members=members, observed_at=self._clock())
        self._groups = [group, *self._groups][: self.max_size]
        return group

    def replace(self, groups: Iterable[ComparisonGroup]) -> None:
        """Swap in groups loaded from storage, dropping set-equal repeats and overflow."""
        seen = set()
        kept: List[ComparisonGroup] = []
        for group in groups:
            if group.key in seen:
                continue
            seen.add(group.key)
            kept.append(group)
        self._groups = kept[: self.max_size]

    def clear(self) -> None:
        self._groups = []
