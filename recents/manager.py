"""
Cache manager for recently viewed and compared users.

Composes the recency and comparison stores with a PersistenceAdapter:
hydrates both stores once, persists the affected store after every
mutation, and answers reads from memory. No public method raises.
"""

import logging
import threading
from typing import Any, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from common.logger import LogContext

from .comparison_store import ComparisonStore
from .models import MAX_RECENT, ComparisonGroup, EntityRef, RecentEntry, utc_now
from .recent_store import Clock, RecentStore
from .storage import COMPARED_USERS_SLOT, RECENT_USERS_SLOT, PersistenceAdapter

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Session cache of recently viewed users and compared user groups.

    Provides:
    - add_recent_user / remove_recent_user
    - add_compared_pair
    - clear_all
    - list_recent_users / list_compared_groups
    - ready
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        max_entries: int = MAX_RECENT,
        clock: Clock = utc_now,
        hydrate: bool = True,
        session_id: str = "",
    ):
        """
        Initialize the cache manager.

        Args:
            adapter: Persistence adapter for the session's storage
            max_entries: Capacity of each store
            clock: Source of ``observed_at`` timestamps
            hydrate: Load from storage now; otherwise the first call loads
            session_id: Session the cache belongs to (logging only)
        """
        self.adapter = adapter
        self.session_id = session_id
        self._recent = RecentStore(max_entries, clock)
        self._compared = ComparisonStore(max_entries, clock)
        self._lock = threading.RLock()
        self._ready = False

        if hydrate:
            self.hydrate()

    def _log_context(self) -> LogContext:
        if self.session_id:
            return LogContext(logger, session_id=self.session_id)
        return LogContext(logger)

    def hydrate(self) -> None:
        """Load both stores from storage. Runs at most once."""
        with self._lock, self._log_context():
            if self._ready:
                return
            self._recent.replace(self.adapter.load(RECENT_USERS_SLOT, RecentEntry))
            self._compared.replace(self.adapter.load(COMPARED_USERS_SLOT, ComparisonGroup))
            self._ready = True
            logger.debug(
                f"[recents] Hydrated {len(self._recent)} recent users, "
                f"{len(self._compared)} comparisons",
            )

    def ready(self) -> bool:
        """True once the stores reflect session storage (or were cleared)."""
        return self._ready

    def _persist_recent(self) -> None:
        self.adapter.save(RECENT_USERS_SLOT, self._recent.entries())

    def _persist_compared(self) -> None:
        self.adapter.save(COMPARED_USERS_SLOT, self._compared.groups())

    def add_recent_user(self, ref: EntityRef) -> RecentEntry:
        """Record a lookup of ``ref``, promoting it to the front."""
        with self._lock, self._log_context():
            self.hydrate()
            entry = self._recent.add(ref)
            self._persist_recent()
            logger.debug(f"[recents] Recent user: {entry.identity}")
            return entry

    def add_compared_pair(self, refs: Sequence[EntityRef]) -> Optional[ComparisonGroup]:
        """
        Record that ``refs`` were compared together.

        Returns:
            The stored group, or None when the call was a no-op (fewer than
            two users, or the same set of users is already stored)
        """
        with self._lock, self._log_context():
            self.hydrate()
            group = self._compared.add(refs)
            if group is None:
                return None
            self._persist_compared()
            logger.debug(
                f"[recents] Comparison: {', '.join(m.identity for m in group.members)}",
            )
            return group

    def remove_recent_user(self, identity: str) -> bool:
        """Forget ``identity`` (any casing). Returns True if an entry was removed."""
        with self._lock, self._log_context():
            self.hydrate()
            removed = self._recent.remove(identity)
            self._persist_recent()
            return removed

    def clear_all(self) -> None:
        """Empty both stores and their storage slots."""
        with self._lock, self._log_context():
            self._recent.clear()
            self._compared.clear()
            self._ready = True
            self.adapter.clear(RECENT_USERS_SLOT)
            self.adapter.clear(COMPARED_USERS_SLOT)
            logger.debug("[recents] Cleared recent users and comparisons")

    def list_recent_users(self) -> Tuple[RecentEntry, ...]:
        with self._lock:
            self.hydrate()
            return self._recent.entries()

    def list_compared_groups(self) -> Tuple[ComparisonGroup, ...]:
        with self._lock:
            self.hydrate()
            return self._compared.groups()


def remember_profile(
    manager: CacheManager,
    profile: Optional[Mapping[str, Any]],
) -> Optional[RecentEntry]:
    """
    Feed an authenticated user's profile into the recents.

    Args:
        manager: Cache to update
        profile: Profile from the identity provider (``login``, ``avatar_url``,
            optional ``name``; other keys ignored), or None when not authenticated

    Returns:
        The new entry, or None if there was no usable profile
    """
    if profile is None:
        return None
    try:
        ref = EntityRef.model_validate(profile)
    except ValidationError as e:
        logger.warning(f"[recents] Ignoring unusable profile: {e.error_count()} error(s)")
        return None
    return manager.add_recent_user(ref)
