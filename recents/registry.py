"""
Per-session cache registry.

Maps a session id to its CacheManager, creating caches on first use with
storage from the configured backend. Bounded; the least recently used
session is dropped from memory when the limit is reached.
"""

import logging
import re
import threading
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Optional

from common.logger import LogContext

from .manager import CacheManager
from .models import MAX_RECENT, utc_now
from .recent_store import Clock
from .storage import FileSessionStorage, InMemorySessionStorage, PersistenceAdapter, SessionStorage

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

StorageFactory = Callable[[str], SessionStorage]


def is_valid_session_id(session_id: Optional[str]) -> bool:
    return bool(session_id) and _SESSION_ID_RE.match(session_id) is not None


def new_session_id() -> str:
    return uuid.uuid4().hex


def storage_factory_for(backend: str, storage_dir: str = "", quota_bytes: int = 0) -> StorageFactory:
    """
    Build a per-session storage factory.

    Args:
        backend: "memory" or "file"
        storage_dir: Root directory for the file backend
        quota_bytes: Per-session quota for the memory backend (0 = unlimited)
    """
    backend = backend.strip().lower()
    if backend == "memory":
        return lambda session_id: InMemorySessionStorage(quota_bytes=quota_bytes)
    if backend == "file":
        root = Path(storage_dir or "data/sessions")
        return lambda session_id: FileSessionStorage(root / session_id)
    raise ValueError(f"Unknown recents storage backend: {backend!r}")


class SessionCacheRegistry:
    """Thread-safe registry of CacheManager instances keyed by session id."""

    def __init__(
        self,
        storage_factory: StorageFactory,
        max_sessions: int = 1000,
        max_entries: int = MAX_RECENT,
        clock: Clock = utc_now,
    ):
        self.storage_factory = storage_factory
        self.max_sessions = max_sessions
        self.max_entries = max_entries
        self._clock = clock
        self._caches: "OrderedDict[str, CacheManager]" = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "SessionCacheRegistry":
        factory = storage_factory_for(
            settings.recents_storage_backend,
            storage_dir=settings.recents_storage_dir,
            quota_bytes=settings.recents_storage_quota_bytes,
        )
        return cls(
            factory,
            max_sessions=settings.recents_max_sessions,
            max_entries=settings.recents_max_entries,
        )

    def _build(self, session_id: str, hydrate: bool = True) -> CacheManager:
        return CacheManager(
            PersistenceAdapter(self.storage_factory(session_id)),
            max_entries=self.max_entries,
            clock=self._clock,
            hydrate=hydrate,
            session_id=session_id,
        )

    def get(self, session_id: str) -> CacheManager:
        """Return the session's cache, creating and hydrating it on first use."""
        with self._lock:
            cache = self._caches.get(session_id)
            if cache is not None:
                self._caches.move_to_end(session_id)
                return cache

            cache = self._build(session_id)
            self._caches[session_id] = cache
            with LogContext(logger, session_id=session_id):
                logger.info(f"[recents] Session started: {session_id}")

            while len(self._caches) > self.max_sessions:
                evicted, _ = self._caches.popitem(last=False)
                with LogContext(logger, session_id=evicted):
                    logger.info(f"[recents] Session evicted: {evicted}")
            return cache

    def end_session(self, session_id: str) -> bool:
        """
        Clear the session's cache and storage and forget it.

        Held under the registry lock throughout, so a concurrent ``get`` waits
        and then starts from empty storage.

        Returns:
            True if the session was live in this registry
        """
        with self._lock, LogContext(logger, session_id=session_id):
            cache = self._caches.pop(session_id, None)
            live = cache is not None
            if cache is None:
                # Evicted or never loaded here; its storage may still hold data
                cache = self._build(session_id, hydrate=False)
            cache.clear_all()
            cache.adapter.discard()
            logger.info(f"[recents] Session ended: {session_id}")
            return live

    def __len__(self) -> int:
        return len(self._caches)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._caches
