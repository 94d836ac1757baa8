"""
Recents - session cache of recently viewed and compared users.

Features:
- Newest-first recent users, one entry per case-insensitive login
- Newest-first comparisons, deduplicated by member set
- Bounded to 10 entries each
- Session-scoped persistence that never fails the caller
"""

from .errors import MalformedPersistedData, PersistenceError, PersistenceUnavailable
from .manager import CacheManager, remember_profile
from .models import MAX_RECENT, ComparisonGroup, EntityRef, RecentEntry
from .normalize import normalize_identity
from .registry import SessionCacheRegistry, is_valid_session_id, new_session_id
from .storage import (
    COMPARED_USERS_SLOT,
    RECENT_USERS_SLOT,
    FileSessionStorage,
    InMemorySessionStorage,
    PersistenceAdapter,
    SessionStorage,
    sweep_session_dirs,
)

__all__ = [
    "MAX_RECENT",
    # Model
    "EntityRef",
    "RecentEntry",
    "ComparisonGroup",
    "normalize_identity",
    # Persistence
    "SessionStorage",
    "InMemorySessionStorage",
    "FileSessionStorage",
    "PersistenceAdapter",
    "RECENT_USERS_SLOT",
    "COMPARED_USERS_SLOT",
    "sweep_session_dirs",
    "PersistenceError",
    "PersistenceUnavailable",
    "MalformedPersistedData",
    # Cache
    "CacheManager",
    "remember_profile",
    "SessionCacheRegistry",
    "is_valid_session_id",
    "new_session_id",
]
