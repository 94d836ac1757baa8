"""
Session-scoped persistence for the recents cache.

``SessionStorage`` is the raw key/value engine (a browser's sessionStorage,
a dict, a directory). ``PersistenceAdapter`` sits on top of it, encodes and
validates the slot payloads, and never lets a storage failure reach callers.
"""

from __future__ import annotations

import json
import logging
import shutil
import threading
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .errors import MalformedPersistedData, PersistenceError, PersistenceUnavailable

logger = logging.getLogger(__name__)

RECENT_USERS_SLOT = "recent_users"
COMPARED_USERS_SLOT = "compared_users"

M = TypeVar("M", bound=BaseModel)


class SessionStorage(ABC):
    """Abstract key/value storage that lives as long as one session."""

    @abstractmethod
    def get_item(self, slot: str) -> Optional[str]:
        """Return the raw payload stored under ``slot``, or None."""
        pass

    @abstractmethod
    def set_item(self, slot: str, value: str) -> None:
        """Store ``value`` under ``slot``, replacing any previous payload."""
        pass

    @abstractmethod
    def remove_item(self, slot: str) -> None:
        """Remove ``slot``; removing a missing slot is not an error."""
        pass

    def discard(self) -> None:
        """Release whatever the storage holds once its session has ended."""
        pass


class InMemorySessionStorage(SessionStorage):
    """
    Process-local session storage.

    ``quota_bytes`` mimics the per-origin limit of a browser's sessionStorage:
    a write that would push the total size past it fails with
    PersistenceUnavailable. 0 disables the quota.
    """

    def __init__(self, quota_bytes: int = 0):
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _size(self, slot: str, value: str) -> int:
        return len(slot.encode("utf-8")) + len(value.encode("utf-8"))

    def get_item(self, slot: str) -> Optional[str]:
        with self._lock:
            return self._items.get(slot)

    def set_item(self, slot: str, value: str) -> None:
        with self._lock:
            if self.quota_bytes:
                used = sum(self._size(k, v) for k, v in self._items.items() if k != slot)
                if used + self._size(slot, value) > self.quota_bytes:
                    raise PersistenceUnavailable(
                        f"quota of {self.quota_bytes} bytes exceeded", slot=slot
                    )
            self._items[slot] = value

    def remove_item(self, slot: str) -> None:
        with self._lock:
            self._items.pop(slot, None)


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".{uuid.uuid4().hex}.tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


class FileSessionStorage(SessionStorage):
    """Session storage backed by a directory, one ``<slot>.json`` file per slot."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, slot: str) -> Path:
        return self.root / f"{slot}.json"

    def get_item(self, slot: str) -> Optional[str]:
        path = self.path_for(slot)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceUnavailable(f"cannot read {path}: {e}", slot=slot) from e

    def set_item(self, slot: str, value: str) -> None:
        path = self.path_for(slot)
        try:
            _atomic_write_text(path, value)
        except OSError as e:
            raise PersistenceUnavailable(f"cannot write {path}: {e}", slot=slot) from e

    def remove_item(self, slot: str) -> None:
        path = self.path_for(slot)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceUnavailable(f"cannot remove {path}: {e}", slot=slot) from e

    def discard(self) -> None:
        """Remove the session directory. Only an empty directory is removed."""
        try:
            self.root.rmdir()
        except FileNotFoundError:
            return
        except OSError as e:
            raise PersistenceUnavailable(f"cannot remove {self.root}: {e}") from e


def sweep_session_dirs(root: Union[str, Path], max_age_seconds: float, now: Optional[float] = None) -> int:
    """
    Delete session directories under ``root`` untouched for ``max_age_seconds``.

    Sessions whose browser went away never call ``end_session``; this reclaims
    their directories. Age is taken from the newest mtime of the directory
    and its slot files.

    Returns:
        Number of directories removed
    """
    root = Path(root)
    if max_age_seconds <= 0 or not root.is_dir():
        return 0

    cutoff = (time.time() if now is None else now) - max_age_seconds
    removed = 0
    for session_dir in root.iterdir():
        if not session_dir.is_dir():
            continue
        try:
            mtimes = [session_dir.stat().st_mtime]
            mtimes.extend(p.stat().st_mtime for p in session_dir.iterdir())
            if max(mtimes) >= cutoff:
                continue
            shutil.rmtree(session_dir)
            removed += 1
        except OSError as e:
            logger.warning(f"[recents] Failed to sweep session dir {session_dir.name}: {e}")

    if removed:
        logger.info(f"[recents] Swept {removed} abandoned session dir(s) from {root}")
    return removed


class PersistenceAdapter:
    """
    Best-effort load/save/clear of named slots holding JSON lists.

    Every failure is logged at WARNING and turned into a neutral result:
    ``load`` returns an empty list, ``save``, ``clear`` and ``discard`` return False.
    """

    def __init__(self, storage: SessionStorage):
        self.storage = storage

    def load(self, slot: str, model: Type[M]) -> List[M]:
        """
        Read and validate the list stored under ``slot``.

        Args:
            slot: Slot name
            model: Pydantic model every list item must validate against

        Returns:
            Decoded items in stored order; empty if the slot is missing,
            unreadable or malformed
        """
        try:
            raw = self.storage.get_item(slot)
            if raw is None:
                return []
            return self._decode(slot, raw, model)
        except PersistenceError as e:
            logger.warning(
                f"[recents] Failed to load slot '{slot}' ({type(e).__name__}): {e}",
                extra={"slot": slot},
            )
        except Exception as e:
            logger.warning(
                f"[recents] Storage error loading slot '{slot}': {e}",
                extra={"slot": slot},
                exc_info=True,
            )
        return []

    def _decode(self, slot: str, raw: str, model: Type[M]) -> List[M]:
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise MalformedPersistedData(f"invalid JSON: {e}", slot=slot) from e

        if not isinstance(payload, list):
            raise MalformedPersistedData(
                f"expected a list, got {type(payload).__name__}", slot=slot
            )

        try:
            return [model.model_validate(item) for item in payload]
        except ValidationError as e:
            raise MalformedPersistedData(
                f"{e.error_count()} validation error(s) for {model.__name__}", slot=slot
            ) from e

    def save(self, slot: str, items: Sequence[BaseModel]) -> bool:
        """Serialize ``items`` and write them under ``slot``. Returns True on success."""
        try:
            payload = json.dumps(
                [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in items],
                ensure_ascii=False,
            )
            self.storage.set_item(slot, payload)
            return True
        except PersistenceError as e:
            logger.warning(
                f"[recents] Failed to save slot '{slot}' ({type(e).__name__}): {e}",
                extra={"slot": slot},
            )
        except Exception as e:
            logger.warning(
                f"[recents] Storage error saving slot '{slot}': {e}",
                extra={"slot": slot},
                exc_info=True,
            )
        return False

    def clear(self, slot: str) -> bool:
        """Remove ``slot``. Returns True on success."""
        try:
            self.storage.remove_item(slot)
            return True
        except PersistenceError as e:
            logger.warning(
                f"[recents] Failed to clear slot '{slot}' ({type(e).__name__}): {e}",
                extra={"slot": slot},
            )
        except Exception as e:
            logger.warning(
                f"[recents] Storage error clearing slot '{slot}': {e}",
                extra={"slot": slot},
                exc_info=True,
            )
        return False

    def discard(self) -> bool:
        """Release the underlying storage after its session ended. Returns True on success."""
        try:
            self.storage.discard()
            return True
        except PersistenceError as e:
            logger.warning(f"[recents] Failed to discard session storage ({type(e).__name__}): {e}")
        except Exception as e:
            logger.warning(f"[recents] Storage error discarding session storage: {e}", exc_info=True)
        return False
