"""
Data model for the recents cache.

Field aliases match the session storage slot schema (``login``,
``avatar_url``, ``name``, ``searchedAt``, ``users``, ``comparedAt``), so the
same models validate persisted payloads, HTTP bodies and in-memory records.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .normalize import identity_set, normalize_identity


MAX_RECENT = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntityRef(BaseModel):
    """A tracked user as the dashboard displays it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    identity: str = Field(alias="login")
    avatar_url: str
    display_name: Optional[str] = Field(default=None, alias="name")

    @property
    def key(self) -> str:
        return normalize_identity(self.identity)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RecentEntry(EntityRef):
    """
    One "recently viewed" record.

    Stored flat (the ref's fields plus ``searchedAt``), the way the
    ``recent_users`` slot lays it out. Never mutated; a repeat lookup
    replaces it with a new entry.
    """

    observed_at: datetime = Field(alias="searchedAt")

    @classmethod
    def observe(cls, ref: EntityRef, observed_at: datetime) -> "RecentEntry":
        return cls(
            identity=ref.identity,
            avatar_url=ref.avatar_url,
            display_name=ref.display_name,
            observed_at=observed_at,
        )

    @property
    def ref(self) -> EntityRef:
        return EntityRef(
            identity=self.identity,
            avatar_url=self.avatar_url,
            display_name=self.display_name,
        )


class ComparisonGroup(BaseModel):
    """Users compared together; equal to another group when the member sets match."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    members: Tuple[EntityRef, ...] = Field(alias="users", min_length=2)
    observed_at: datetime = Field(alias="comparedAt")

    @property
    def key(self) -> FrozenSet[str]:
        return identity_set(m.identity for m in self.members)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
