"""Identity normalization for case-insensitive comparisons."""

from typing import FrozenSet, Iterable


def normalize_identity(identity: str) -> str:
    """Case-fold an identity for comparison; display values keep their casing."""
    return identity.lower()


def identity_set(identities: Iterable[str]) -> FrozenSet[str]:
    return frozenset(normalize_identity(i) for i in identities)
