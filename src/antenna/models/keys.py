"""Models describing topics and their key grants."""

from __future__ import annotations

from dataclasses import dataclass

from antenna.core.constants import AccessLevel


@dataclass(frozen=True)
class TopicInfo:
    """The subset of topic metadata the key layer depends on."""

    id: int
    owner: str
    access_level: AccessLevel

    @property
    def is_private(self) -> bool:
        return self.access_level == AccessLevel.PRIVATE


@dataclass(frozen=True)
class KeyGrant:
    """A topic key encrypted for one recipient.

    ``encrypted_key`` is ``IV || ciphertext || tag`` under an AES key derived
    from the ECDH secret between the granter and the recipient. A grant is
    only usable while ``key_version`` matches the topic's current version.
    """

    encrypted_key: bytes
    granter_public_key: bytes
    granter: str
    key_version: int
    granted_at: int | None = None
    current_version: int | None = None

    @property
    def is_stale(self) -> bool:
        """True when the topic has rotated past this grant's version."""
        if self.current_version is None:
            return False
        return self.key_version < self.current_version


@dataclass(frozen=True)
class PendingGrant:
    """A member who still needs a key grant for a private topic."""

    address: str
    has_public_key: bool


@dataclass(frozen=True)
class PendingGrants:
    """Members split into those awaiting a grant and those already granted."""

    pending: list[PendingGrant]
    granted: list[str]
