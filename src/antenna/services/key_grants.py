"""Topic key distribution: public derivation and ECDH grants for private topics.

Per private topic the key moves through ``Uninitialized -> Active(v)`` on
:meth:`KeyGrantService.initialize`, and ``Active(v) -> Rotated(v + 1)`` on
:meth:`KeyGrantService.rotate`. Grants made for an older version are inert;
the holder must be re-granted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from antenna.core.constants import MAX_BATCH_GRANT, SYMMETRIC_KEY_BYTES
from antenna.core.errors import (
    BatchTooLargeError,
    GrantNotFoundError,
    InvalidKeyError,
    KeyAlreadyRegisteredError,
    KeypairRequiredError,
    NotTopicOwnerError,
    RecipientKeyMissingError,
    StaleGrantError,
    TopicKeyUnavailableError,
)
from antenna.core.settings import settings
from antenna.models.keys import PendingGrant, PendingGrants, TopicInfo
from antenna.services.crypto import (
    ECDHKeypair,
    SignFn,
    derive_keypair_from_signature,
    derive_public_topic_key,
    generate_topic_key,
    keypair_from_private_key,
)
from antenna.services.ecdh import decrypt_topic_key, encrypt_topic_key_for_user
from antenna.services.ledger import KeyRegistry, TopicRegistry
from antenna.utils.cache import SessionCache
from antenna.utils.encoding import normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DerivedKey:
    """Deterministic key of a public or public-limited topic."""

    topic_id: int
    key: bytes


@dataclass(frozen=True)
class GrantedKey:
    """Private topic key obtained through a grant, or preloaded by the caller.

    ``version`` is None for preloaded keys whose version is unknown.
    """

    topic_id: int
    key: bytes
    version: int | None = None


ResolvedKey = DerivedKey | GrantedKey


class KeyGrantService:
    """Holds one identity's ECDH keypair and the topic keys it has unlocked.

    The keypair and the topic key cache live exactly as long as the service
    and are never persisted.
    """

    def __init__(
        self,
        registry: KeyRegistry,
        topics: TopicRegistry,
        identity: str,
        keypair: ECDHKeypair | None = None,
    ) -> None:
        self.registry = registry
        self.topics = topics
        self.identity = identity
        self._keypair = keypair
        self._topic_keys: SessionCache[int, GrantedKey] = SessionCache()

    # ------------------------------------------------------------------
    # Keypair

    @property
    def keypair(self) -> ECDHKeypair:
        if self._keypair is None:
            raise KeypairRequiredError(
                "ECDH keypair not loaded. Derive it from a wallet signature or load a stored key first."
            )
        return self._keypair

    @property
    def has_keypair(self) -> bool:
        return self._keypair is not None

    async def derive_keypair(self, sign: SignFn, app_id: int | None = None) -> ECDHKeypair:
        """Derive this identity's keypair from a wallet signature and keep it."""
        self._keypair = await derive_keypair_from_signature(
            self.identity, sign, settings.app_id if app_id is None else app_id
        )
        return self._keypair

    def load_keypair(self, private_key_hex: str) -> ECDHKeypair:
        """Load this identity's keypair from a stored hex private key."""
        self._keypair = keypair_from_private_key(private_key_hex)
        return self._keypair

    async def register_public_key(self) -> str:
        """Publish this identity's ECDH public key.

        Raises:
            KeyAlreadyRegisteredError: If a key is already registered.
        """
        keypair = self.keypair
        if await self.registry.has_public_key(self.identity):
            raise KeyAlreadyRegisteredError(
                f"An ECDH public key is already registered for {self.identity}"
            )
        tx_hash = await self.registry.register_public_key(keypair.public_key)
        logger.info("Registered ECDH public key for %s", self.identity)
        return tx_hash

    # ------------------------------------------------------------------
    # Helpers

    def _is_self(self, address: str) -> bool:
        return normalize_address(address) == normalize_address(self.identity)

    async def _require_owner(self, topic_id: int, action: str) -> TopicInfo:
        topic = await self.topics.get_topic(topic_id)
        if not self._is_self(topic.owner):
            raise NotTopicOwnerError(topic_id, topic.owner, action)
        return topic

    def cached_key(self, topic_id: int) -> bytes | None:
        """Return the topic key held for this session, if any."""
        entry = self._topic_keys.get(topic_id)
        return entry.key if entry else None

    def set_topic_key(self, topic_id: int, key: bytes) -> None:
        """Preload a known private topic key (e.g. from stored credentials)."""
        if len(key) != SYMMETRIC_KEY_BYTES:
            raise InvalidKeyError(f"Topic keys must be {SYMMETRIC_KEY_BYTES} bytes, got {len(key)}")
        self._topic_keys.set(topic_id, GrantedKey(topic_id=topic_id, key=key))

    # ------------------------------------------------------------------
    # State transitions

    async def initialize(self, topic_id: int) -> bytes:
        """Create the topic key for the current version and self-grant it.

        Only the topic owner may initialize. Returns the new key.
        """
        await self._require_owner(topic_id, "initialize the key of")
        topic_key = generate_topic_key()
        version = await self.registry.key_version(topic_id)
        await self.grant(topic_id, self.identity, topic_key=topic_key)
        self._topic_keys.set(topic_id, GrantedKey(topic_id=topic_id, key=topic_key, version=version))
        logger.info("Initialized key for topic %d at version %d", topic_id, version)
        return topic_key

    async def grant(self, topic_id: int, recipient: str, topic_key: bytes | None = None) -> str:
        """Encrypt the topic key for ``recipient`` and publish the grant.

        Raises:
            RecipientKeyMissingError: If the recipient has no registered key.
        """
        keypair = self.keypair
        if not await self.registry.has_public_key(recipient):
            raise RecipientKeyMissingError([recipient])
        if topic_key is None:
            topic_key = await self.get_or_initialize(topic_id)

        recipient_key = await self.registry.get_public_key(recipient)
        encrypted = encrypt_topic_key_for_user(topic_key, keypair.private_key, recipient_key)
        tx_hash = await self.registry.grant_key_access(topic_id, recipient, encrypted)
        logger.info("Granted topic %d key to %s", topic_id, recipient)
        return tx_hash

    async def batch_grant(
        self,
        topic_id: int,
        recipients: Sequence[str],
        topic_key: bytes | None = None,
    ) -> str:
        """Grant the topic key to several recipients in one submission.

        Every recipient key is looked up before anything is published, so a
        single missing key fails the whole batch.

        Raises:
            BatchTooLargeError: For more than ``MAX_BATCH_GRANT`` recipients.
            RecipientKeyMissingError: Naming every recipient without a key.
        """
        keypair = self.keypair
        if not recipients:
            raise ValueError("batch_grant requires at least one recipient")
        if len(recipients) > MAX_BATCH_GRANT:
            raise BatchTooLargeError(
                f"Batch grants are limited to {MAX_BATCH_GRANT} recipients, got {len(recipients)}"
            )

        registered = await asyncio.gather(*(self.registry.has_public_key(r) for r in recipients))
        missing = [r for r, ok in zip(recipients, registered) if not ok]
        if missing:
            raise RecipientKeyMissingError(missing)

        public_keys = await asyncio.gather(*(self.registry.get_public_key(r) for r in recipients))
        if topic_key is None:
            topic_key = await self.get_or_initialize(topic_id)

        encrypted_keys = [
            encrypt_topic_key_for_user(topic_key, keypair.private_key, public_key)
            for public_key in public_keys
        ]
        tx_hash = await self.registry.batch_grant_key_access(topic_id, list(recipients), encrypted_keys)
        logger.info("Granted topic %d key to %d recipient(s)", topic_id, len(recipients))
        return tx_hash

    async def fetch_and_decrypt(self, topic_id: int) -> bytes:
        """Fetch this identity's grant for ``topic_id`` and decrypt the key.

        Raises:
            GrantNotFoundError: If there is no grant.
            StaleGrantError: If the grant predates the current key version.
            AuthenticationFailure: If the grant does not decrypt.
        """
        granted = await self._fetch_grant(topic_id)
        return granted.key

    async def _fetch_grant(self, topic_id: int) -> GrantedKey:
        keypair = self.keypair
        grant = await self.registry.get_key_grant(topic_id, self.identity)
        if grant is None:
            raise GrantNotFoundError(topic_id, self.identity)

        current = grant.current_version
        if current is None:
            current = await self.registry.key_version(topic_id)
        if grant.key_version < current:
            raise StaleGrantError(topic_id, grant.key_version, current, grant.granter)

        topic_key = decrypt_topic_key(grant.encrypted_key, keypair.private_key, grant.granter_public_key)
        granted = GrantedKey(topic_id=topic_id, key=topic_key, version=grant.key_version)
        self._topic_keys.set(topic_id, granted)
        logger.debug("Decrypted key for topic %d (version %d)", topic_id, grant.key_version)
        return granted

    async def get_or_initialize(self, topic_id: int) -> bytes:
        """Return the topic key, initializing it when the owner has none yet.

        Raises:
            TopicKeyUnavailableError: If a non-owner has no grant.
            StaleGrantError: If a non-owner holds only a pre-rotation grant.
        """
        cached = self.cached_key(topic_id)
        if cached is not None:
            return cached

        try:
            return await self.fetch_and_decrypt(topic_id)
        except GrantNotFoundError as err:
            topic = await self.topics.get_topic(topic_id)
            if not self._is_self(topic.owner):
                raise TopicKeyUnavailableError(topic_id, topic.owner) from err
        except StaleGrantError:
            topic = await self.topics.get_topic(topic_id)
            if not self._is_self(topic.owner):
                raise
        return await self.initialize(topic_id)

    async def rotate(self, topic_id: int, regrant: Sequence[str] = ()) -> str:
        """Advance the topic key version, making every existing grant stale.

        With ``regrant``, a fresh key is initialized and granted to those
        recipients; otherwise re-granting is left to the caller.
        """
        await self._require_owner(topic_id, "rotate the key of")
        tx_hash = await self.registry.rotate_key(topic_id)
        self._topic_keys.discard(topic_id)
        logger.info("Rotated key for topic %d", topic_id)

        if regrant:
            topic_key = await self.initialize(topic_id)
            others = [r for r in regrant if not self._is_self(r)]
            if others:
                await self.batch_grant(topic_id, others, topic_key=topic_key)
        return tx_hash

    async def revoke(self, topic_id: int, recipient: str) -> str:
        """Remove ``recipient``'s grant without rotating the key."""
        await self._require_owner(topic_id, "revoke access to")
        tx_hash = await self.registry.revoke_key_access(topic_id, recipient)
        logger.warning(
            "Revoked %s from topic %d without rotation; a key they already hold "
            "keeps working until the topic key is rotated",
            recipient,
            topic_id,
        )
        return tx_hash

    # ------------------------------------------------------------------
    # Queries

    async def has_key_access(self, topic_id: int, address: str | None = None) -> bool:
        return await self.registry.has_key_access(topic_id, address or self.identity)

    async def pending_grants(self, topic_id: int, members: Sequence[str]) -> PendingGrants:
        """Split ``members`` into those still awaiting a grant and those granted."""
        access = await asyncio.gather(*(self.registry.has_key_access(topic_id, m) for m in members))
        waiting = [m for m, ok in zip(members, access) if not ok]
        has_keys = await asyncio.gather(*(self.registry.has_public_key(m) for m in waiting))
        return PendingGrants(
            pending=[PendingGrant(address=m, has_public_key=k) for m, k in zip(waiting, has_keys)],
            granted=[m for m, ok in zip(members, access) if ok],
        )

    async def resolve_topic_key(self, topic_id: int) -> ResolvedKey:
        """Return the key to use for ``topic_id`` whatever its access level.

        Raises:
            TopicKeyUnavailableError: For a private topic without a grant.
        """
        cached = self._topic_keys.get(topic_id)
        if cached is not None:
            return cached

        topic = await self.topics.get_topic(topic_id)
        if not topic.is_private:
            return DerivedKey(topic_id=topic_id, key=derive_public_topic_key(topic_id))

        try:
            return await self._fetch_grant(topic_id)
        except GrantNotFoundError as err:
            raise TopicKeyUnavailableError(topic_id, topic.owner) from err
