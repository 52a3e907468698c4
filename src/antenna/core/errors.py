"""Exception hierarchy for the Antenna client layer.

Errors fall into four groups:

- cryptographic failures (``AuthenticationFailure``), which bulk readers
  contain per message;
- authorization/state preconditions (missing public key, missing grant,
  non-owner), which another party can fix out of band and whose messages
  name that party;
- transient provider failures, retried by ``antenna.services.retry``;
- permanent/structural failures (malformed keys, undecodable provider
  data), which are never retried.
"""

from __future__ import annotations

from enum import Enum


class AntennaError(RuntimeError):
    """Base exception raised for Antenna client failures."""


# --- Cryptographic ----------------------------------------------------------


class AuthenticationFailure(AntennaError):
    """Raised when an AES-GCM tag check fails.

    Indicates tampering, a wrong key, or a grant made for another key version.
    """


class InvalidKeyError(AntennaError, ValueError):
    """Raised for malformed key material (bad hex, wrong length, off-curve)."""


class SigningError(AntennaError):
    """Raised when the signing capability fails or the user rejects it."""


# --- Authorization / state --------------------------------------------------


class KeypairRequiredError(AntennaError):
    """Raised when an ECDH operation runs before a keypair is loaded."""


class WalletRequiredError(AntennaError):
    """Raised when a write is attempted without a transaction sink."""


class RecipientKeyMissingError(AntennaError):
    """Raised when a grant recipient has no registered ECDH public key."""

    def __init__(self, recipients: list[str]) -> None:
        self.recipients = recipients
        names = ", ".join(recipients)
        super().__init__(
            f"No ECDH public key registered for {names}. "
            "The recipient must register a public key before access can be granted."
        )


class GrantNotFoundError(AntennaError):
    """Raised when no key grant exists for the caller on a topic."""

    def __init__(self, topic_id: int, address: str) -> None:
        self.topic_id = topic_id
        self.address = address
        super().__init__(f"No key grant for {address} on topic {topic_id}")


class StaleGrantError(AntennaError):
    """Raised when a grant was made for an older key version than the topic's."""

    def __init__(self, topic_id: int, grant_version: int, current_version: int, granter: str) -> None:
        self.topic_id = topic_id
        self.grant_version = grant_version
        self.current_version = current_version
        self.granter = granter
        super().__init__(
            f"Key grant for topic {topic_id} is for version {grant_version} but the "
            f"topic is at version {current_version}. Ask {granter} to grant access again."
        )


class NotTopicOwnerError(AntennaError):
    """Raised when a non-owner attempts an owner-only key operation."""

    def __init__(self, topic_id: int, owner: str, action: str) -> None:
        self.topic_id = topic_id
        self.owner = owner
        super().__init__(f"Only the topic owner ({owner}) can {action} topic {topic_id}")


class TopicKeyUnavailableError(AntennaError):
    """Raised when a private topic key cannot be obtained by this caller."""

    def __init__(self, topic_id: int, owner: str) -> None:
        self.topic_id = topic_id
        self.owner = owner
        super().__init__(
            f"Topic {topic_id} is PRIVATE and you have no key grant. "
            f"Ask the topic owner ({owner}) to grant you access."
        )


class KeyAlreadyRegisteredError(AntennaError):
    """Raised when registering an ECDH public key that is already on-chain."""


class BatchTooLargeError(AntennaError, ValueError):
    """Raised when a batch grant exceeds the key manager's per-call cap."""


class InvalidTimeoutError(AntennaError, ValueError):
    """Raised when an escrow timeout falls outside the accepted bounds."""


class DepositStateError(AntennaError):
    """Raised for a deposit status transition that would not be monotonic."""


# --- Provider -----------------------------------------------------------------


class ProviderErrorKind(Enum):
    """Tagged classification of provider failures."""

    TRANSIENT = "transient"
    WRONG_NETWORK = "wrong_network"
    NETWORK = "network"
    PERMANENT = "permanent"


class ProviderError(AntennaError):
    """Raised for failures reported by the ledger RPC provider."""

    def __init__(self, message: str, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class ConfirmationTimeoutError(AntennaError, TimeoutError):
    """Raised when a bounded wait for confirmation runs out.

    The underlying transaction may still confirm later; waiting again is safe.
    """

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed within {timeout:g}s")
