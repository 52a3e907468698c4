"""Protocol constants shared with every other client of the Antenna protocol.

These values are part of the interoperability contract: a key derived or a
grant encrypted by this package must be byte-identical to one produced by the
web frontend or any other implementation. Do not change them.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Final


class AccessLevel(IntEnum):
    """Topic access policy as stored on-chain."""

    PUBLIC = 0
    PUBLIC_LIMITED = 1
    PRIVATE = 2


# Public topic key derivation (PBKDF2-HMAC-SHA256)
PUBLIC_KEY_MATERIAL_PREFIX: Final[str] = "antenna-public-topic-"
SALT_PREFIX: Final[str] = "antenna-v2-salt-"
PBKDF2_ITERATIONS: Final[int] = 100_000
SYMMETRIC_KEY_BYTES: Final[int] = 32

# ECDH grant key wrapping (HKDF-SHA256 -> AES-256-GCM)
ECDH_HKDF_SALT: Final[str] = "antenna-ecdh-v1"
ECDH_HKDF_INFO: Final[str] = "topic-key-encryption"

# AES-GCM framing
GCM_IV_BYTES: Final[int] = 12
GCM_TAG_BYTES: Final[int] = 16
GRANT_OVERHEAD_BYTES: Final[int] = GCM_IV_BYTES + GCM_TAG_BYTES

# Envelope wire format version
ENVELOPE_VERSION: Final[int] = 2

# Key manager limits
MAX_BATCH_GRANT: Final[int] = 50

_ECDH_DERIVATION_TEMPLATE: Final[str] = (
    "Clawntenna ECDH Key Derivation\n\n"
    "This signature generates your encryption key.\n"
    "It never leaves your device.\n\n"
    "Wallet: {address}\n"
    "App: {app_id}\n"
    "Chain: Base (8453)"
)


def ecdh_derivation_message(address: str, app_id: int) -> str:
    """Return the human-readable message a wallet signs to derive its ECDH key."""
    return _ECDH_DERIVATION_TEMPLATE.format(address=address, app_id=app_id)
