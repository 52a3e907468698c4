"""Key derivation for Antenna topics and ECDH identities."""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from antenna.core.constants import (
    PBKDF2_ITERATIONS,
    PUBLIC_KEY_MATERIAL_PREFIX,
    SALT_PREFIX,
    SYMMETRIC_KEY_BYTES,
    ecdh_derivation_message,
)
from antenna.core.errors import InvalidKeyError, SigningError
from antenna.utils.encoding import bytes_to_hex, strip_hex_prefix

logger = logging.getLogger(__name__)

PRIVATE_KEY_BYTES = 32
COMPRESSED_PUBKEY_BYTES = 33

SignFn = Callable[[str], Awaitable[str | bytes]]


@dataclass(frozen=True)
class ECDHKeypair:
    """A secp256k1 keypair used only for wrapping topic keys."""

    private_key: bytes
    public_key: bytes

    def __repr__(self) -> str:
        return f"ECDHKeypair(public_key={bytes_to_hex(self.public_key)})"


def _pbkdf2(password: str, topic_id: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=SYMMETRIC_KEY_BYTES,
        salt=f"{SALT_PREFIX}{topic_id}".encode(),
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode())


def derive_public_topic_key(topic_id: int) -> bytes:
    """Derive the deterministic AES-256 key for a public or limited topic.

    Any client given the same topic id produces the same 32 bytes.
    """
    return _pbkdf2(f"{PUBLIC_KEY_MATERIAL_PREFIX}{topic_id}", topic_id)


def derive_key_from_passphrase(passphrase: str, topic_id: int) -> bytes:
    """Derive an AES-256 key for a topic from a shared passphrase."""
    return _pbkdf2(passphrase, topic_id)


def generate_topic_key() -> bytes:
    """Return a fresh random topic key."""
    return secrets.token_bytes(SYMMETRIC_KEY_BYTES)


def load_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
    """Build a secp256k1 private key object from a raw 32-byte scalar.

    Raises:
        InvalidKeyError: If the scalar has the wrong length or is out of range.
    """
    if len(private_key) != PRIVATE_KEY_BYTES:
        raise InvalidKeyError(
            f"ECDH private keys must be {PRIVATE_KEY_BYTES} bytes, got {len(private_key)}"
        )
    try:
        return ec.derive_private_key(int.from_bytes(private_key, "big"), ec.SECP256K1())
    except ValueError as err:
        raise InvalidKeyError(f"Invalid secp256k1 private key: {err}") from err


def load_public_key(public_key: bytes) -> ec.EllipticCurvePublicKey:
    """Parse a SEC1-encoded secp256k1 public key (compressed or not).

    Raises:
        InvalidKeyError: If the bytes are not a point on the curve.
    """
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key)
    except ValueError as err:
        raise InvalidKeyError(f"Invalid secp256k1 public key: {err}") from err


def _keypair_from_scalar(private_key: bytes) -> ECDHKeypair:
    key = load_private_key(private_key)
    public_key = key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )
    return ECDHKeypair(private_key=private_key, public_key=public_key)


def keypair_from_private_key(private_key_hex: str) -> ECDHKeypair:
    """Load an ECDH keypair from a stored hex private key.

    Args:
        private_key_hex: 64 hex characters, optionally ``0x``-prefixed.

    Raises:
        InvalidKeyError: If the input is not a well-formed 32-byte scalar.
    """
    cleaned = strip_hex_prefix(private_key_hex)
    if len(cleaned) != PRIVATE_KEY_BYTES * 2:
        raise InvalidKeyError(
            f"ECDH private key must be {PRIVATE_KEY_BYTES * 2} hex characters, got {len(cleaned)}"
        )
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as err:
        raise InvalidKeyError(f"Invalid hex encoding: {err}") from err
    return _keypair_from_scalar(raw)


def _signature_text(signature: str | bytes) -> str:
    # Wallets return hex text; the reference client hashes that text verbatim.
    if isinstance(signature, bytes):
        return bytes_to_hex(signature)
    return signature


async def derive_keypair_from_signature(
    identity: str,
    sign: SignFn,
    app_id: int = 1,
) -> ECDHKeypair:
    """Derive an ECDH keypair deterministically from a wallet signature.

    The same wallet and app id always produce the same keypair, so the key can
    be recovered on any device without storing it.

    Args:
        identity: Wallet address embedded in the signed message.
        sign: Signing capability; may wait on user interaction.
        app_id: Application id embedded in the signed message.

    Raises:
        SigningError: If the signer fails, is rejected, or returns nothing.
    """
    message = ecdh_derivation_message(identity, app_id)
    try:
        signature = await sign(message)
    except Exception as err:
        raise SigningError(f"Signing the ECDH derivation message failed: {err}") from err

    if not signature:
        raise SigningError("Signer returned an empty signature")

    scalar = hashlib.sha256(_signature_text(signature).encode("utf-8")).digest()
    keypair = _keypair_from_scalar(scalar)
    logger.debug("Derived ECDH keypair for %s (app %d)", identity, app_id)
    return keypair
