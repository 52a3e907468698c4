"""ECDH key wrapping for private topic keys.

A topic key is encrypted for a recipient with AES-256-GCM under a key derived
(HKDF-SHA256) from the ECDH shared secret between the granter and the
recipient. The recipient recomputes the same secret from their private key
and the granter's public key.

Wire format: ``IV (12 bytes) || ciphertext || tag (16 bytes)``, no length
prefix.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from antenna.core.constants import (
    ECDH_HKDF_INFO,
    ECDH_HKDF_SALT,
    GCM_IV_BYTES,
    GRANT_OVERHEAD_BYTES,
    SYMMETRIC_KEY_BYTES,
)
from antenna.core.errors import AuthenticationFailure
from antenna.services.crypto import load_private_key, load_public_key


def compute_shared_secret(our_private_key: bytes, their_public_key: bytes) -> bytes:
    """Return the x-coordinate of the shared secp256k1 point (32 bytes)."""
    private_key = load_private_key(our_private_key)
    public_key = load_public_key(their_public_key)
    return private_key.exchange(ec.ECDH(), public_key)


def derive_aes_key_from_secret(shared_secret: bytes, info: str = ECDH_HKDF_INFO) -> bytes:
    """Stretch an ECDH shared secret into an AES-256 key."""
    return HKDF(
        algorithm=hashes.SHA256(),
        length=SYMMETRIC_KEY_BYTES,
        salt=ECDH_HKDF_SALT.encode(),
        info=info.encode(),
    ).derive(shared_secret)


def encrypt_topic_key_for_user(
    topic_key: bytes,
    our_private_key: bytes,
    recipient_public_key: bytes,
) -> bytes:
    """Encrypt a topic key for one recipient.

    Returns:
        ``IV || ciphertext || tag``; always ``len(topic_key) + 28`` bytes.
    """
    aes_key = derive_aes_key_from_secret(compute_shared_secret(our_private_key, recipient_public_key))
    iv = os.urandom(GCM_IV_BYTES)
    return iv + AESGCM(aes_key).encrypt(iv, topic_key, None)


def decrypt_topic_key(
    encrypted_key: bytes,
    our_private_key: bytes,
    granter_public_key: bytes,
) -> bytes:
    """Decrypt a topic key received through an ECDH grant.

    Raises:
        AuthenticationFailure: If the blob is truncated or the tag check fails
            (wrong key pair, tampering, or a grant for another key version).
    """
    if len(encrypted_key) < GRANT_OVERHEAD_BYTES:
        raise AuthenticationFailure(
            f"Encrypted key too short ({len(encrypted_key)} bytes, need at least {GRANT_OVERHEAD_BYTES})"
        )

    aes_key = derive_aes_key_from_secret(compute_shared_secret(our_private_key, granter_public_key))
    iv, ciphertext = encrypted_key[:GCM_IV_BYTES], encrypted_key[GCM_IV_BYTES:]
    try:
        return AESGCM(aes_key).decrypt(iv, ciphertext, None)
    except InvalidTag as err:
        raise AuthenticationFailure("Topic key authentication failed") from err
