import pytest

from antenna.core.errors import AuthenticationFailure, InvalidKeyError
from antenna.services.crypto import generate_topic_key
from antenna.services.ecdh import (
    compute_shared_secret,
    decrypt_topic_key,
    derive_aes_key_from_secret,
    encrypt_topic_key_for_user,
)
from tests.conftest import keypair_for

ALICE = keypair_for(0xA11CE)
BOB = keypair_for(0xB0B)
EVE = keypair_for(0xE7E)


def test_shared_secret_is_symmetric():
    ours = compute_shared_secret(ALICE.private_key, BOB.public_key)
    theirs = compute_shared_secret(BOB.private_key, ALICE.public_key)
    assert ours == theirs
    assert len(ours) == 32


def test_shared_secret_rejects_malformed_public_key():
    with pytest.raises(InvalidKeyError):
        compute_shared_secret(ALICE.private_key, b"\x02" + b"\x00" * 10)


def test_aes_key_depends_on_info():
    secret = compute_shared_secret(ALICE.private_key, BOB.public_key)
    default = derive_aes_key_from_secret(secret)
    assert len(default) == 32
    assert derive_aes_key_from_secret(secret, "topic-key-encryption") == default
    assert derive_aes_key_from_secret(secret, "other-purpose") != default


def test_grant_round_trip_between_two_parties():
    topic_key = generate_topic_key()
    blob = encrypt_topic_key_for_user(topic_key, ALICE.private_key, BOB.public_key)

    assert len(blob) == 60
    assert decrypt_topic_key(blob, BOB.private_key, ALICE.public_key) == topic_key


def test_grant_uses_fresh_iv_each_time():
    topic_key = generate_topic_key()
    first = encrypt_topic_key_for_user(topic_key, ALICE.private_key, BOB.public_key)
    second = encrypt_topic_key_for_user(topic_key, ALICE.private_key, BOB.public_key)
    assert first[:12] != second[:12]


def test_third_party_cannot_decrypt_grant():
    blob = encrypt_topic_key_for_user(generate_topic_key(), ALICE.private_key, BOB.public_key)
    with pytest.raises(AuthenticationFailure):
        decrypt_topic_key(blob, EVE.private_key, ALICE.public_key)


def test_tampered_grant_fails_authentication():
    blob = bytearray(encrypt_topic_key_for_user(generate_topic_key(), ALICE.private_key, BOB.public_key))
    blob[20] ^= 0x01
    with pytest.raises(AuthenticationFailure):
        decrypt_topic_key(bytes(blob), BOB.private_key, ALICE.public_key)


def test_truncated_grant_is_rejected():
    with pytest.raises(AuthenticationFailure):
        decrypt_topic_key(b"\x00" * 27, BOB.private_key, ALICE.public_key)
