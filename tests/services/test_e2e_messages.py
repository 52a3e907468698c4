import base64
import json

import pytest

from antenna.schemas.envelope import MessageContent
from antenna.services.crypto import derive_public_topic_key, generate_topic_key
from antenna.services.e2e_messages import E2EMessageService

KEY = derive_public_topic_key(1)


def test_encrypt_produces_versioned_envelope():
    payload = E2EMessageService.encrypt("hello", KEY)
    envelope = json.loads(payload)

    assert envelope["e"] is True
    assert envelope["v"] == 2
    assert len(base64.b64decode(envelope["iv"])) == 12
    assert len(base64.b64decode(envelope["ct"])) == len("hello") + 16
    assert " " not in payload


def test_decrypt_round_trip_unicode():
    text = "gm ☕ 日本"
    assert E2EMessageService.decrypt(E2EMessageService.encrypt(text, KEY), KEY) == text


def test_same_plaintext_encrypts_differently():
    assert E2EMessageService.encrypt("x", KEY) != E2EMessageService.encrypt("x", KEY)


def test_decrypt_with_wrong_key_returns_none():
    payload = E2EMessageService.encrypt("secret", KEY)
    assert E2EMessageService.decrypt(payload, generate_topic_key()) is None


def test_decrypt_tampered_ciphertext_returns_none():
    envelope = json.loads(E2EMessageService.encrypt("secret", KEY))
    raw = bytearray(base64.b64decode(envelope["ct"]))
    raw[0] ^= 0xFF
    envelope["ct"] = base64.b64encode(bytes(raw)).decode()
    assert E2EMessageService.decrypt(json.dumps(envelope), KEY) is None


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "null",
        '{"e": true, "v": 2, "iv": "!!!", "ct": "AAAA"}',
        '{"e": true, "v": 2, "iv": "AAAA", "ct": "AAAAAAAAAAAAAAAAAAAAAA=="}',
        '{"e": true, "v": 2}',
    ],
)
def test_decrypt_malformed_returns_none(payload):
    assert E2EMessageService.decrypt(payload, KEY) is None


def test_unencrypted_payload_is_returned_unchanged():
    payload = '{"e": false, "text": "plain"}'
    assert E2EMessageService.decrypt(payload, KEY) == payload

    legacy = '{"text": "legacy"}'
    assert E2EMessageService.decrypt(legacy, KEY) == legacy


@pytest.mark.parametrize("payload", ['"hello"', "123", "[1, 2, 3]", "true"])
def test_non_object_json_is_returned_unchanged(payload):
    assert E2EMessageService.decrypt(payload, KEY) == payload


def test_plain_json_string_reads_as_text():
    content = E2EMessageService.decrypt_message('"hello"', KEY)
    assert content == MessageContent(text='"hello"')


def test_encrypt_message_omits_empty_fields():
    payload = E2EMessageService.encrypt_message("hi", KEY, reply_to="", mentions=[])
    inner = json.loads(E2EMessageService.decrypt(payload, KEY))
    assert inner == {"text": "hi"}


def test_message_round_trip_with_reply_and_mentions():
    payload = E2EMessageService.encrypt_message(
        "answer",
        KEY,
        reply_to="0xabc",
        reply_text="question",
        reply_author="0x" + "22" * 20,
        mentions=["0x" + "33" * 20],
    )
    content = E2EMessageService.decrypt_message(payload, KEY)

    assert content == MessageContent(
        text="answer",
        reply_to="0xabc",
        reply_text="question",
        reply_author="0x" + "22" * 20,
        mentions=["0x" + "33" * 20],
    )


def test_decrypt_message_failure_returns_none():
    payload = E2EMessageService.encrypt_message("hi", KEY)
    assert E2EMessageService.decrypt_message(payload, generate_topic_key()) is None


@pytest.mark.parametrize("inner", ["just words", '"a json string"', '{"body": "no text"}', "[1]"])
def test_decrypt_message_degrades_to_plain_text(inner):
    payload = E2EMessageService.encrypt(inner, KEY)
    content = E2EMessageService.decrypt_message(payload, KEY)
    assert content == MessageContent(text=inner)
    assert content.reply_to is None
    assert content.mentions is None


def test_decrypt_message_empty_plaintext_returns_none():
    payload = E2EMessageService.encrypt("", KEY)
    assert E2EMessageService.decrypt(payload, KEY) == ""
    assert E2EMessageService.decrypt_message(payload, KEY) is None
