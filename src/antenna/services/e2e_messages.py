# src/antenna/services/e2e_messages.py
"""End-to-end encryption for topic messages."""

from __future__ import annotations

import json
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from antenna.core.constants import GCM_IV_BYTES, GCM_TAG_BYTES
from antenna.schemas.envelope import EncryptedPayload, MessageContent
from antenna.utils.encoding import b64encode

logger = logging.getLogger(__name__)

DECRYPTION_FAILED_TEXT = "[decryption failed]"


class E2EMessageService:
    """Service handling the AES-256-GCM message envelope.

    The codec consumes whatever 32-byte key it is handed; choosing the key
    for a topic is the key grant layer's job.
    """

    @staticmethod
    def encrypt(plaintext: str, key: bytes) -> str:
        """Encrypt text into the JSON envelope.

        Args:
            plaintext: Text to encrypt
            key: 32-byte topic key

        Returns:
            Compact JSON ``{"e":true,"v":2,"iv":...,"ct":...}``
        """
        iv = os.urandom(GCM_IV_BYTES)
        ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        return EncryptedPayload(iv=b64encode(iv), ct=b64encode(ciphertext)).to_wire()

    @staticmethod
    def decrypt(payload: str, key: bytes) -> str | None:
        """Decrypt an envelope produced by :meth:`encrypt`.

        Payloads whose ``e`` flag is false or missing, and JSON values that are
        not objects, are legacy plaintext and are returned unchanged.

        Args:
            payload: Envelope JSON (or legacy plaintext JSON)
            key: 32-byte topic key

        Returns:
            The plaintext, or None if the payload is malformed or fails
            authentication
        """
        try:
            raw = json.loads(payload)
        except (json.JSONDecodeError, TypeError):
            return None

        if raw is None:
            return None
        if not isinstance(raw, dict) or not raw.get("e"):
            return payload

        try:
            envelope = EncryptedPayload.model_validate(raw)
            iv = envelope.iv_bytes
            ciphertext = envelope.ct_bytes
        except (ValidationError, ValueError):
            return None

        if len(iv) != GCM_IV_BYTES or len(ciphertext) < GCM_TAG_BYTES:
            return None

        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
        except (InvalidTag, ValueError):
            return None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            return None

    @staticmethod
    def encrypt_message(
        text: str,
        key: bytes,
        reply_to: str | None = None,
        reply_text: str | None = None,
        reply_author: str | None = None,
        mentions: list[str] | None = None,
    ) -> str:
        """Encrypt a structured message body.

        Empty optional fields are left out of the serialized content.
        """
        content = MessageContent(
            text=text,
            reply_to=reply_to,
            reply_text=reply_text,
            reply_author=reply_author,
            mentions=mentions,
        )
        return E2EMessageService.encrypt(content.to_wire(), key)

    @staticmethod
    def decrypt_message(payload: str, key: bytes) -> MessageContent | None:
        """Decrypt a structured message body.

        Returns:
            The message content, or None if decryption failed or produced no
            text. Decrypted text that is not a JSON object with a ``text``
            field is returned as plain text content.
        """
        plaintext = E2EMessageService.decrypt(payload, key)
        if not plaintext:
            return None

        try:
            parsed = json.loads(plaintext)
        except json.JSONDecodeError:
            return MessageContent(text=plaintext)

        if isinstance(parsed, dict) and parsed.get("text"):
            try:
                return MessageContent.model_validate(parsed)
            except ValidationError:
                logger.debug("Message content failed validation; treating as plain text")
        return MessageContent(text=plaintext)
