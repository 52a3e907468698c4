# src/antenna/schemas/envelope.py
"""Pydantic schemas for the encrypted message wire format."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from antenna.core.constants import ENVELOPE_VERSION
from antenna.utils.encoding import b64decode


class EncryptedPayload(BaseModel):
    """Versioned AES-256-GCM envelope: ``{"e": true, "v": 2, "iv": ..., "ct": ...}``.

    ``iv`` is base64 of exactly 12 bytes and ``ct`` is base64 of the ciphertext
    followed by the 16-byte GCM tag.
    """

    encrypted: bool = Field(True, alias="e")
    version: int = Field(ENVELOPE_VERSION, alias="v")
    iv: str
    ct: str

    model_config = ConfigDict(populate_by_name=True)

    @property
    def iv_bytes(self) -> bytes:
        """Decoded initialization vector."""
        return b64decode(self.iv)

    @property
    def ct_bytes(self) -> bytes:
        """Decoded ciphertext including the trailing tag."""
        return b64decode(self.ct)

    def to_wire(self) -> str:
        """Serialize with the short wire keys and no whitespace."""
        return self.model_dump_json(by_alias=True)


class MessageContent(BaseModel):
    """Structured message body carried inside an envelope."""

    text: str
    reply_to: str | None = Field(None, alias="replyTo")
    reply_text: str | None = Field(None, alias="replyText")
    reply_author: str | None = Field(None, alias="replyAuthor")
    mentions: list[str] | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("reply_to", "reply_text", "reply_author", "mentions", mode="before")
    @classmethod
    def _empty_as_none(cls, value: Any) -> Any:
        # Senders omit or blank optional fields interchangeably.
        return value or None

    def to_wire(self) -> str:
        """Serialize with camelCase keys, omitting unset optional fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
