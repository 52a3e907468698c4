"""Hex and base64 helpers shared by the crypto and ledger layers."""

from __future__ import annotations

import base64
import binascii


def strip_hex_prefix(data: str) -> str:
    """Return ``data`` without a leading ``0x``/``0X``."""
    cleaned = data.strip()
    if cleaned[:2].lower() == "0x":
        return cleaned[2:]
    return cleaned


def hex_to_bytes(data: str) -> bytes:
    """Decode a hex string, accepting an optional ``0x`` prefix.

    Raises:
        ValueError: If the string is not valid hex.
    """
    try:
        return bytes.fromhex(strip_hex_prefix(data))
    except ValueError as err:
        raise ValueError(f"Invalid hex encoding: {err}") from err


def bytes_to_hex(data: bytes) -> str:
    """Encode bytes as a ``0x``-prefixed lowercase hex string."""
    return "0x" + data.hex()


def b64encode(data: bytes) -> str:
    """Encode bytes as standard, padded base64 text."""
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    """Decode standard base64 text strictly.

    Raises:
        ValueError: If the text is not valid base64.
    """
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError(f"Invalid base64 encoding: {err}") from err


def normalize_address(address: str) -> str:
    """Return a lowercase ``0x`` address for identity comparisons."""
    return "0x" + strip_hex_prefix(address).lower()
