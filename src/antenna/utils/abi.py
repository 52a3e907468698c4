"""Minimal ABI helpers for the few ledger payloads the client decodes itself."""

from __future__ import annotations

from eth_abi import decode as abi_decode
from eth_utils import keccak, to_checksum_address

from antenna.utils.encoding import hex_to_bytes

MESSAGE_SENT_SIGNATURE = "MessageSent(uint256,address,bytes,uint256)"
MESSAGE_SENT_TOPIC = "0x" + keccak(text=MESSAGE_SENT_SIGNATURE).hex()

# ERC-20 decimals()
DECIMALS_SELECTOR = "0x313ce567"

_WORD_BYTES = 32


def encode_uint_topic(value: int) -> str:
    """Encode an unsigned integer as a 32-byte indexed log topic."""
    if value < 0:
        raise ValueError("Indexed uint topics must be non-negative")
    return "0x" + value.to_bytes(_WORD_BYTES, "big").hex()


def decode_uint_topic(topic: str) -> int:
    """Decode a 32-byte indexed log topic into an integer."""
    return int.from_bytes(hex_to_bytes(topic), "big")


def decode_address_topic(topic: str) -> str:
    """Decode an indexed address topic into a checksummed address."""
    raw = hex_to_bytes(topic)
    return to_checksum_address(raw[-20:])


def decode_message_sent_data(data: str) -> tuple[bytes, int]:
    """Decode the non-indexed ``(bytes payload, uint256 timestamp)`` log data."""
    payload, timestamp = abi_decode(["bytes", "uint256"], hex_to_bytes(data))
    return payload, timestamp


def decode_uint_result(data: str) -> int:
    """Decode a single ``uint256`` return value from ``eth_call``."""
    (value,) = abi_decode(["uint256"], hex_to_bytes(data))
    return value
