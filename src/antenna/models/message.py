"""Models describing ledger logs and the messages decoded from them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class LogFilter:
    """Address and topic filter for an ``eth_getLogs`` query."""

    address: str
    topics: list[str | None] = field(default_factory=list)

    def to_params(self, from_block: int, to_block: int) -> dict[str, Any]:
        return {
            "address": self.address,
            "topics": list(self.topics),
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
        }


@dataclass(frozen=True)
class LogEntry:
    """A single raw log returned by the event log provider."""

    block_number: int
    transaction_hash: str
    log_index: int
    topics: list[str]
    data: str

    @classmethod
    def from_rpc(cls, payload: Mapping[str, Any]) -> LogEntry:
        """Build a log entry from a JSON-RPC log object (hex quantities)."""
        return cls(
            block_number=int(payload["blockNumber"], 16),
            transaction_hash=payload["transactionHash"],
            log_index=int(payload.get("logIndex", "0x0"), 16),
            topics=list(payload.get("topics", [])),
            data=payload.get("data", "0x"),
        )


@dataclass(frozen=True)
class Message:
    """A decoded and, when possible, decrypted topic message."""

    topic_id: int
    sender: str
    text: str
    reply_to: str | None
    reply_text: str | None
    reply_author: str | None
    mentions: list[str] | None
    timestamp: int
    tx_hash: str
    block_number: int
    decrypted: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-safe dictionary."""
        return {
            "topicId": self.topic_id,
            "sender": self.sender,
            "text": self.text,
            "replyTo": self.reply_to,
            "mentions": self.mentions,
            "timestamp": self.timestamp,
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
        }
