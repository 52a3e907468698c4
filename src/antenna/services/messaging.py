"""Sending and reading encrypted topic messages."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from antenna.core.errors import WalletRequiredError
from antenna.core.settings import Settings, settings
from antenna.models.message import LogEntry, LogFilter, Message
from antenna.services.e2e_messages import DECRYPTION_FAILED_TEXT, E2EMessageService
from antenna.services.key_grants import KeyGrantService
from antenna.services.ledger import EventLog, MessageSink
from antenna.services.log_scan import scan_logs_backward
from antenna.services.retry import RetryOptions
from antenna.utils.abi import (
    MESSAGE_SENT_TOPIC,
    decode_address_topic,
    decode_message_sent_data,
    encode_uint_topic,
)

if TYPE_CHECKING:
    from antenna.services.subscription import MessageSubscription

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Message], Awaitable[None] | None]


def decode_message(entry: LogEntry, topic_id: int, key: bytes) -> Message:
    """Decode one ``MessageSent`` log and decrypt its payload.

    A payload that cannot be decrypted yields a placeholder message with
    ``decrypted=False`` rather than an error.
    """
    sender = decode_address_topic(entry.topics[2])
    payload, timestamp = decode_message_sent_data(entry.data)

    content = None
    try:
        content = E2EMessageService.decrypt_message(payload.decode("utf-8"), key)
    except UnicodeDecodeError:
        logger.debug("Payload in %s is not UTF-8", entry.transaction_hash)

    if content is None:
        return Message(
            topic_id=topic_id,
            sender=sender,
            text=DECRYPTION_FAILED_TEXT,
            reply_to=None,
            reply_text=None,
            reply_author=None,
            mentions=None,
            timestamp=timestamp,
            tx_hash=entry.transaction_hash,
            block_number=entry.block_number,
            decrypted=False,
        )

    return Message(
        topic_id=topic_id,
        sender=sender,
        text=content.text,
        reply_to=content.reply_to,
        reply_text=content.reply_text,
        reply_author=content.reply_author,
        mentions=content.mentions,
        timestamp=timestamp,
        tx_hash=entry.transaction_hash,
        block_number=entry.block_number,
    )


class MessagingClient:
    """A session for one identity sending and reading topic messages."""

    def __init__(
        self,
        events: EventLog,
        keys: KeyGrantService,
        sink: MessageSink | None = None,
        config: Settings | None = None,
    ) -> None:
        self.events = events
        self.keys = keys
        self.sink = sink
        self.config = config or settings
        self.retry = RetryOptions.from_settings(self.config)

    def message_filter(self, topic_id: int) -> LogFilter:
        return LogFilter(
            address=self.config.chain_config.registry,
            topics=[MESSAGE_SENT_TOPIC, encode_uint_topic(topic_id)],
        )

    async def send_message(
        self,
        topic_id: int,
        text: str,
        reply_to: str | None = None,
        reply_text: str | None = None,
        reply_author: str | None = None,
        mentions: list[str] | None = None,
    ) -> str:
        """Encrypt ``text`` with the topic's key and submit it.

        Returns:
            The submitted transaction hash.
        """
        if self.sink is None:
            raise WalletRequiredError("Sending messages requires a configured wallet")

        resolved = await self.keys.resolve_topic_key(topic_id)
        payload = E2EMessageService.encrypt_message(
            text,
            resolved.key,
            reply_to=reply_to,
            reply_text=reply_text,
            reply_author=reply_author,
            mentions=mentions,
        )
        tx_hash = await self.sink.submit_message(topic_id, payload.encode("utf-8"))
        logger.info("Sent message to topic %d in %s", topic_id, tx_hash)
        return tx_hash

    async def read_messages(
        self,
        topic_id: int,
        limit: int | None = None,
        from_block: int | None = None,
        lookback: int | None = None,
    ) -> list[Message]:
        """Return the most recent messages of a topic, oldest first.

        Args:
            topic_id: Topic to read.
            limit: Number of messages wanted; defaults to the configured limit.
            from_block: Oldest block to scan; overrides ``lookback``.
            lookback: Blocks to scan back from head; defaults to the chain's window.
        """
        entries = await scan_logs_backward(
            self.events,
            self.message_filter(topic_id),
            limit=self.config.read_limit if limit is None else limit,
            max_range=self.config.effective_lookback if lookback is None else lookback,
            from_block=from_block,
            chunk_size=self.config.log_chunk_size,
            retry=self.retry,
        )
        return await self._decode_all(topic_id, entries)

    async def messages_between(self, topic_id: int, from_block: int, to_block: int) -> list[Message]:
        """Return every message of a topic in ``[from_block, to_block]``."""
        entries = await scan_logs_backward(
            self.events,
            self.message_filter(topic_id),
            limit=None,
            head=to_block,
            from_block=from_block,
            chunk_size=self.config.log_chunk_size,
            retry=self.retry,
        )
        return await self._decode_all(topic_id, entries)

    async def _decode_all(self, topic_id: int, entries: list[LogEntry]) -> list[Message]:
        if not entries:
            return []
        resolved = await self.keys.resolve_topic_key(topic_id)
        messages = [decode_message(entry, topic_id, resolved.key) for entry in entries]
        failed = sum(1 for m in messages if not m.decrypted)
        if failed:
            logger.warning("%d of %d message(s) on topic %d failed to decrypt", failed, len(messages), topic_id)
        return messages

    async def subscribe(self, topic_id: int, callback: MessageCallback) -> MessageSubscription:
        """Start polling ``topic_id`` for new messages and return the running subscription."""
        from antenna.services.subscription import MessageSubscription

        subscription = MessageSubscription(self, topic_id, callback, interval=self.config.poll_interval_seconds)
        await subscription.start()
        return subscription
