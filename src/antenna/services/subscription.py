"""Background polling for new topic messages.

This module provides the MessageSubscription class, which polls the event
log for a topic, decodes new messages and hands each one to a callback
exactly once.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING

from antenna.core.errors import AntennaError
from antenna.core.settings import settings
from antenna.models.message import Message

if TYPE_CHECKING:
    from antenna.services.messaging import MessageCallback, MessagingClient

logger = logging.getLogger(__name__)

# Most recent transaction hashes remembered for de-duplication.
SEEN_CAPACITY = 1000


class MessageSubscription:
    """Periodically pulls new messages for one topic and delivers them.

    Stopping is cooperative: once :meth:`stop` returns, the callback is never
    invoked again. The callback may itself call :meth:`stop`.
    """

    def __init__(
        self,
        client: MessagingClient,
        topic_id: int,
        callback: MessageCallback,
        interval: float | None = None,
    ) -> None:
        self.client = client
        self.topic_id = topic_id
        self.callback = callback
        self.interval = max(0.01, float(interval if interval is not None else settings.poll_interval_seconds))
        self.last_block: int | None = None
        self._seen: dict[str, None] = {}
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background polling loop from the current head."""

        if self.running:
            return

        self._stopping.clear()
        if self.last_block is None:
            self.last_block = await self.client.events.block_number()
        self._task = asyncio.create_task(self._run())
        logger.info("Subscribed to topic %d from block %d", self.topic_id, self.last_block)

    async def stop(self) -> None:
        """Stop the polling loop; no callback fires after this returns."""

        if self._task is None:
            return

        self._stopping.set()
        task, self._task = self._task, None
        if task is asyncio.current_task():
            return
        await task
        logger.info("Unsubscribed from topic %d", self.topic_id)

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.poll_once()
            except AntennaError as e:
                logger.warning("Poll for topic %d failed: %s", self.topic_id, e)
            except (OSError, TimeoutError) as e:
                logger.warning("Poll for topic %d hit a network error: %s", self.topic_id, e)
            except (ValueError, TypeError, KeyError, IndexError) as e:
                logger.error("Poll for topic %d could not decode data: %s", self.topic_id, e, exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    async def poll_once(self) -> int:
        """Fetch and deliver messages past the last seen block.

        Returns:
            The number of messages delivered.
        """
        head = await self.client.events.block_number()
        start = self.last_block if self.last_block is not None else head - 1
        if head <= start:
            return 0

        messages = await self.client.messages_between(self.topic_id, start + 1, head)
        self.last_block = head

        delivered = 0
        for message in messages:
            if self._stopping.is_set():
                break
            if message.tx_hash in self._seen:
                continue
            self._remember(message.tx_hash)
            await self._deliver(message)
            delivered += 1
        return delivered

    def _remember(self, tx_hash: str) -> None:
        self._seen[tx_hash] = None
        while len(self._seen) > SEEN_CAPACITY:
            self._seen.pop(next(iter(self._seen)))

    async def _deliver(self, message: Message) -> None:
        try:
            result = self.callback(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Subscription callback failed for %s", message.tx_hash)
