"""Backward, chunked retrieval of historical ledger logs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from antenna.models.message import LogEntry, LogFilter
from antenna.services.retry import RetryOptions, with_retry

if TYPE_CHECKING:
    from antenna.services.ledger import EventLog

logger = logging.getLogger(__name__)

# Largest block span most public providers accept per eth_getLogs call.
DEFAULT_CHUNK_SIZE = 2000


def scan_range(head: int, max_range: int | None, from_block: int | None) -> tuple[int, int]:
    """Return ``(floor, stop)`` for a scan ending at ``head``.

    Chunk starts are clamped to ``floor`` and chunks are requested while
    their upper block is at least ``stop``. ``from_block`` wins when given
    and is read inclusively. A lookback window starts ``max_range`` blocks
    below ``head`` (never below block 0) and the scan ends once a chunk's
    upper block reaches that start, so the start block is only read when a
    chunk is clamped down to it.
    """
    if from_block is not None:
        start = max(from_block, 0)
        return start, start
    if max_range is None:
        return 0, 0
    start = max(head - max_range, 0)
    return start, start + 1


async def scan_logs_backward(
    source: EventLog,
    log_filter: LogFilter,
    *,
    limit: int | None,
    head: int | None = None,
    max_range: int | None = None,
    from_block: int | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    retry: RetryOptions | None = None,
) -> list[LogEntry]:
    """Fetch matching logs newest-chunk-first, returned in chronological order.

    Args:
        source: Event log provider.
        log_filter: Address/topic filter applied to every chunk.
        limit: Number of most recent entries wanted. ``None`` scans the whole
            range and returns everything.
        head: Newest block to scan; read from ``source`` when omitted. The
            source owns retries for that lookup.
        max_range: Lookback window in blocks, ignored when ``from_block`` is set.
        from_block: Oldest block to scan.
        chunk_size: Maximum blocks per provider request.
        retry: Backoff parameters for each chunk request.

    Returns:
        At most ``limit`` entries, oldest first, keeping the most recent ones.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    if limit is not None and limit <= 0:
        return []

    if head is None:
        head = await source.block_number()

    floor, stop = scan_range(head, max_range, from_block)
    to_block = head
    results: list[LogEntry] = []
    chunks = 0

    while to_block >= stop:
        chunk_from = max(to_block - chunk_size + 1, floor)

        async def fetch_chunk(start: int = chunk_from, end: int = to_block) -> list[LogEntry]:
            return await source.get_logs(log_filter, start, end)

        entries = await with_retry(fetch_chunk, retry)
        results = entries + results
        chunks += 1

        if limit is not None and len(results) >= limit:
            break
        to_block = chunk_from - 1

    logger.debug(
        "Scanned %d chunk(s) from block %d to %d: %d log(s)",
        chunks,
        floor,
        head,
        len(results),
    )
    if limit is None:
        return results
    return results[-limit:]
