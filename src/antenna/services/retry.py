"""Retry with exponential backoff for transient provider failures."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from antenna.core.settings import Settings, settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_PATTERNS: tuple[str, ...] = (
    "429",
    "rate limit",
    "too many requests",
    "timeout",
    "econnreset",
    "502",
    "503",
    "504",
    "server error",
)

# Fraction of the computed delay added as random jitter.
JITTER_RATIO = 0.25


@dataclass(frozen=True)
class RetryOptions:
    """Backoff parameters for :func:`with_retry`."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10_000

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> RetryOptions:
        config = config or settings
        return cls(
            max_retries=config.retry_max_retries,
            base_delay_ms=config.retry_base_delay_ms,
            max_delay_ms=config.retry_max_delay_ms,
        )

    def delay_seconds(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1``, jitter included."""
        delay_ms = min(self.base_delay_ms * 2**attempt, self.max_delay_ms)
        jitter_ms = random.random() * JITTER_RATIO * delay_ms
        return (delay_ms + jitter_ms) / 1000.0


DEFAULT_RETRY = RetryOptions()


def is_retryable_error(err: BaseException) -> bool:
    """Return True if ``err`` looks like a transient provider failure.

    Matching is a case-insensitive substring test on the error text, which is
    the only signal most providers give for throttling and gateway errors.
    """
    message = str(err).lower()
    return any(pattern in message for pattern in RETRYABLE_PATTERNS)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    **overrides: Any,
) -> T:
    """Await ``operation``, retrying transient failures with backoff.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        options: Backoff parameters. Defaults to :data:`DEFAULT_RETRY`.
        **overrides: Individual :class:`RetryOptions` fields to override.

    Returns:
        The first successful result.

    Raises:
        Exception: The last error, unchanged, when it is not retryable or
            retries are exhausted.
    """
    opts = options or DEFAULT_RETRY
    if overrides:
        opts = replace(opts, **overrides)

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as err:
            if attempt >= opts.max_retries or not is_retryable_error(err):
                raise
            delay = opts.delay_seconds(attempt)
            attempt += 1
            logger.warning(
                "Transient error (attempt %d/%d), retrying in %.2fs: %s",
                attempt,
                opts.max_retries,
                delay,
                err,
            )
            await asyncio.sleep(delay)
