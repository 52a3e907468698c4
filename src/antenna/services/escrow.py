"""Escrow deposit timing and status helpers.

The timer functions are pure so a deposit's refund status can be explained
without a ledger round trip once its metadata is known. The ledger remains
the authority on a deposit's actual status.
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal

from antenna.core.errors import InvalidTimeoutError
from antenna.models.escrow import DepositStatus, EscrowConfig, EscrowDeposit
from antenna.services.ledger import EscrowLedger, TokenMetadata

logger = logging.getLogger(__name__)

ESCROW_MIN_TIMEOUT = 60
ESCROW_MAX_TIMEOUT = 604_800

ESCROW_TIMEOUT_OPTIONS: tuple[tuple[int, str], ...] = (
    (300, "5 minutes"),
    (3600, "1 hour"),
    (21_600, "6 hours"),
    (86_400, "1 day"),
    (259_200, "3 days"),
    (604_800, "7 days"),
)

DEPOSIT_STATUS_LABELS: tuple[str, ...] = tuple(status.label for status in DepositStatus)

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86_400


def _now(now: int | None) -> int:
    return int(time.time()) if now is None else now


def get_deposit_deadline(deposited_at: int, timeout: int) -> int:
    """Return the Unix time at which a deposit becomes refundable."""
    return deposited_at + timeout


def is_deposit_expired(deposited_at: int, timeout: int, now: int | None = None) -> bool:
    """Return True once the deadline is reached (the deadline itself counts)."""
    return _now(now) >= get_deposit_deadline(deposited_at, timeout)


def time_until_refund(deposited_at: int, timeout: int, now: int | None = None) -> int:
    """Seconds left until a deposit becomes refundable, never negative."""
    return max(0, get_deposit_deadline(deposited_at, timeout) - _now(now))


def format_duration(seconds: int) -> str:
    """Render a duration such as ``"1d 1h 1m"``.

    Seconds are shown only when there are no whole hours or days.
    Non-positive input renders as ``"0s"``.
    """
    if seconds <= 0:
        return "0s"

    days, rest = divmod(int(seconds), SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes, secs = divmod(rest, SECONDS_PER_MINUTE)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs and not days and not hours:
        parts.append(f"{secs}s")
    return " ".join(parts) or "0s"


def is_valid_timeout(seconds: object) -> bool:
    """Return True for an integer timeout within the accepted bounds."""
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        return False
    return ESCROW_MIN_TIMEOUT <= seconds <= ESCROW_MAX_TIMEOUT


def validate_timeout(seconds: object) -> int:
    """Return ``seconds`` if valid, else raise ``InvalidTimeoutError``."""
    if not is_valid_timeout(seconds):
        raise InvalidTimeoutError(
            f"Escrow timeout must be an integer between {ESCROW_MIN_TIMEOUT} and "
            f"{ESCROW_MAX_TIMEOUT} seconds, got {seconds!r}"
        )
    return seconds  # type: ignore[return-value]


class EscrowService:
    """Read-side helper for escrow deposits on a topic."""

    def __init__(self, ledger: EscrowLedger, tokens: TokenMetadata | None = None) -> None:
        self.ledger = ledger
        self.tokens = tokens

    async def get_deposit(self, deposit_id: int) -> EscrowDeposit:
        return await self.ledger.get_deposit(deposit_id)

    async def get_config(self, topic_id: int) -> EscrowConfig:
        return await self.ledger.get_escrow_config(topic_id)

    async def refundable_deposits(self, topic_id: int, now: int | None = None) -> list[EscrowDeposit]:
        """Return the topic's pending deposits whose deadline has passed."""
        ids = await self.ledger.get_pending_deposits(topic_id)
        deposits = await asyncio.gather(*(self.ledger.get_deposit(i) for i in ids))
        current = _now(now)
        refundable = [
            d
            for d in deposits
            if d.status == DepositStatus.PENDING and is_deposit_expired(d.deposited_at, d.timeout, current)
        ]
        logger.debug(
            "Topic %d: %d pending deposit(s), %d refundable", topic_id, len(deposits), len(refundable)
        )
        return refundable

    def describe(self, deposit: EscrowDeposit, now: int | None = None) -> str:
        """One-line status summary with the refund countdown for pending deposits."""
        line = f"Deposit #{deposit.id}: {deposit.status.label}"
        if deposit.status != DepositStatus.PENDING:
            return line
        if is_deposit_expired(deposit.deposited_at, deposit.timeout, now):
            return f"{line} (refundable now)"
        remaining = time_until_refund(deposit.deposited_at, deposit.timeout, now)
        return f"{line} (refundable in {format_duration(remaining)})"

    async def format_amount(self, token: str, amount: int) -> str:
        """Render a raw token amount in whole units using the token's decimals."""
        if self.tokens is None:
            return str(amount)
        decimals = await self.tokens.token_decimals(token)
        value = Decimal(amount).scaleb(-decimals)
        text = format(value, "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text
