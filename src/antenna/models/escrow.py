"""Models describing escrow deposits."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum

from antenna.core.errors import DepositStateError


class DepositStatus(IntEnum):
    """On-chain deposit status. Values match the contract enum."""

    PENDING = 0
    RELEASED = 1
    REFUNDED = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def is_final(self) -> bool:
        return self is not DepositStatus.PENDING


@dataclass(frozen=True)
class EscrowConfig:
    """Per-topic escrow settings."""

    enabled: bool
    timeout: int


@dataclass(frozen=True)
class EscrowDeposit:
    """Funds escrowed by ``sender`` against a response from ``recipient``.

    ``deposited_at + timeout`` is fixed at creation and is the earliest time a
    Pending deposit may be refunded.
    """

    id: int
    topic_id: int
    sender: str
    recipient: str
    token: str
    amount: int
    app_owner: str
    deposited_at: int
    timeout: int
    status: DepositStatus = DepositStatus.PENDING

    @property
    def deadline(self) -> int:
        return self.deposited_at + self.timeout

    def with_status(self, status: DepositStatus) -> EscrowDeposit:
        """Return a copy in ``status``, refusing non-monotonic transitions."""
        if status == self.status:
            return self
        if self.status.is_final:
            raise DepositStateError(
                f"Deposit #{self.id} is already {self.status.label}; "
                f"it cannot become {status.label}"
            )
        return replace(self, status=status)
