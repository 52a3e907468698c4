# src/antenna/models/__init__.py
"""Domain models for the Antenna client layer."""

from .escrow import DepositStatus, EscrowConfig, EscrowDeposit
from .keys import KeyGrant, PendingGrant, PendingGrants, TopicInfo
from .message import LogEntry, LogFilter, Message

__all__ = [
    "DepositStatus", "EscrowConfig", "EscrowDeposit",
    "KeyGrant", "PendingGrant", "PendingGrants", "TopicInfo",
    "LogEntry", "LogFilter", "Message",
]
