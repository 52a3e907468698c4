"""Confidentiality and resilience services for Antenna topics."""

from .e2e_messages import E2EMessageService
from .escrow import EscrowService
from .key_grants import DerivedKey, GrantedKey, KeyGrantService
from .ledger import JsonRpcEventLog
from .messaging import MessagingClient
from .retry import RetryOptions, with_retry
from .subscription import MessageSubscription

__all__ = [
    "E2EMessageService",
    "EscrowService",
    "KeyGrantService",
    "DerivedKey",
    "GrantedKey",
    "JsonRpcEventLog",
    "MessagingClient",
    "MessageSubscription",
    "RetryOptions",
    "with_retry",
]
