# src/antenna/schemas/__init__.py
"""
Pydantic schemas for wire formats exchanged through the ledger.
"""

from .envelope import EncryptedPayload, MessageContent

__all__ = [
    "EncryptedPayload",
    "MessageContent",
]
