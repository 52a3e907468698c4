"""Classification of ledger provider and contract errors into actionable hints."""

from __future__ import annotations

import re
from collections.abc import Mapping

from antenna.core.errors import ProviderErrorKind
from antenna.services.retry import is_retryable_error

_WRONG_NETWORK_MARKERS = ("BAD_DATA", "could not decode result data")
_NETWORK_MARKERS = ("NETWORK_ERROR", "ECONNREFUSED", "fetch failed", "getaddrinfo")
_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests", "exceeded", "throttl")

# Known custom error selectors of the registry and key manager contracts.
ERROR_MAP: dict[str, str] = {
    "0xea8e4eb5": "NotAuthorized: you lack permission for this action",
    "0x291fc442": "NotMember: address is not a member of this app",
    "0x810074be": "AlreadyMember: address is already a member",
    "0x5e03d55f": "CannotRemoveSelf: owner cannot remove themselves",
    "0x17b29d2e": "ApplicationNotFound: app ID does not exist",
    "0x04a29d55": "TopicNotFound: topic ID does not exist",
    "0x430f13b3": "InvalidName: name is empty or invalid",
    "0x9e4b2685": "NameTaken: that name is already in use",
    "0xa2d0fee8": "InvalidPublicKey: must be 33-byte compressed secp256k1 key",
    "0x16ea6d54": "PublicKeyNotRegistered: user has no ECDH key (register one first)",
    "0x5303c506": "InvalidEncryptedKey: encrypted key too short or malformed",
    "0xf4d678b8": "InsufficientBalance: not enough tokens",
    "0x13be252b": "InsufficientAllowance: token allowance too low",
    "0x0c79a8da": "InvalidAccessLevel: use public, limited, or private",
    "0x15b3521e": "NicknameCooldownActive: wait before changing nickname again",
    "0xae0ca2dd": "SchemaNotFound: schema ID does not exist",
    "0x03230700": "AppNameTaken: schema name already used in this app",
}

_DATA_PATTERNS = (
    re.compile(r'data="(0x[0-9a-fA-F]+)"'),
    re.compile(r'error=\{[^}]*"data":"(0x[0-9a-fA-F]+)"'),
    re.compile(r"(0x[0-9a-fA-F]{8})"),
)


def _contains_any(message: str, markers: tuple[str, ...]) -> bool:
    return any(marker in message for marker in markers)


def classify_rpc_error(err: BaseException, method: str, chain_name: str) -> str | None:
    """Turn a provider failure into a hint naming the likely cause.

    Args:
        err: The error raised by the provider.
        method: Name of the call that failed, for the message.
        chain_name: Configured chain, for the message.

    Returns:
        A human-readable hint, or None for unrecognized errors.
    """
    message = str(err)

    if _contains_any(message, _WRONG_NETWORK_MARKERS):
        return (
            f"{method} failed: contract may not be deployed on {chain_name}, or the RPC "
            "returned an empty response. Check that the correct chain and RPC URL are configured."
        )

    if _contains_any(message, _NETWORK_MARKERS):
        return (
            f"{method} failed: network error connecting to {chain_name} RPC. "
            "Check your RPC URL and network connectivity."
        )

    if _contains_any(message, _RATE_LIMIT_MARKERS):
        return (
            f"{method} failed: RPC rate limit hit on {chain_name}. The request was retried "
            "but the limit persists. Try again later or use a different RPC endpoint."
        )

    return None


def classify_error_kind(err: BaseException) -> ProviderErrorKind:
    """Return the tagged classification of a provider failure."""
    message = str(err)
    if _contains_any(message, _WRONG_NETWORK_MARKERS):
        return ProviderErrorKind.WRONG_NETWORK
    if _contains_any(message, _NETWORK_MARKERS):
        return ProviderErrorKind.NETWORK
    if is_retryable_error(err):
        return ProviderErrorKind.TRANSIENT
    return ProviderErrorKind.PERMANENT


def _lookup_selector(data: object) -> str | None:
    if isinstance(data, str) and data.startswith("0x"):
        return ERROR_MAP.get(data[:10].lower())
    return None


def decode_contract_error(err: BaseException) -> str:
    """Map a contract revert to a readable message when its selector is known.

    The selector is looked for in the error text first, then in a ``data``
    attribute, then in a nested ``info["error"]["data"]`` structure. Unknown
    errors return their own message.
    """
    message = str(err)

    for pattern in _DATA_PATTERNS:
        match = pattern.search(message)
        if match:
            decoded = _lookup_selector(match.group(1))
            if decoded:
                return decoded
            break

    decoded = _lookup_selector(getattr(err, "data", None))
    if decoded:
        return decoded

    info = getattr(err, "info", None)
    if isinstance(info, Mapping):
        inner = info.get("error")
        if isinstance(inner, Mapping):
            decoded = _lookup_selector(inner.get("data"))
            if decoded:
                return decoded

    return message
