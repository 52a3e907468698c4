"""Ledger collaborators and the JSON-RPC event log client.

The key, escrow and messaging services talk to the ledger only through the
protocols defined here. ``JsonRpcEventLog`` is the concrete read side used
for history scans, subscriptions, token metadata and confirmations.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx

from antenna.core.errors import ConfirmationTimeoutError, ProviderError
from antenna.core.settings import Settings, settings
from antenna.models.escrow import EscrowConfig, EscrowDeposit
from antenna.models.keys import KeyGrant, TopicInfo
from antenna.models.message import LogEntry, LogFilter
from antenna.services.retry import RetryOptions, with_retry
from antenna.services.rpc_errors import classify_rpc_error
from antenna.utils.abi import DECIMALS_SELECTOR, decode_uint_result
from antenna.utils.cache import SessionCache
from antenna.utils.encoding import normalize_address

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_OK = 200
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500

RECEIPT_POLL_SECONDS = 1.0


@runtime_checkable
class EventLog(Protocol):
    """Append-only, block-indexed log of ledger events."""

    async def block_number(self) -> int: ...

    async def get_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> list[LogEntry]: ...


class MessageSink(Protocol):
    """Write side for messages: submits an opaque payload, returns the tx hash."""

    async def submit_message(self, topic_id: int, payload: bytes) -> str: ...


class TopicRegistry(Protocol):
    """Read access to topic metadata."""

    async def get_topic(self, topic_id: int) -> TopicInfo: ...


class KeyRegistry(Protocol):
    """On-chain store of ECDH public keys and topic key grants.

    Write methods return the submitted transaction hash.
    """

    async def has_public_key(self, address: str) -> bool: ...

    async def get_public_key(self, address: str) -> bytes: ...

    async def register_public_key(self, public_key: bytes) -> str: ...

    async def get_key_grant(self, topic_id: int, address: str) -> KeyGrant | None: ...

    async def has_key_access(self, topic_id: int, address: str) -> bool: ...

    async def key_version(self, topic_id: int) -> int: ...

    async def grant_key_access(self, topic_id: int, recipient: str, encrypted_key: bytes) -> str: ...

    async def batch_grant_key_access(
        self, topic_id: int, recipients: Sequence[str], encrypted_keys: Sequence[bytes]
    ) -> str: ...

    async def revoke_key_access(self, topic_id: int, recipient: str) -> str: ...

    async def rotate_key(self, topic_id: int) -> str: ...


class EscrowLedger(Protocol):
    """Read access to escrow deposits and per-topic escrow settings."""

    async def get_deposit(self, deposit_id: int) -> EscrowDeposit: ...

    async def get_pending_deposits(self, topic_id: int) -> list[int]: ...

    async def get_escrow_config(self, topic_id: int) -> EscrowConfig: ...


class TokenMetadata(Protocol):
    """ERC-20 token metadata lookups."""

    async def token_decimals(self, token: str) -> int: ...


class JsonRpcEventLog:
    """Minimal Ethereum JSON-RPC client over ``httpx``.

    Transient failures are retried with backoff. Errors that survive the
    retries are re-raised as ``ProviderError`` carrying a hint about the
    likely cause.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        *,
        config: Settings | None = None,
        retry: RetryOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or settings
        self.rpc_url = rpc_url or self.config.effective_rpc_url
        self.chain_name = self.config.chain
        self.retry = retry or RetryOptions.from_settings(self.config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._decimals: SessionCache[str, int] = SessionCache()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.http_timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _call(self, method: str, params: list[Any]) -> Any:
        client = await self._ensure_client()
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        try:
            response = await client.post(self.rpc_url, json=body)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"{method} request timeout: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"NETWORK_ERROR: {method} request failed: {exc}") from exc

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            raise ProviderError(f"HTTP 429 Too Many Requests for {method}", code=response.status_code)
        if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
            raise ProviderError(
                f"HTTP {response.status_code} server error for {method}",
                code=response.status_code,
            )
        if response.status_code != HTTP_OK:
            raise ProviderError(
                f"Unexpected RPC response ({response.status_code}) for {method}",
                code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(f"BAD_DATA: {method} returned a non-JSON response") from exc

        error = payload.get("error")
        if error:
            raise ProviderError(
                f"{method} failed: {error.get('message', 'unknown error')} (code {error.get('code')})",
                code=error.get("code"),
                data=error.get("data"),
            )
        return payload.get("result")

    async def _with_hint(self, method: str, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await with_retry(operation, self.retry)
        except ProviderError as err:
            hint = classify_rpc_error(err, method, self.chain_name)
            if hint is None:
                raise
            raise ProviderError(hint, code=err.code, data=err.data) from err

    async def block_number(self) -> int:
        """Return the current head block."""

        async def fetch() -> int:
            return int(await self._call("eth_blockNumber", []), 16)

        return await self._with_hint("eth_blockNumber", fetch)

    async def get_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> list[LogEntry]:
        """Return logs matching ``log_filter`` in ``[from_block, to_block]``.

        Not retried here: the chunked scan retries each chunk itself.
        """
        result = await self._call("eth_getLogs", [log_filter.to_params(from_block, to_block)])
        return [LogEntry.from_rpc(item) for item in result or []]

    async def token_decimals(self, token: str) -> int:
        """Return an ERC-20 token's decimals, cached for the session."""

        async def load() -> int:
            async def fetch() -> int:
                result = await self._call(
                    "eth_call", [{"to": token, "data": DECIMALS_SELECTOR}, "latest"]
                )
                if not result or result == "0x":
                    raise ProviderError(f"could not decode result data for decimals() on {token}")
                return decode_uint_result(result)

            return await self._with_hint("decimals", fetch)

        return await self._decimals.get_or_load(normalize_address(token), load)

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Return the receipt for ``tx_hash`` or None while it is pending."""

        async def fetch() -> dict[str, Any] | None:
            return await self._call("eth_getTransactionReceipt", [tx_hash])

        return await self._with_hint("eth_getTransactionReceipt", fetch)

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: float | None = None,
        poll_interval: float = RECEIPT_POLL_SECONDS,
    ) -> dict[str, Any]:
        """Wait for ``tx_hash`` to be mined, bounded by ``timeout`` seconds.

        Raises:
            ConfirmationTimeoutError: If no receipt appears in time. The
                transaction may still confirm later; calling again is safe.
        """
        limit = self.config.confirmation_timeout_seconds if timeout is None else timeout

        async def poll() -> dict[str, Any]:
            while True:
                receipt = await self.get_transaction_receipt(tx_hash)
                if receipt is not None:
                    return receipt
                await asyncio.sleep(poll_interval)

        try:
            return await asyncio.wait_for(poll(), timeout=limit)
        except asyncio.TimeoutError as exc:
            logger.warning("Timed out after %.1fs waiting for %s", limit, tx_hash)
            raise ConfirmationTimeoutError(tx_hash, limit) from exc

    async def aclose(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
