# tests/conftest.py
from __future__ import annotations

import hashlib
from collections.abc import Sequence
from itertools import count
from unittest.mock import AsyncMock

import pytest
from eth_abi import encode

from antenna.core.constants import AccessLevel
from antenna.core.settings import Settings
from antenna.models.escrow import DepositStatus, EscrowConfig, EscrowDeposit
from antenna.models.keys import KeyGrant, TopicInfo
from antenna.models.message import LogEntry, LogFilter
from antenna.services.crypto import ECDHKeypair, keypair_from_private_key
from antenna.utils.abi import MESSAGE_SENT_TOPIC, encode_uint_topic
from antenna.utils.encoding import normalize_address

OWNER = "0x" + "11" * 20
READER = "0x" + "22" * 20
OUTSIDER = "0x" + "33" * 20

PUBLIC_TOPIC = 1
LIMITED_TOPIC = 2
PRIVATE_TOPIC = 3

_TX_COUNTER = count(1)


def next_tx_hash() -> str:
    return "0x" + f"{next(_TX_COUNTER):064x}"


def keypair_for(seed: int) -> ECDHKeypair:
    return keypair_from_private_key(f"{seed:064x}")


class FakeTopicRegistry:
    def __init__(self, topics: Sequence[TopicInfo] = ()) -> None:
        self.topics = {t.id: t for t in topics}

    async def get_topic(self, topic_id: int) -> TopicInfo:
        return self.topics[topic_id]


class FakeKeyLedger:
    """Shared on-chain key manager state; use :meth:`as_caller` per identity."""

    def __init__(self) -> None:
        self.public_keys: dict[str, bytes] = {}
        self.versions: dict[int, int] = {}
        self.grants: dict[tuple[int, str], KeyGrant] = {}
        self.batch_calls: list[tuple[int, list[str]]] = []

    def as_caller(self, address: str) -> FakeKeyRegistry:
        return FakeKeyRegistry(self, address)

    def version(self, topic_id: int) -> int:
        return self.versions.setdefault(topic_id, 1)


class FakeKeyRegistry:
    def __init__(self, ledger: FakeKeyLedger, caller: str) -> None:
        self.ledger = ledger
        self.caller = normalize_address(caller)

    async def has_public_key(self, address: str) -> bool:
        return normalize_address(address) in self.ledger.public_keys

    async def get_public_key(self, address: str) -> bytes:
        return self.ledger.public_keys[normalize_address(address)]

    async def register_public_key(self, public_key: bytes) -> str:
        self.ledger.public_keys[self.caller] = public_key
        return next_tx_hash()

    async def get_key_grant(self, topic_id: int, address: str) -> KeyGrant | None:
        grant = self.ledger.grants.get((topic_id, normalize_address(address)))
        if grant is None:
            return None
        return KeyGrant(
            encrypted_key=grant.encrypted_key,
            granter_public_key=grant.granter_public_key,
            granter=grant.granter,
            key_version=grant.key_version,
            granted_at=grant.granted_at,
            current_version=self.ledger.version(topic_id),
        )

    async def has_key_access(self, topic_id: int, address: str) -> bool:
        return (topic_id, normalize_address(address)) in self.ledger.grants

    async def key_version(self, topic_id: int) -> int:
        return self.ledger.version(topic_id)

    async def grant_key_access(self, topic_id: int, recipient: str, encrypted_key: bytes) -> str:
        self.ledger.grants[(topic_id, normalize_address(recipient))] = KeyGrant(
            encrypted_key=encrypted_key,
            granter_public_key=self.ledger.public_keys[self.caller],
            granter=self.caller,
            key_version=self.ledger.version(topic_id),
            granted_at=1_700_000_000,
        )
        return next_tx_hash()

    async def batch_grant_key_access(
        self, topic_id: int, recipients: Sequence[str], encrypted_keys: Sequence[bytes]
    ) -> str:
        self.ledger.batch_calls.append((topic_id, list(recipients)))
        for recipient, encrypted_key in zip(recipients, encrypted_keys):
            await self.grant_key_access(topic_id, recipient, encrypted_key)
        return next_tx_hash()

    async def revoke_key_access(self, topic_id: int, recipient: str) -> str:
        self.ledger.grants.pop((topic_id, normalize_address(recipient)), None)
        return next_tx_hash()

    async def rotate_key(self, topic_id: int) -> str:
        self.ledger.versions[topic_id] = self.ledger.version(topic_id) + 1
        return next_tx_hash()


def message_log(
    topic_id: int,
    sender: str,
    payload: bytes,
    block_number: int,
    timestamp: int = 1_700_000_000,
    tx_hash: str | None = None,
) -> LogEntry:
    sender_topic = "0x" + "00" * 12 + sender[2:].lower()
    return LogEntry(
        block_number=block_number,
        transaction_hash=tx_hash or next_tx_hash(),
        log_index=0,
        topics=[MESSAGE_SENT_TOPIC, encode_uint_topic(topic_id), sender_topic],
        data="0x" + encode(["bytes", "uint256"], [payload, timestamp]).hex(),
    )


class FakeEventLog:
    def __init__(self, head: int = 1000) -> None:
        self.head = head
        self.logs: list[LogEntry] = []
        self.requests: list[tuple[int, int]] = []

    async def block_number(self) -> int:
        return self.head

    async def get_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> list[LogEntry]:
        self.requests.append((from_block, to_block))
        wanted = [t for t in log_filter.topics if t is not None]
        return [
            log
            for log in self.logs
            if from_block <= log.block_number <= to_block
            and all(t in log.topics for t in wanted)
        ]


class FakeSink:
    """Mines each submitted message into the event log in a new block."""

    def __init__(self, events: FakeEventLog, sender: str) -> None:
        self.events = events
        self.sender = sender
        self.submitted: list[tuple[int, bytes]] = []

    async def submit_message(self, topic_id: int, payload: bytes) -> str:
        self.submitted.append((topic_id, payload))
        self.events.head += 1
        tx_hash = next_tx_hash()
        self.events.logs.append(message_log(topic_id, self.sender, payload, self.events.head, tx_hash=tx_hash))
        return tx_hash


class FakeEscrowLedger:
    def __init__(self, deposits: Sequence[EscrowDeposit] = (), config: EscrowConfig | None = None) -> None:
        self.deposits = {d.id: d for d in deposits}
        self.config = config or EscrowConfig(enabled=True, timeout=3600)

    async def get_deposit(self, deposit_id: int) -> EscrowDeposit:
        return self.deposits[deposit_id]

    async def get_pending_deposits(self, topic_id: int) -> list[int]:
        return [
            d.id
            for d in self.deposits.values()
            if d.topic_id == topic_id and d.status == DepositStatus.PENDING
        ]

    async def get_escrow_config(self, topic_id: int) -> EscrowConfig:
        return self.config


def make_signer(address: str):
    async def sign(message: str) -> str:
        digest = hashlib.sha256(f"{address}:{message}".encode()).hexdigest()
        return "0x" + digest + digest + "1b"

    return sign


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        ANTENNA_CHAIN="baseSepolia",
        ANTENNA_RETRY_BASE_DELAY_MS=1,
        ANTENNA_RETRY_MAX_DELAY_MS=2,
        ANTENNA_POLL_INTERVAL_SECONDS=0.01,
        ANTENNA_LOOKBACK_BLOCKS=10_000,
    )


@pytest.fixture
def topics() -> FakeTopicRegistry:
    return FakeTopicRegistry(
        [
            TopicInfo(id=PUBLIC_TOPIC, owner=OWNER, access_level=AccessLevel.PUBLIC),
            TopicInfo(id=LIMITED_TOPIC, owner=OWNER, access_level=AccessLevel.PUBLIC_LIMITED),
            TopicInfo(id=PRIVATE_TOPIC, owner=OWNER, access_level=AccessLevel.PRIVATE),
        ]
    )


@pytest.fixture
def key_ledger() -> FakeKeyLedger:
    return FakeKeyLedger()


@pytest.fixture
def event_log() -> FakeEventLog:
    return FakeEventLog()


@pytest.fixture
def no_sleep(mocker) -> AsyncMock:
    return mocker.patch("antenna.services.retry.asyncio.sleep", new_callable=AsyncMock)
