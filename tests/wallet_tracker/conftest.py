"""
Shared fixtures for wallet tracker tests.

- SQLite in-memory database + gateway
- FakeRedis: in-process stand-in for the redis.asyncio client commands
  the job queue uses
- StubAdapter: scripted chain adapter; on_transfers is an awaited hook
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from wallet_tracker.adapters import AdapterRegistry, BaseChainAdapter
from wallet_tracker.config import ChainConfig, DatabaseConfig, QueueConfig, TrackingConfig
from wallet_tracker.job_queue import RedisJobQueue
from wallet_tracker.models import Chain, TokenSwap, TokenTransfer
from wallet_tracker.persistence import Database, PersistenceGateway
from wallet_tracker.service import WalletTrackingService


# ============================================================
# REDIS DOUBLE
# ============================================================

class FakeRedis:
    """
    Minimal in-memory Redis.

    Lists are Python lists with index 0 as the LEFT end.
    Set fail_next to make the next N commands raise ConnectionError.
    """

    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.fail_next = 0
        self.closed = False

    def _maybe_fail(self) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise RedisConnectionError("Connection refused")

    def _list(self, name: str) -> list[str]:
        return self.lists.setdefault(name, [])

    async def ping(self) -> bool:
        self._maybe_fail()
        return True

    async def lpush(self, name: str, *values: str) -> int:
        self._maybe_fail()
        lst = self._list(name)
        for value in values:
            lst.insert(0, value)
        return len(lst)

    async def rpush(self, name: str, *values: str) -> int:
        self._maybe_fail()
        lst = self._list(name)
        lst.extend(values)
        return len(lst)

    async def lmove(self, first_list: str, second_list: str, src: str = "LEFT", dest: str = "RIGHT") -> Optional[str]:
        self._maybe_fail()
        source = self._list(first_list)
        if not source:
            return None
        value = source.pop(0) if src == "LEFT" else source.pop()
        target = self._list(second_list)
        if dest == "LEFT":
            target.insert(0, value)
        else:
            target.append(value)
        return value

    async def blmove(self, first_list: str, second_list: str, timeout: float, src: str = "LEFT", dest: str = "RIGHT") -> Optional[str]:
        value = await self.lmove(first_list, second_list, src, dest)
        if value is None:
            await asyncio.sleep(0)
        return value

    async def lrem(self, name: str, count: int, value: str) -> int:
        self._maybe_fail()
        lst = self._list(name)
        removed = 0
        while value in lst and (count == 0 or removed < count):
            lst.remove(value)
            removed += 1
        return removed

    async def llen(self, name: str) -> int:
        self._maybe_fail()
        return len(self._list(name))

    async def zadd(self, name: str, mapping: dict[str, float]) -> int:
        self._maybe_fail()
        zset = self.zsets.setdefault(name, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zrangebyscore(self, name: str, min: float, max: float, start: Optional[int] = None, num: Optional[int] = None) -> list[str]:
        self._maybe_fail()
        zset = self.zsets.get(name, {})
        members = [m for m, s in sorted(zset.items(), key=lambda kv: kv[1]) if min <= s <= max]
        if start is not None and num is not None:
            members = members[start:start + num]
        return members

    async def zrem(self, name: str, *members: str) -> int:
        self._maybe_fail()
        zset = self.zsets.get(name, {})
        removed = 0
        for member in members:
            if zset.pop(member, None) is not None:
                removed += 1
        return removed

    async def zcard(self, name: str) -> int:
        self._maybe_fail()
        return len(self.zsets.get(name, {}))

    async def aclose(self) -> None:
        self.closed = True


# ============================================================
# CHAIN ADAPTER STUB
# ============================================================

class StubAdapter(BaseChainAdapter):
    """Adapter returning scripted heights and events, recording calls."""

    def __init__(self, chain: Chain = Chain.APTOS, height: int = 5000) -> None:
        super().__init__(ChainConfig(chain=chain, api_url="http://stub.invalid"))
        self._chain = chain
        self.height = height
        self.transfers: list[TokenTransfer] = []
        self.swaps: list[TokenSwap] = []
        self.error: Optional[Exception] = None
        self.on_transfers = None
        self.calls: list[tuple[str, str, int, Optional[int]]] = []

    @property
    def chain(self) -> Chain:
        return self._chain

    async def current_height(self) -> int:
        if self.error is not None:
            raise self.error
        return self.height

    async def token_transfers(self, address: str, from_block: int, to_block: Optional[int] = None) -> list[TokenTransfer]:
        self.calls.append(("transfers", address, from_block, to_block))
        if self.on_transfers is not None:
            await self.on_transfers()
        return list(self.transfers)

    async def token_swaps(self, address: str, from_block: int, to_block: Optional[int] = None) -> list[TokenSwap]:
        self.calls.append(("swaps", address, from_block, to_block))
        return list(self.swaps)


def make_transfer(tx_hash: str = "0xtx1", block_height: int = 4500, amount: str = "1000") -> TokenTransfer:
    return TokenTransfer(
        token_address="0x1::aptos_coin::AptosCoin",
        amount=amount,
        from_address="0xsender",
        to_address="0xwallet",
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        transaction_hash=tx_hash,
        block_height=block_height,
    )


def make_swap(tx_hash: str = "0xswap1", block_height: int = 4600) -> TokenSwap:
    return TokenSwap(
        token_in_address="0x1::aptos_coin::AptosCoin",
        amount_in="500",
        token_out_address="0xabc::usdc::USDC",
        amount_out="42",
        exchange_address="0xdex",
        wallet_address="0xwallet",
        timestamp=datetime(2024, 5, 1, 12, 5, tzinfo=timezone.utc),
        transaction_hash=tx_hash,
        block_height=block_height,
    )


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
async def database():
    db = Database(DatabaseConfig(url="sqlite:///:memory:"))
    await db.create_all_tables()
    yield db
    await db.dispose()


@pytest.fixture
def gateway(database):
    return PersistenceGateway(database)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def queue_config():
    return QueueConfig(queue_name="test_queue", reconnect_delay_seconds=0, poll_timeout_seconds=0)


@pytest.fixture
def queue(fake_redis, queue_config):
    return RedisJobQueue(queue_config, client=fake_redis)


@pytest.fixture
def stub_adapter():
    return StubAdapter(Chain.APTOS, height=5000)


@pytest.fixture
def registry(stub_adapter):
    registry = AdapterRegistry()
    registry.register(stub_adapter)
    return registry


@pytest.fixture
def tracking_config():
    return TrackingConfig(bootstrap_retry_seconds=0)


@pytest.fixture
def service(registry, gateway, queue, tracking_config):
    return WalletTrackingService(registry, gateway, queue, tracking_config)


def ready_jobs(fake_redis: FakeRedis, queue_name: str = "test_queue") -> list[dict[str, Any]]:
    """Jobs on the ready list, next-to-deliver first."""
    return [json.loads(raw)["job"] for raw in reversed(fake_redis.lists.get(queue_name, []))]


def delayed_jobs(fake_redis: FakeRedis, queue_name: str = "test_queue") -> list[tuple[dict[str, Any], float]]:
    """(job, due_time) pairs in the delayed set, earliest first."""
    zset = fake_redis.zsets.get(f"{queue_name}:delayed", {})
    return [
        (json.loads(raw)["job"], score)
        for raw, score in sorted(zset.items(), key=lambda kv: kv[1])
    ]
