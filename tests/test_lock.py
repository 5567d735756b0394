from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from prediction_resolver.store.kv import RedisStore
from prediction_resolver.store.lock import LOCK_PREFIX, LockManager

from fakes import FakeClock, InMemoryStore


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(FakeClock())


class TestLockManager:
    @pytest.mark.asyncio
    async def test_acquire_then_conflict(self, store: InMemoryStore) -> None:
        locks = LockManager(store)
        assert await locks.acquire("alice", 30) is True
        assert await locks.acquire("alice", 30) is False

    @pytest.mark.asyncio
    async def test_actors_are_independent(self, store: InMemoryStore) -> None:
        locks = LockManager(store)
        assert await locks.acquire("alice", 30)
        assert await locks.acquire("bob", 30)

    @pytest.mark.asyncio
    async def test_release_allows_reacquire(self, store: InMemoryStore) -> None:
        locks = LockManager(store)
        await locks.acquire("alice", 30)
        await locks.release("alice")
        assert await locks.acquire("alice", 30)

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, store: InMemoryStore) -> None:
        locks = LockManager(store)
        await locks.release("nobody")
        await locks.release("nobody")

    @pytest.mark.asyncio
    async def test_expires_after_ttl(self, store: InMemoryStore) -> None:
        locks = LockManager(store)
        await locks.acquire("alice", 120)
        store.clock.advance(119)
        assert await locks.acquire("alice", 120) is False
        store.clock.advance(1)
        assert await locks.acquire("alice", 120) is True

    @pytest.mark.asyncio
    async def test_key_and_value(self, store: InMemoryStore) -> None:
        locks = LockManager(store)
        await locks.acquire("alice", 30)
        value, _ = store.data[f"{LOCK_PREFIX}alice"]
        assert value.isdigit()
        assert store.ttl("resolution_lock:alice") == 30

    @pytest.mark.asyncio
    async def test_rejects_non_positive_ttl(self, store: InMemoryStore) -> None:
        with pytest.raises(ValueError):
            await LockManager(store).acquire("alice", 0)

    @pytest.mark.asyncio
    async def test_concurrent_acquire_single_winner(self, store: InMemoryStore) -> None:
        locks = LockManager(store)
        results = await asyncio.gather(*(locks.acquire("alice", 30) for _ in range(10)))
        assert results.count(True) == 1


class TestRedisStore:
    def _store(self) -> tuple[RedisStore, MagicMock]:
        client = MagicMock()
        client.set = AsyncMock()
        client.get = AsyncMock()
        client.delete = AsyncMock()
        client.ping = AsyncMock(return_value=True)
        return RedisStore("redis://localhost:6379", client=client), client

    @pytest.mark.asyncio
    async def test_set_if_absent_uses_nx(self) -> None:
        store, client = self._store()
        client.set.return_value = True
        assert await store.set_if_absent("k", "v", 30) is True
        client.set.assert_awaited_once_with("k", "v", nx=True, ex=30)

    @pytest.mark.asyncio
    async def test_set_if_absent_existing_key(self) -> None:
        store, client = self._store()
        client.set.return_value = None
        assert await store.set_if_absent("k", "v", 30) is False

    @pytest.mark.asyncio
    async def test_set_with_ttl(self) -> None:
        store, client = self._store()
        await store.set("k", "v", 300)
        client.set.assert_awaited_once_with("k", "v", ex=300)

    @pytest.mark.asyncio
    async def test_health_check(self) -> None:
        store, _ = self._store()
        assert await store.health_check() is True

    def test_client_requires_connect(self) -> None:
        with pytest.raises(RuntimeError):
            RedisStore("redis://localhost:6379").client
