"""Key-value capability used for resolution locks and price caching."""

from __future__ import annotations

import logging
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool: ...

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisStore:
    """KeyValueStore backed by redis-py's asyncio client."""

    def __init__(self, url: str, client: aioredis.Redis | None = None) -> None:
        self._url = url
        self._client = client

    def connect(self) -> None:
        if self._client is None:
            self._client = aioredis.from_url(
                self._url, decode_responses=True, retry_on_timeout=True,
            )
            logger.info("Redis client created for %s", self._url.split("@")[-1])

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        # SET key value NX EX ttl: returns None when the key already exists
        return bool(await self.client.set(key, value, nx=True, ex=ttl_seconds))

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, RuntimeError):
            logger.exception("Redis health check failed")
            return False
