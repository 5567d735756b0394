from __future__ import annotations

import logging
import time

from prediction_resolver.store.kv import KeyValueStore

logger = logging.getLogger(__name__)

LOCK_PREFIX = "resolution_lock:"


class LockManager:
    """Per-actor mutual exclusion over a KeyValueStore.

    A held lock is a key whose value is the acquisition time in
    milliseconds. Locks always carry a TTL, so a crashed holder only blocks
    the actor until expiry.
    """

    def __init__(self, store: KeyValueStore, prefix: str = LOCK_PREFIX) -> None:
        self._store = store
        self._prefix = prefix

    def _key(self, owner: str) -> str:
        return f"{self._prefix}{owner}"

    async def acquire(self, owner: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            raise ValueError(f"Lock TTL must be positive, got {ttl_seconds}")
        acquired = await self._store.set_if_absent(
            self._key(owner), str(int(time.time() * 1000)), ttl_seconds,
        )
        if acquired:
            logger.debug("Acquired resolution lock for %s (ttl=%ds)", owner, ttl_seconds)
        else:
            logger.info("Resolution lock already held for %s", owner)
        return acquired

    async def release(self, owner: str) -> None:
        """Delete the lock; a no-op if it already expired or was never held."""
        await self._store.delete(self._key(owner))
        logger.debug("Released resolution lock for %s", owner)
