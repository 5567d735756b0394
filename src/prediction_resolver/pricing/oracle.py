"""Cache-aside historical price lookup with tolerance-bounded sample selection."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, Protocol

from prediction_resolver.pricing.coingecko import PricePoint, PriceProviderError
from prediction_resolver.store.kv import KeyValueStore

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60 * 60
MAX_DISTANCE_MS = 2 * 60 * 60 * 1000
HISTORICAL_TTL_SECONDS = 30 * 24 * 60 * 60
PREVIEW_TTL_SECONDS = 5 * 60

PriceKey = tuple[str, int]


class PriceProvider(Protocol):
    async def fetch_range(self, asset_id: str, from_ts: int, to_ts: int) -> list[PricePoint]: ...


def nearest_sample(
    points: Iterable[PricePoint], target_ms: int,
) -> tuple[PricePoint, int] | None:
    """Sample with minimum absolute distance to ``target_ms`` and that distance.

    Ties keep the earliest sample in input order.
    """
    best: PricePoint | None = None
    best_diff = 0
    for point in points:
        diff = abs(point.timestamp_ms - target_ms)
        if best is None or diff < best_diff:
            best, best_diff = point, diff
    if best is None:
        return None
    return best, best_diff


class PriceOracle:
    """Point-in-time price lookups.

    Historical prices never change, so hits are served from the cache for
    ``ttl_seconds``. Misses query the provider for ``target ± 1 hour`` and
    accept the nearest sample only if it lies within 2 hours of the target.
    Failures return None and are never cached.
    """

    def __init__(
        self,
        provider: PriceProvider,
        cache: KeyValueStore,
        ttl_seconds: int = HISTORICAL_TTL_SECONDS,
        key_prefix: str = "historical_price:",
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    def _cache_key(self, asset_id: str, timestamp: int) -> str:
        return f"{self._prefix}{asset_id}:{timestamp}"

    async def _cached(self, key: str) -> Decimal | None:
        try:
            value = await self._cache.get(key)
        except Exception:
            logger.warning("Price cache read failed for %s", key, exc_info=True)
            return None
        if value is None:
            return None
        try:
            return Decimal(value)
        except InvalidOperation:
            logger.warning("Discarding unparseable cached price %r for %s", value, key)
            return None

    async def get_price(self, asset_id: str, timestamp: int) -> Decimal | None:
        key = self._cache_key(asset_id, timestamp)
        cached = await self._cached(key)
        if cached is not None:
            logger.debug("Price cache hit for %s", key)
            return cached

        try:
            points = await self._provider.fetch_range(
                asset_id, timestamp - WINDOW_SECONDS, timestamp + WINDOW_SECONDS,
            )
        except PriceProviderError as exc:
            logger.warning("Price lookup failed for %s at %d: %s", asset_id, timestamp, exc)
            return None

        found = nearest_sample(points, timestamp * 1000)
        if found is None:
            logger.warning("No price data returned for %s around %d", asset_id, timestamp)
            return None
        point, diff_ms = found
        if diff_ms > MAX_DISTANCE_MS:
            logger.warning(
                "Nearest price for %s is %d min from target, exceeds %d min",
                asset_id, diff_ms // 60000, MAX_DISTANCE_MS // 60000,
            )
            return None

        logger.info(
            "Price for %s at %d: %s (%ds from target, %d samples)",
            asset_id, timestamp, point.price, diff_ms // 1000, len(points),
        )
        try:
            await self._cache.set(key, str(point.price), self._ttl)
        except Exception:
            logger.warning("Price cache write failed for %s", key, exc_info=True)
        return point.price

    async def get_prices(self, pairs: Iterable[PriceKey]) -> dict[PriceKey, Decimal | None]:
        """Resolve each (asset, timestamp) pair concurrently and independently."""
        keys = list(dict.fromkeys(pairs))
        results = await asyncio.gather(
            *(self.get_price(asset, ts) for asset, ts in keys), return_exceptions=True,
        )
        prices: dict[PriceKey, Decimal | None] = {}
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                logger.error("Price lookup for %s raised: %r", key, result)
                prices[key] = None
            else:
                prices[key] = result
        return prices


def preview_oracle(provider: PriceProvider, cache: KeyValueStore) -> PriceOracle:
    """Short-lived cache for previews, separate from the resolution cache."""
    return PriceOracle(
        provider, cache, ttl_seconds=PREVIEW_TTL_SECONDS, key_prefix="preview_price:",
    )
