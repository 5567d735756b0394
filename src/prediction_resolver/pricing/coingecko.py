"""CoinGecko market-chart provider for historical price series."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"

# Known truncated/incorrect asset IDs mapped to the provider's real ID.
ID_CORRECTIONS: dict[str, str] = {
    "canton": "canton-network",
}


class PriceProviderError(Exception):
    """The provider could not return a series (rate limit, unknown asset, transport)."""


@dataclass(frozen=True)
class PricePoint:
    timestamp_ms: int
    price: Decimal


@dataclass
class _RateLimiter:
    """Sliding one-minute window shared by concurrent lookups."""

    rpm_limit: int
    _timestamps: list[float] = field(default_factory=list)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def acquire(self) -> None:
        async with self._lock:
            now = time.monotonic()
            self._timestamps = [t for t in self._timestamps if now - t < 60]
            if len(self._timestamps) >= self.rpm_limit:
                wait = 60 - (now - self._timestamps[0])
                if wait > 0:
                    logger.info("CoinGecko rate limit: waiting %.1fs", wait)
                    await asyncio.sleep(wait)
            self._timestamps.append(time.monotonic())


def corrected_id(asset_id: str) -> str:
    fixed = ID_CORRECTIONS.get(asset_id.lower(), asset_id)
    if fixed != asset_id:
        logger.info("Corrected asset ID: %s -> %s", asset_id, fixed)
    return fixed


class CoinGeckoProvider:
    """Fetches ``/coins/{id}/market_chart/range`` series in USD."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        rpm_limit: int = 30,
        timeout_seconds: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._limiter = _RateLimiter(rpm_limit=rpm_limit)
        self._client = client

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_range(self, asset_id: str, from_ts: int, to_ts: int) -> list[PricePoint]:
        """Return (timestamp_ms, price) samples between two unix-second bounds."""
        if self._client is None:
            await self.start()
        coin = corrected_id(asset_id)
        params = {"vs_currency": "usd", "from": str(from_ts), "to": str(to_ts)}
        if self._api_key:
            params["x_cg_demo_api_key"] = self._api_key

        await self._limiter.acquire()
        try:
            response = await self._client.get(
                f"{self._base_url}/coins/{coin}/market_chart/range", params=params,
            )
        except httpx.HTTPError as exc:
            raise PriceProviderError(f"Transport error fetching {coin}: {exc}") from exc

        if response.status_code == 429:
            raise PriceProviderError("CoinGecko rate limit hit")
        if response.status_code == 404:
            raise PriceProviderError(f"Asset not found on CoinGecko: {coin}")
        if response.status_code >= 400:
            raise PriceProviderError(f"CoinGecko API error {response.status_code} for {coin}")

        try:
            body = response.json()
        except ValueError as exc:
            raise PriceProviderError(f"Invalid JSON from CoinGecko for {coin}") from exc
        if not isinstance(body, dict):
            raise PriceProviderError(f"Unexpected CoinGecko response for {coin}")
        raw = body.get("prices") or []
        if not isinstance(raw, list):
            raise PriceProviderError(f"Unexpected prices payload for {coin}")

        points: list[PricePoint] = []
        for item in raw:
            try:
                ts, price = item[0], item[1]
                points.append(PricePoint(int(ts), Decimal(str(price))))
            except (IndexError, TypeError, ValueError, InvalidOperation):
                logger.debug("Skipping malformed sample for %s: %r", coin, item)
        return points
