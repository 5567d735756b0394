from __future__ import annotations

from prediction_resolver.pricing.coingecko import (
    CoinGeckoProvider,
    PricePoint,
    PriceProviderError,
)
from prediction_resolver.pricing.oracle import PriceOracle, nearest_sample, preview_oracle

__all__ = [
    "CoinGeckoProvider",
    "PricePoint",
    "PriceProviderError",
    "PriceOracle",
    "nearest_sample",
    "preview_oracle",
]
