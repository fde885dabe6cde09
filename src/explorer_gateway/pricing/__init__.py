"""Pricing services for fetching token USD prices."""

from explorer_gateway.pricing.providers import (
    BitgetProvider,
    CoinGeckoProvider,
    MexcProvider,
    OsmosisProvider,
    PriceProvider,
)
from explorer_gateway.pricing.waterfall import PriceWaterfall, default_providers

__all__ = [
    "BitgetProvider",
    "CoinGeckoProvider",
    "MexcProvider",
    "OsmosisProvider",
    "PriceProvider",
    "PriceWaterfall",
    "default_providers",
]
