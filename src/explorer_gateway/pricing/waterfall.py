"""Prioritized price lookup across several public providers."""

import logging
from collections.abc import Sequence

import httpx

from explorer_gateway.cache import MemoryCache
from explorer_gateway.core.models import PriceQuote
from explorer_gateway.pricing.providers import (
    BitgetProvider,
    CoinGeckoProvider,
    MexcProvider,
    OsmosisProvider,
    PriceProvider,
)

logger = logging.getLogger(__name__)

PRICE_TTL = 60.0


def default_providers(timeout: float = 5.0, listing_timeout: float = 10.0) -> list[PriceProvider]:
    """Providers in preference order: CoinGecko, MEXC, Bitget, Osmosis."""
    return [
        CoinGeckoProvider(timeout=timeout),
        MexcProvider(timeout=timeout),
        BitgetProvider(timeout=timeout),
        OsmosisProvider(timeout=timeout, listing_timeout=listing_timeout),
    ]


class PriceWaterfall:
    """
    Queries price providers in a fixed order until one yields a price.

    A provider that raises or has no price is skipped silently. Hits are
    cached per symbol.

    Parameters
    ----------
    client : httpx.AsyncClient
        Shared HTTP client
    providers : Sequence[PriceProvider] | None
        Providers in preference order. Uses :func:`default_providers` if None.
    cache : MemoryCache | None
        Quote cache. A private one is created if None.
    ttl : float
        Quote lifetime in seconds

    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        providers: Sequence[PriceProvider] | None = None,
        cache: MemoryCache | None = None,
        ttl: float = PRICE_TTL,
    ) -> None:
        self.client = client
        self.providers = list(providers) if providers is not None else default_providers()
        self.cache = cache if cache is not None else MemoryCache(default_ttl=ttl)
        self.ttl = ttl

    async def get_price(self, symbol: str) -> PriceQuote | None:
        """
        Fetch a USD price for ``symbol``.

        Parameters
        ----------
        symbol : str
            Token symbol (e.g., 'ATOM'), case-insensitive

        Returns
        -------
        PriceQuote | None
            First quote found, tagged with its provider, or None

        """
        symbol = symbol.lower()
        if not symbol:
            msg = "Symbol is required"
            raise ValueError(msg)

        cached = self.cache.get(f"price_{symbol}")
        if cached is not None:
            return cached

        for provider in self.providers:
            try:
                quote = await provider.quote(self.client, symbol)
            except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
                logger.debug("Price provider %s failed for %s: %s", provider.name, symbol, e)
                continue
            if quote is not None:
                logger.debug("Price for %s from %s: %s", symbol, quote.source, quote.price)
                self.cache.set(f"price_{symbol}", quote, self.ttl)
                return quote

        logger.info("No price found for %s", symbol)
        return None
