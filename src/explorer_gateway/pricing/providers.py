"""Public market-data providers queried by the pricing waterfall."""

import logging
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from explorer_gateway.core.models import PriceQuote
from explorer_gateway.data import get_coingecko_id

logger = logging.getLogger(__name__)


class PriceProvider(Protocol):
    """
    Interface of a price source.

    Attributes
    ----------
    name : str
        Source label attached to quotes

    Methods
    -------
    quote(client, symbol)
        Return a quote, or None when the source has no price for ``symbol``

    """

    name: str

    async def quote(self, client: httpx.AsyncClient, symbol: str) -> PriceQuote | None:
        ...


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class CoinGeckoProvider:
    """
    Market aggregator quotes from CoinGecko's simple price API.

    Parameters
    ----------
    resolve_id : Callable[[str], str | None]
        Maps a symbol to a CoinGecko id. Uses the chain asset list by default.
    base_url : str
        API base URL
    timeout : float
        Request timeout in seconds

    """

    name = "CoinGecko"

    def __init__(
        self,
        resolve_id: Callable[[str], str | None] = get_coingecko_id,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 5.0,
    ) -> None:
        self.resolve_id = resolve_id
        self.base_url = base_url
        self.timeout = timeout

    async def quote(self, client: httpx.AsyncClient, symbol: str) -> PriceQuote | None:
        coingecko_id = self.resolve_id(symbol)
        if not coingecko_id:
            return None
        response = await client.get(
            f"{self.base_url}/simple/price",
            params={"ids": coingecko_id, "vs_currencies": "usd", "include_24hr_change": "true"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json().get(coingecko_id)
        if not data or "usd" not in data:
            return None
        return PriceQuote(price=data["usd"], change_24h=_float(data.get("usd_24h_change")), source=self.name)


class _TickerProvider:
    """Centralized exchange 24h ticker lookup over USDT then USDC pairs."""

    name = ""
    quote_assets = ("USDT", "USDC")

    def __init__(self, base_url: str, timeout: float = 5.0) -> None:
        self.base_url = base_url
        self.timeout = timeout

    async def _ticker(self, client: httpx.AsyncClient, pair: str) -> PriceQuote | None:
        raise NotImplementedError

    async def quote(self, client: httpx.AsyncClient, symbol: str) -> PriceQuote | None:
        for quote_asset in self.quote_assets:
            pair = f"{symbol.upper()}{quote_asset}"
            try:
                result = await self._ticker(client, pair)
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                logger.debug("%s ticker %s unavailable: %s", self.name, pair, e)
                continue
            if result is not None:
                return result
        return None


class MexcProvider(_TickerProvider):
    """MEXC spot 24h ticker."""

    name = "MEXC"

    def __init__(self, base_url: str = "https://api.mexc.com/api/v3", timeout: float = 5.0) -> None:
        super().__init__(base_url, timeout)

    async def _ticker(self, client: httpx.AsyncClient, pair: str) -> PriceQuote | None:
        response = await client.get(f"{self.base_url}/ticker/24hr", params={"symbol": pair}, timeout=self.timeout)
        if not response.is_success:
            return None
        data = response.json()
        if not data.get("lastPrice"):
            return None
        return PriceQuote(
            price=float(data["lastPrice"]),
            change_24h=_float(data.get("priceChangePercent")),
            source=self.name,
        )


class BitgetProvider(_TickerProvider):
    """Bitget spot market ticker."""

    name = "Bitget"

    def __init__(self, base_url: str = "https://api.bitget.com/api/v2", timeout: float = 5.0) -> None:
        super().__init__(base_url, timeout)

    async def _ticker(self, client: httpx.AsyncClient, pair: str) -> PriceQuote | None:
        response = await client.get(
            f"{self.base_url}/spot/market/tickers", params={"symbol": pair}, timeout=self.timeout
        )
        if not response.is_success:
            return None
        tickers = response.json().get("data") or []
        if not tickers:
            return None
        return PriceQuote(
            price=float(tickers[0]["lastPr"]),
            change_24h=_float(tickers[0].get("chgUTC")),
            source=self.name,
        )


class OsmosisProvider:
    """
    AMM DEX prices from the Osmosis token listing.

    Tokens listed without a price are quoted from the Osmosis sidecar query
    server using the token's denom.

    Parameters
    ----------
    listing_url : str
        Bulk token listing endpoint
    quote_url : str
        Sidecar price endpoint
    timeout : float
        Timeout of the pool quote request
    listing_timeout : float
        Timeout of the bulk listing request

    """

    name = "Osmosis"
    pool_source = "Osmosis Pool"

    def __init__(
        self,
        listing_url: str = "https://public-osmosis-api.numia.xyz/tokens/v2/all",
        quote_url: str = "https://sqs.osmosis.zone/tokens/prices",
        timeout: float = 5.0,
        listing_timeout: float = 10.0,
    ) -> None:
        self.listing_url = listing_url
        self.quote_url = quote_url
        self.timeout = timeout
        self.listing_timeout = listing_timeout

    async def quote(self, client: httpx.AsyncClient, symbol: str) -> PriceQuote | None:
        response = await client.get(self.listing_url, timeout=self.listing_timeout)
        response.raise_for_status()
        wanted = symbol.lower()
        token = next((t for t in response.json() if str(t.get("symbol", "")).lower() == wanted), None)
        if token is None:
            return None
        if token.get("price"):
            return PriceQuote(
                price=float(token["price"]),
                change_24h=_float(token.get("price_24h_change")),
                source=self.name,
            )
        if token.get("denom"):
            return await self._pool_quote(client, token["denom"])
        return None

    async def _pool_quote(self, client: httpx.AsyncClient, denom: str) -> PriceQuote | None:
        try:
            response = await client.get(self.quote_url, params={"base": denom}, timeout=self.timeout)
            if not response.is_success:
                return None
            prices = response.json().get(denom) or {}
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Osmosis pool quote for %s unavailable: %s", denom, e)
            return None
        first_price = next(iter(prices.values()), None)
        if not first_price:
            return None
        return PriceQuote(price=float(first_price), change_24h=0.0, source=self.pool_source)
