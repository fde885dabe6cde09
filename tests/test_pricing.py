"""Tests for the price provider waterfall."""

import httpx
import pytest

from explorer_gateway.cache import MemoryCache
from explorer_gateway.core.models import PriceQuote
from explorer_gateway.pricing import (
    BitgetProvider,
    CoinGeckoProvider,
    MexcProvider,
    OsmosisProvider,
    PriceWaterfall,
    default_providers,
)


class StubProvider:
    def __init__(self, name, quote=None, error=None):
        self.name = name
        self.result = quote
        self.error = error
        self.calls = 0

    async def quote(self, client, symbol):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_first_provider_with_a_price_wins(clock):
    """Test that providers after the first hit are never consulted."""
    a = StubProvider("A")
    b = StubProvider("B", PriceQuote(price=1.23, change_24h=-2.5, source="B"))
    c = StubProvider("C", PriceQuote(price=9.99, source="C"))
    waterfall = PriceWaterfall(client=None, providers=[a, b, c], cache=MemoryCache(clock=clock))

    quote = await waterfall.get_price("TST")

    assert quote.price == 1.23
    assert quote.change_24h == -2.5
    assert quote.source == "B"
    assert (a.calls, b.calls, c.calls) == (1, 1, 0)


@pytest.mark.asyncio
async def test_failing_provider_is_skipped(clock):
    a = StubProvider("A", error=httpx.ConnectError("down"))
    b = StubProvider("B", error=KeyError("price"))
    c = StubProvider("C", PriceQuote(price=2.0, source="C"))
    waterfall = PriceWaterfall(client=None, providers=[a, b, c], cache=MemoryCache(clock=clock))

    assert (await waterfall.get_price("TST")).source == "C"


@pytest.mark.asyncio
async def test_quotes_are_cached_per_symbol(clock):
    b = StubProvider("B", PriceQuote(price=1.0, source="B"))
    waterfall = PriceWaterfall(client=None, providers=[b], cache=MemoryCache(clock=clock))

    await waterfall.get_price("TST")
    await waterfall.get_price("tst")
    assert b.calls == 1

    clock.advance(60)
    await waterfall.get_price("TST")
    assert b.calls == 2


@pytest.mark.asyncio
async def test_no_price_returns_none(clock):
    waterfall = PriceWaterfall(client=None, providers=[StubProvider("A")], cache=MemoryCache(clock=clock))

    assert await waterfall.get_price("TST") is None


@pytest.mark.asyncio
async def test_empty_symbol_rejected():
    waterfall = PriceWaterfall(client=None, providers=[])

    with pytest.raises(ValueError):
        await waterfall.get_price("")


def test_default_provider_order():
    assert [p.name for p in default_providers()] == ["CoinGecko", "MEXC", "Bitget", "Osmosis"]


@pytest.mark.asyncio
async def test_coingecko_provider():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v3/simple/price"
        assert request.url.params["ids"] == "cosmos"
        assert request.url.params["include_24hr_change"] == "true"
        return httpx.Response(200, json={"cosmos": {"usd": 7.5, "usd_24h_change": 1.2}})

    provider = CoinGeckoProvider(resolve_id=lambda symbol: "cosmos" if symbol == "atom" else None)
    async with _client(handler) as client:
        quote = await provider.quote(client, "atom")
        unknown = await provider.quote(client, "nope")

    assert quote == PriceQuote(price=7.5, change_24h=1.2, source="CoinGecko")
    assert unknown is None


@pytest.mark.asyncio
async def test_mexc_falls_back_to_usdc_pair():
    symbols = []

    def handler(request: httpx.Request) -> httpx.Response:
        symbols.append(request.url.params["symbol"])
        if request.url.params["symbol"] == "LUMEUSDT":
            return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})
        return httpx.Response(200, json={"lastPrice": "0.0125", "priceChangePercent": "-0.031"})

    async with _client(handler) as client:
        quote = await MexcProvider().quote(client, "lume")

    assert symbols == ["LUMEUSDT", "LUMEUSDC"]
    assert quote == PriceQuote(price=0.0125, change_24h=-0.031, source="MEXC")


@pytest.mark.asyncio
async def test_bitget_provider():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["symbol"] == "ATOMUSDT":
            return httpx.Response(200, json={"data": [{"lastPr": "4.2", "chgUTC": "0.01"}]})
        return httpx.Response(200, json={"data": []})

    async with _client(handler) as client:
        quote = await BitgetProvider().quote(client, "atom")
        missing = await BitgetProvider().quote(client, "zzz")

    assert quote == PriceQuote(price=4.2, change_24h=0.01, source="Bitget")
    assert missing is None


@pytest.mark.asyncio
async def test_osmosis_listing_price():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"symbol": "OSMO", "price": 0.4, "price_24h_change": 3.0}])

    async with _client(handler) as client:
        quote = await OsmosisProvider().quote(client, "osmo")

    assert quote == PriceQuote(price=0.4, change_24h=3.0, source="Osmosis")


@pytest.mark.asyncio
async def test_osmosis_pool_quote_fallback():
    """Test that a listed token without a price is quoted from its pool by denom."""
    denom = "ibc/ABC123"

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "public-osmosis-api.numia.xyz":
            return httpx.Response(200, json=[{"symbol": "LUME", "price": None, "denom": denom}])
        assert request.url.params["base"] == denom
        return httpx.Response(200, json={denom: {"uosmo": "0.05"}})

    async with _client(handler) as client:
        quote = await OsmosisProvider().quote(client, "lume")

    assert quote == PriceQuote(price=0.05, change_24h=0.0, source="Osmosis Pool")


@pytest.mark.asyncio
async def test_waterfall_over_http_providers(clock):
    """Test the full chain with CoinGecko and MEXC missing and Bitget answering."""
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.host)
        if request.url.host == "api.coingecko.com":
            return httpx.Response(429)
        if request.url.host == "api.mexc.com":
            return httpx.Response(400)
        if request.url.host == "api.bitget.com":
            return httpx.Response(200, json={"data": [{"lastPr": "1.5", "chgUTC": "0.2"}]})
        raise AssertionError(f"unexpected request to {request.url}")

    async with _client(handler) as client:
        waterfall = PriceWaterfall(
            client,
            providers=[
                CoinGeckoProvider(resolve_id=lambda symbol: "token"),
                MexcProvider(),
                BitgetProvider(),
                OsmosisProvider(),
            ],
            cache=MemoryCache(clock=clock),
        )
        quote = await waterfall.get_price("TKN")

    assert quote.source == "Bitget"
    assert "public-osmosis-api.numia.xyz" not in requested
