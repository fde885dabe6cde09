"""Tests for the request facade and network context."""

import httpx
import pytest

from explorer_gateway.cache import TieredCache
from explorer_gateway.config import GatewaySettings
from explorer_gateway.core import Events, NetworkContext, Protocol, RequestFacade
from explorer_gateway.exceptions import EndpointHTTPError, UnknownChainError, UnknownEndpointError


class Upstream:
    """Mock upstream recording every request and answering from a route table."""

    def __init__(self, routes=None, fail_hosts=()):
        self.routes = routes or {}
        self.fail_hosts = set(fail_hosts)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host in self.fail_hosts:
            return httpx.Response(500)
        return httpx.Response(200, json=self.routes.get(request.url.path, {"path": request.url.path}))


def _facade(upstream, clock, *chains):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    context = NetworkContext(
        GatewaySettings(retry_backoff=0),
        client=client,
        cache=TieredCache(clock=clock),
    )
    return RequestFacade(context, {chain.chain_name: chain for chain in chains}), client


async def _close(facade, client):
    await facade.context.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_request_uses_cache_on_second_call(chain_config, clock):
    upstream = Upstream({"/cosmos/staking/v1beta1/validators": {"validators": [{"operator_address": "v1"}]}})
    facade, client = _facade(upstream, clock, chain_config)

    first = await facade.request("testchain", "validators")
    second = await facade.request("testchain", "validators")

    assert first == second == {"validators": [{"operator_address": "v1"}]}
    assert len(upstream.requests) == 1
    request = upstream.requests[0]
    assert request.url.params["status"] == "BOND_STATUS_BONDED"
    assert request.url.params["pagination.limit"] == "1000"
    await _close(facade, client)


@pytest.mark.asyncio
async def test_path_placeholders_and_keys(chain_config, clock):
    """Test that params fill the path and give each value its own cache entry."""
    upstream = Upstream()
    facade, client = _facade(upstream, clock, chain_config)

    block = await facade.request("testchain", "block", {"height": 5})
    await facade.request("testchain", "block", {"height": 6})
    await facade.request("testchain", "block", {"height": 5})

    assert block == {"path": "/cosmos/base/tendermint/v1beta1/blocks/5"}
    assert len(upstream.requests) == 2
    assert facade.cache_key_for("testchain", "block", {"height": 5}) != facade.cache_key_for(
        "testchain", "block", {"height": 6}
    )
    assert facade.cache_key_for("testchain", "latest_block").startswith("v1_blocks_testchain")
    await _close(facade, client)


@pytest.mark.asyncio
async def test_rpc_endpoints_use_rpc_pool(chain_config, clock):
    upstream = Upstream()
    facade, client = _facade(upstream, clock, chain_config)

    await facade.request("testchain", "rpc_block", {"height": 42})

    request = upstream.requests[0]
    assert request.url.host == "rpc1.test"
    assert request.url.path == "/block"
    assert request.url.params["height"] == "42"
    await _close(facade, client)


@pytest.mark.asyncio
async def test_lookup_errors(chain_config, clock):
    facade, client = _facade(Upstream(), clock, chain_config)

    with pytest.raises(UnknownChainError):
        await facade.request("nochain", "validators")
    with pytest.raises(UnknownEndpointError):
        await facade.request("testchain", "nothing")
    with pytest.raises(ValueError, match="height"):
        await facade.request("testchain", "block")
    await _close(facade, client)


@pytest.mark.asyncio
async def test_stale_value_served_when_upstream_fails(chain_config, clock):
    upstream = Upstream({"/cosmos/staking/v1beta1/pool": {"pool": "v1"}})
    facade, client = _facade(upstream, clock, chain_config)
    await facade.request("testchain", "network")

    clock.advance(60)
    upstream.fail_hosts = {"api1.test", "api2.test", "api3.test"}

    assert await facade.request("testchain", "network") == {"pool": "v1"}
    await facade.context.swr.drain()
    assert await facade.cached("testchain", "network") == {"pool": "v1"}
    await _close(facade, client)


@pytest.mark.asyncio
async def test_request_fails_without_cache(chain_config, clock):
    upstream = Upstream(fail_hosts={"api1.test", "api2.test", "api3.test"})
    facade, client = _facade(upstream, clock, chain_config)

    with pytest.raises(EndpointHTTPError):
        await facade.request("testchain", "supply")
    assert await facade.request_or_cached("testchain", "supply") is None

    stats = facade.context.stats("testchain")
    assert [ep.failure_count for ep in stats["api"].endpoints] == [2, 2, 2]
    await _close(facade, client)


@pytest.mark.asyncio
async def test_request_or_cached_still_raises_lookup_errors(chain_config, clock):
    facade, client = _facade(Upstream(), clock, chain_config)

    with pytest.raises(UnknownChainError):
        await facade.request_or_cached("nochain", "validators")
    await _close(facade, client)


@pytest.mark.asyncio
async def test_switch_chain_clears_previous_chain(chain_config, other_chain_config, clock):
    """Test that switching chains drops the old chain's cache and balancers only."""
    upstream = Upstream()
    facade, client = _facade(upstream, clock, chain_config, other_chain_config)
    context = facade.context
    cleared = []
    context.events.subscribe(Events.CHAIN_CLEARED, lambda chain: cleared.append(chain))

    await facade.switch_chain("testchain")
    await facade.request("testchain", "validators")
    await facade.request("otherchain", "validators")

    await facade.switch_chain("otherchain")

    assert cleared == ["testchain"]
    assert context.active_chain == "otherchain"
    assert not context.has_chain("testchain")
    assert context.has_chain("otherchain")
    assert await facade.cached("testchain", "validators") is None
    assert await facade.cached("otherchain", "validators") is not None
    assert "testchain:api" not in context.prober.watched

    await facade.request("testchain", "validators")
    assert len(upstream.requests) == 3
    await _close(facade, client)


@pytest.mark.asyncio
async def test_switch_to_unknown_chain(chain_config, clock):
    facade, client = _facade(Upstream(), clock, chain_config)

    with pytest.raises(UnknownChainError):
        await facade.switch_chain("nochain")
    assert facade.context.active_chain is None
    await _close(facade, client)


@pytest.mark.asyncio
async def test_context_fetch_and_stats(chain_config, clock):
    upstream = Upstream()
    facade, client = _facade(upstream, clock, chain_config)
    context = facade.context

    assert context.stats("testchain") is None

    balancers = context.get_balancers(chain_config)
    assert context.get_balancers(chain_config) is balancers
    assert balancers.api.name == "testchain:api"
    assert sorted(context.prober.watched) == ["testchain:api", "testchain:rpc"]

    data = await context.fetch("testchain", Protocol.RPC, "/status")
    stats = context.stats("testchain")

    assert data == {"path": "/status"}
    assert stats["rpc"].endpoints[0].recent_requests == 1
    assert [ep.address for ep in stats["api"].endpoints][2] == "https://api3.test"
    await _close(facade, client)


@pytest.mark.asyncio
async def test_context_owns_client_when_none_given():
    async with NetworkContext(GatewaySettings(probe_interval=3600)) as context:
        client = context.client
        assert not client.is_closed

    assert client.is_closed
