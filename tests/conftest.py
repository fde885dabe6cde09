"""Pytest configuration for explorer-gateway tests."""

import pytest

from explorer_gateway.core.models import ChainAsset, ChainConfig, EndpointConfig


class FakeClock:
    """Manually advanced clock shared by caches and trackers under test."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chain_config():
    """Chain with three API endpoints and one RPC endpoint."""
    return ChainConfig(
        chain_name="testchain",
        chain_id="test-1",
        api=[
            EndpointConfig(address="https://api1.test", provider="One"),
            EndpointConfig(address="https://api2.test", provider="Two"),
            EndpointConfig(address="https://api3.test/", provider="Three"),
        ],
        rpc=[EndpointConfig(address="https://rpc1.test", provider="One")],
        assets=[ChainAsset(base="utest", symbol="TST", display="test", coingecko_id="test-token")],
    )


@pytest.fixture
def other_chain_config():
    return ChainConfig(
        chain_name="otherchain",
        chain_id="other-1",
        api=[EndpointConfig(address="https://other-api.test", provider="Other")],
        rpc=[EndpointConfig(address="https://other-rpc.test", provider="Other")],
    )
