"""Data models for chain configuration, endpoint health, and price quotes."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class Protocol(StrEnum):
    """Network protocol served by an endpoint pool."""

    API = "api"
    RPC = "rpc"


class EndpointConfig(BaseModel):
    """
    Configured network endpoint.

    Attributes
    ----------
    address : str
        Base URL (e.g., 'https://rest.cosmos.directory/cosmoshub')
    provider : str
        Operator label shown in monitoring views

    """

    address: str
    provider: str = "unknown"

    @field_validator("address")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class ChainAsset(BaseModel):
    """
    Asset metadata used for display and price lookups.

    Attributes
    ----------
    base : str
        Base denomination (e.g., 'uatom')
    symbol : str
        Ticker symbol (e.g., 'ATOM')
    display : str | None
        Display denomination
    exponent : int
        Decimal exponent between base and display units
    coingecko_id : str | None
        CoinGecko coin identifier

    """

    base: str
    symbol: str
    display: str | None = None
    exponent: int = 6
    coingecko_id: str | None = None


class ChainConfig(BaseModel):
    """
    Chain configuration consumed by the load balancers.

    Attributes
    ----------
    chain_name : str
        Chain identifier used in cache keys and requests
    chain_id : str | None
        Network chain-id
    api : list[EndpointConfig]
        LCD/REST endpoint pool
    rpc : list[EndpointConfig]
        CometBFT RPC endpoint pool
    assets : list[ChainAsset]
        Native and listed assets
    addr_prefix : str | None
        Bech32 account prefix

    """

    chain_name: str
    chain_id: str | None = None
    api: list[EndpointConfig] = Field(default_factory=list)
    rpc: list[EndpointConfig] = Field(default_factory=list)
    assets: list[ChainAsset] = Field(default_factory=list)
    addr_prefix: str | None = None

    def endpoints(self, protocol: Protocol) -> list[EndpointConfig]:
        """Return the endpoint pool for ``protocol``."""
        return self.api if protocol == Protocol.API else self.rpc


class EndpointHealth(BaseModel):
    """
    Result of the most recent liveness probe.

    Attributes
    ----------
    healthy : bool
        Whether the probe answered 2xx
    latency_ms : float
        Round trip in milliseconds, -1 if the probe failed outright
    last_checked_at : float
        Wall clock timestamp of the probe

    """

    healthy: bool
    latency_ms: float
    last_checked_at: float


class EndpointStats(BaseModel):
    """Monitoring snapshot for one endpoint."""

    address: str
    provider: str
    failure_count: int
    healthy: bool
    recent_requests: int = 0
    health: EndpointHealth | None = None


class BalancerStats(BaseModel):
    """Monitoring snapshot for one load balancer."""

    name: str
    endpoints: list[EndpointStats]
    cursor: int


class PriceQuote(BaseModel):
    """
    Spot price returned by the pricing waterfall.

    Attributes
    ----------
    price : float
        USD price
    change_24h : float
        24h change in percent
    source : str
        Label of the provider that answered

    """

    price: float
    change_24h: float = 0.0
    source: str
