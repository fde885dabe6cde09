"""Catalog of logical endpoints served by the request facade."""

import string
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from explorer_gateway.core.models import Protocol


class EndpointSpec(BaseModel):
    """
    Logical endpoint definition.

    Attributes
    ----------
    name : str
        Name used by callers (e.g., 'validators')
    protocol : Protocol
        Endpoint pool serving the request
    path : str
        Path template; ``{placeholders}`` are filled from request params
    ttl : float
        Freshness lifetime of a cached response in seconds
    category : str | None
        Cache key category. Defaults to ``name``.
    defaults : dict[str, Any]
        Query parameters applied unless the caller overrides them

    """

    name: str
    protocol: Protocol
    path: str
    ttl: float
    category: str | None = None
    defaults: dict[str, Any] = {}

    @property
    def cache_category(self) -> str:
        return self.category or self.name

    @property
    def placeholders(self) -> list[str]:
        return [field for _, field, _, _ in string.Formatter().parse(self.path) if field]

    def build(self, params: Mapping[str, Any] | None = None) -> tuple[str, dict[str, Any]]:
        """
        Render the path and split off the query parameters.

        Parameters
        ----------
        params : Mapping[str, Any] | None
            Caller parameters

        Returns
        -------
        tuple[str, dict[str, Any]]
            Rendered path and remaining query parameters

        Raises
        ------
        ValueError
            If a path placeholder has no value

        """
        merged = {**self.defaults, **(params or {})}
        placeholders = self.placeholders
        missing = [name for name in placeholders if name not in merged]
        if missing:
            msg = f"Endpoint '{self.name}' requires parameter(s): {', '.join(missing)}"
            raise ValueError(msg)
        path = self.path.format(**{name: merged[name] for name in placeholders})
        query = {k: v for k, v in merged.items() if k not in placeholders}
        return path, query


class EndpointRegistry:
    """
    Registry of :class:`EndpointSpec` by name.

    Parameters
    ----------
    specs : list[EndpointSpec] | None
        Initial specs. Uses :data:`DEFAULT_ENDPOINTS` if None.

    """

    def __init__(self, specs: list[EndpointSpec] | None = None) -> None:
        self._specs: dict[str, EndpointSpec] = {}
        for spec in DEFAULT_ENDPOINTS if specs is None else specs:
            self.register(spec)

    def register(self, spec: EndpointSpec) -> EndpointSpec:
        """Add or replace a spec."""
        self._specs[spec.name] = spec
        return spec

    def get(self, name: str) -> EndpointSpec | None:
        """Spec registered under ``name``, or None."""
        return self._specs.get(name)

    def list_endpoints(self) -> list[str]:
        """Names of all registered specs."""
        return list(self._specs)

    def __contains__(self, name: str) -> bool:
        return name in self._specs


# TTLs in seconds; finalized blocks and transactions are immutable
DEFAULT_ENDPOINTS = [
    EndpointSpec(name="chain", protocol=Protocol.API, path="/cosmos/base/tendermint/v1beta1/node_info", ttl=3600),
    EndpointSpec(name="network", protocol=Protocol.API, path="/cosmos/staking/v1beta1/pool", ttl=20),
    EndpointSpec(name="staking_pool", protocol=Protocol.API, path="/cosmos/staking/v1beta1/pool", ttl=20),
    EndpointSpec(
        name="validators",
        protocol=Protocol.API,
        path="/cosmos/staking/v1beta1/validators",
        ttl=30,
        defaults={"status": "BOND_STATUS_BONDED", "pagination.limit": 1000},
    ),
    EndpointSpec(
        name="validator", protocol=Protocol.API, path="/cosmos/staking/v1beta1/validators/{address}", ttl=60
    ),
    EndpointSpec(
        name="validator_delegations",
        protocol=Protocol.API,
        path="/cosmos/staking/v1beta1/validators/{address}/delegations",
        ttl=60,
    ),
    EndpointSpec(
        name="latest_block",
        protocol=Protocol.API,
        path="/cosmos/base/tendermint/v1beta1/blocks/latest",
        ttl=10,
        category="blocks",
    ),
    EndpointSpec(
        name="block", protocol=Protocol.API, path="/cosmos/base/tendermint/v1beta1/blocks/{height}", ttl=300
    ),
    EndpointSpec(name="rpc_block", protocol=Protocol.RPC, path="/block", ttl=300),
    EndpointSpec(name="rpc_status", protocol=Protocol.RPC, path="/status", ttl=10),
    EndpointSpec(
        name="transactions",
        protocol=Protocol.API,
        path="/cosmos/tx/v1beta1/txs",
        ttl=10,
        defaults={"pagination.limit": 20, "order_by": "ORDER_BY_DESC"},
    ),
    EndpointSpec(name="transaction", protocol=Protocol.API, path="/cosmos/tx/v1beta1/txs/{hash}", ttl=300),
    EndpointSpec(name="proposals", protocol=Protocol.API, path="/cosmos/gov/v1/proposals", ttl=30),
    EndpointSpec(name="proposal", protocol=Protocol.API, path="/cosmos/gov/v1/proposals/{id}", ttl=30),
    EndpointSpec(name="balances", protocol=Protocol.API, path="/cosmos/bank/v1beta1/balances/{address}", ttl=10),
    EndpointSpec(name="supply", protocol=Protocol.API, path="/cosmos/bank/v1beta1/supply", ttl=60),
    EndpointSpec(
        name="assets", protocol=Protocol.API, path="/cosmos/bank/v1beta1/denoms_metadata", ttl=60
    ),
    EndpointSpec(name="staking_params", protocol=Protocol.API, path="/cosmos/staking/v1beta1/params", ttl=600),
    EndpointSpec(name="slashing_params", protocol=Protocol.API, path="/cosmos/slashing/v1beta1/params", ttl=600),
    EndpointSpec(name="gov_params", protocol=Protocol.API, path="/cosmos/gov/v1/params/{params_type}", ttl=600),
    EndpointSpec(name="signing_infos", protocol=Protocol.API, path="/cosmos/slashing/v1beta1/signing_infos", ttl=30),
]
