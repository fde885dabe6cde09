"""Single entry point used by page-level data fetchers."""

import logging
from collections.abc import Mapping
from typing import Any

from explorer_gateway.cache import cache_key, params_suffix
from explorer_gateway.core.context import NetworkContext
from explorer_gateway.core.models import ChainConfig
from explorer_gateway.core.registry import EndpointRegistry, EndpointSpec
from explorer_gateway.exceptions import GatewayError, UnknownChainError, UnknownEndpointError

logger = logging.getLogger(__name__)


class RequestFacade:
    """
    Resolve ``(chain, logical endpoint, params)`` to cached upstream JSON.

    Each call maps to one cache key and one load balancer; the
    stale-while-revalidate coordinator decides whether the network is touched
    at all.

    Parameters
    ----------
    context : NetworkContext
        Owner of caches and load balancers
    chains : Mapping[str, ChainConfig]
        Known chains keyed by chain name
    registry : EndpointRegistry | None
        Logical endpoint catalog. Uses the built-in catalog if None.

    Examples
    --------
    >>> facade = RequestFacade(context, load_chains())
    >>> validators = await facade.request("cosmoshub", "validators")
    >>> block = await facade.request("cosmoshub", "rpc_block", {"height": 1000})

    """

    def __init__(
        self,
        context: NetworkContext,
        chains: Mapping[str, ChainConfig],
        registry: EndpointRegistry | None = None,
    ) -> None:
        self.context = context
        self.chains = dict(chains)
        self.registry = registry or EndpointRegistry()

    def _chain(self, chain_name: str) -> ChainConfig:
        chain = self.chains.get(chain_name)
        if chain is None:
            msg = f"Unknown chain: {chain_name}"
            raise UnknownChainError(msg)
        return chain

    def _spec(self, endpoint_name: str) -> EndpointSpec:
        spec = self.registry.get(endpoint_name)
        if spec is None:
            msg = f"Unknown endpoint: {endpoint_name}"
            raise UnknownEndpointError(msg)
        return spec

    def cache_key_for(self, chain_name: str, endpoint_name: str, params: Mapping[str, Any] | None = None) -> str:
        """Cache key used for a request."""
        spec = self._spec(endpoint_name)
        return cache_key(
            spec.cache_category,
            chain_name,
            params_suffix(params),
            version=self.context.settings.cache_version,
        )

    async def request(
        self,
        chain_name: str,
        endpoint_name: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Fetch a logical endpoint for a chain.

        Parameters
        ----------
        chain_name : str
            Chain name from the chain configuration
        endpoint_name : str
            Registered logical endpoint (e.g., 'validators', 'block')
        params : Mapping[str, Any] | None
            Path placeholders and query parameters

        Returns
        -------
        Any
            Parsed JSON, possibly served from cache

        Raises
        ------
        UnknownChainError
            If the chain is not configured
        UnknownEndpointError
            If the endpoint name is not registered
        EndpointError
            If nothing is cached and every attempt failed

        """
        chain = self._chain(chain_name)
        spec = self._spec(endpoint_name)
        path, query = spec.build(params)
        key = self.cache_key_for(chain_name, endpoint_name, params)

        balancer = self.context.get_balancers(chain).for_protocol(spec.protocol)

        async def fetcher() -> Any:
            return await balancer.fetch(path, params=query)

        return await self.context.swr.resolve(key, fetcher, spec.ttl)

    async def cached(
        self,
        chain_name: str,
        endpoint_name: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any | None:
        """Previously cached value (even stale) for a request, without touching the network."""
        return await self.context.cache.get_stale(self.cache_key_for(chain_name, endpoint_name, params))

    async def request_or_cached(
        self,
        chain_name: str,
        endpoint_name: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any | None:
        """
        Like :meth:`request`, but degrade to any cached value, then None, on failure.

        Lookup errors (unknown chain or endpoint) still raise.

        """
        self._chain(chain_name)
        self._spec(endpoint_name)
        try:
            return await self.request(chain_name, endpoint_name, params)
        except GatewayError as e:
            logger.warning("Request %s/%s failed, falling back to cache: %s", chain_name, endpoint_name, e)
            return await self.cached(chain_name, endpoint_name, params)

    async def switch_chain(self, chain_name: str) -> None:
        """Activate ``chain_name``; the previous chain's cache and balancers are dropped."""
        self._chain(chain_name)
        await self.context.switch_chain(chain_name)
