"""Network context owning every per-process resource of the gateway."""

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from explorer_gateway.cache import DurableCache, MemoryCache, SessionStore, StaleWhileRevalidate, TieredCache
from explorer_gateway.config import GatewaySettings
from explorer_gateway.core.events import EventBus, Events
from explorer_gateway.core.models import BalancerStats, ChainConfig, Protocol
from explorer_gateway.rpc import EndpointTracker, HealthProber, LoadBalancer, RetryConfig

logger = logging.getLogger(__name__)


class ChainBalancers:
    """The API and RPC load balancers of one chain."""

    def __init__(self, api: LoadBalancer, rpc: LoadBalancer) -> None:
        self.api = api
        self.rpc = rpc

    def for_protocol(self, protocol: Protocol) -> LoadBalancer:
        return self.api if protocol == Protocol.API else self.rpc

    def __iter__(self):
        return iter((self.api, self.rpc))


class NetworkContext:
    """
    Owns the HTTP client, cache tiers, load balancers, and health prober.

    One context is created per application (or per test) and torn down with
    :meth:`close`. Load balancers are created lazily per chain and dropped when
    the chain is cleared, which also resets their failure counters.

    Parameters
    ----------
    settings : GatewaySettings | None
        Tunables. Uses defaults if None.
    client : httpx.AsyncClient | None
        HTTP client. A context-owned client is created if None.
    cache : TieredCache | None
        Cache tiers. Built from ``settings`` if None.
    clock : Callable[[], float]
        Monotonic clock for failure and rate-limit tracking

    Examples
    --------
    >>> async with NetworkContext() as context:
    ...     balancers = context.get_balancers(chain_config)
    ...     pool = await context.fetch("cosmoshub", Protocol.API, "/cosmos/staking/v1beta1/pool")

    """

    def __init__(
        self,
        settings: GatewaySettings | None = None,
        client: httpx.AsyncClient | None = None,
        cache: TieredCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or GatewaySettings()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )
        self.cache = cache if cache is not None else self._build_cache(self.settings)
        self.swr = StaleWhileRevalidate(self.cache)
        self.tracker = EndpointTracker(
            max_failures=self.settings.max_failures,
            cooldown=self.settings.failure_cooldown,
            rate_window=self.settings.rate_limit_window,
            rate_max=self.settings.rate_limit_max,
            clock=clock,
        )
        self.retry_config = RetryConfig(
            max_retries=self.settings.max_retries,
            base_delay=self.settings.retry_backoff,
        )
        self.prober = HealthProber(
            self.client,
            interval=self.settings.probe_interval,
            timeout=self.settings.probe_timeout,
        )
        self.events = EventBus()
        self.active_chain: str | None = None
        self._balancers: dict[str, ChainBalancers] = {}
        self._started = False

        self.events.subscribe(Events.CHAIN_SWITCHED, self._on_chain_switched, priority=100)

    @staticmethod
    def _build_cache(settings: GatewaySettings) -> TieredCache:
        session = SessionStore(settings.session_path, version=settings.cache_version) if settings.session_path else None
        durable = DurableCache(settings.durable_path) if settings.durable_path else None
        return TieredCache(
            memory=MemoryCache(),
            session=session,
            durable=durable,
            memory_sweep_interval=settings.memory_sweep_interval,
            durable_sweep_interval=settings.durable_sweep_interval,
        )

    def get_balancers(self, chain: ChainConfig) -> ChainBalancers:
        """
        Get or create the load balancers of a chain.

        Parameters
        ----------
        chain : ChainConfig
            Chain configuration supplying both endpoint pools

        Returns
        -------
        ChainBalancers
            API and RPC balancers for the chain

        """
        balancers = self._balancers.get(chain.chain_name)
        if balancers is not None:
            return balancers

        balancers = ChainBalancers(
            api=self._new_balancer(chain, Protocol.API),
            rpc=self._new_balancer(chain, Protocol.RPC),
        )
        self._balancers[chain.chain_name] = balancers
        for protocol in Protocol:
            balancer = balancers.for_protocol(protocol)
            if len(balancer):
                self.prober.watch(balancer, protocol)
        logger.debug(
            "Created load balancers for %s (%d api, %d rpc endpoints)",
            chain.chain_name,
            len(balancers.api),
            len(balancers.rpc),
        )
        return balancers

    def _new_balancer(self, chain: ChainConfig, protocol: Protocol) -> LoadBalancer:
        return LoadBalancer(
            f"{chain.chain_name}:{protocol}",
            chain.endpoints(protocol),
            self.client,
            tracker=self.tracker,
            retry_config=self.retry_config,
            timeout=self.settings.request_timeout,
        )

    def balancer(self, chain_name: str, protocol: Protocol) -> LoadBalancer:
        """
        Look up an existing balancer.

        Raises
        ------
        KeyError
            If no balancers were created for ``chain_name``

        """
        return self._balancers[chain_name].for_protocol(protocol)

    def has_chain(self, chain_name: str) -> bool:
        return chain_name in self._balancers

    async def fetch(
        self,
        chain_name: str,
        protocol: Protocol,
        path: str,
        params: Mapping[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """
        Dispatch one uncached request through a chain's balancer.

        Parameters
        ----------
        chain_name : str
            Chain whose balancers were created with :meth:`get_balancers`
        protocol : Protocol
            Endpoint pool to use
        path : str
            Request path
        params : Mapping[str, Any] | None
            Query parameters
        max_retries : int | None
            Attempt budget override

        Returns
        -------
        Any
            Parsed JSON body

        """
        return await self.balancer(chain_name, protocol).fetch(path, params=params, max_retries=max_retries)

    async def clear_chain(self, chain_name: str) -> None:
        """
        Forget everything cached or tracked for a chain.

        Clears its cache entries by pattern, detaches in-flight markers, and
        drops its load balancers so failure counters start fresh.

        """
        logger.info("Clearing cached data and load balancers for chain: %s", chain_name)
        self.swr.forget_pattern(chain_name)
        await self.cache.clear_by_pattern(chain_name)
        balancers = self._balancers.pop(chain_name, None)
        if balancers is not None:
            for balancer in balancers:
                self.prober.unwatch(balancer.name)
        await self.events.publish(Events.CHAIN_CLEARED, chain=chain_name)

    async def switch_chain(self, chain_name: str) -> None:
        """Make ``chain_name`` the active chain and notify subscribers."""
        previous = self.active_chain
        self.active_chain = chain_name
        await self.events.publish(Events.CHAIN_SWITCHED, previous=previous, current=chain_name)

    async def _on_chain_switched(self, previous: str | None, current: str) -> None:
        if previous is not None and previous != current:
            await self.clear_chain(previous)

    def stats(self, chain_name: str) -> dict[str, BalancerStats] | None:
        """Monitoring snapshot of a chain's balancers, or None if not created yet."""
        balancers = self._balancers.get(chain_name)
        if balancers is None:
            return None
        return {
            str(protocol): balancers.for_protocol(protocol).stats(self.prober.health) for protocol in Protocol
        }

    async def start(self, probe: bool = True) -> None:
        """Start the cache sweeps and, optionally, periodic health probing."""
        if self._started:
            return
        self.cache.start()
        if probe:
            self.prober.start()
        self._started = True

    async def close(self) -> None:
        """Stop background tasks and release network and storage resources."""
        await self.prober.stop()
        await self.swr.drain()
        await self.cache.stop()
        if self._owns_client:
            await self.client.aclose()
        self._started = False

    async def __aenter__(self) -> "NetworkContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()
