"""Periodic liveness probing of every known endpoint."""

import asyncio
import contextlib
import logging
import time

import httpx

from explorer_gateway.core.models import EndpointHealth, Protocol
from explorer_gateway.rpc.balancer import LoadBalancer
from explorer_gateway.rpc.endpoint import Endpoint

logger = logging.getLogger(__name__)

PROBE_PATHS = {
    Protocol.API: "/cosmos/base/tendermint/v1beta1/node_info",
    Protocol.RPC: "/status",
}


class HealthProber:
    """
    Probes endpoints on a fixed interval and records latency and liveness.

    Results are informational: they feed monitoring views only and never
    change which endpoint the load balancers pick.

    Parameters
    ----------
    client : httpx.AsyncClient
        Shared HTTP client
    interval : float
        Seconds between probe rounds
    timeout : float
        Timeout of a single probe

    """

    def __init__(self, client: httpx.AsyncClient, interval: float = 300.0, timeout: float = 5.0) -> None:
        self.client = client
        self.interval = interval
        self.timeout = timeout
        self.health: dict[str, EndpointHealth] = {}
        self._watched: dict[str, tuple[LoadBalancer, Protocol]] = {}
        self._task: asyncio.Task | None = None

    def watch(self, balancer: LoadBalancer, protocol: Protocol) -> None:
        """Include ``balancer``'s endpoints in future probe rounds."""
        self._watched[balancer.name] = (balancer, protocol)

    def unwatch(self, name: str) -> None:
        """Stop probing the balancer registered under ``name`` and forget its results."""
        watched = self._watched.pop(name, None)
        if watched is None:
            return
        still_watched = {ep.address for balancer, _ in self._watched.values() for ep in balancer.endpoints}
        for endpoint in watched[0].endpoints:
            if endpoint.address not in still_watched:
                self.health.pop(endpoint.address, None)

    @property
    def watched(self) -> list[str]:
        return list(self._watched)

    async def probe(self, endpoint: Endpoint, protocol: Protocol) -> EndpointHealth:
        """
        Probe one endpoint and record the result.

        Parameters
        ----------
        endpoint : Endpoint
            Endpoint to probe
        protocol : Protocol
            Selects the probe path

        Returns
        -------
        EndpointHealth
            Recorded result

        """
        started = time.perf_counter()
        try:
            response = await self.client.get(f"{endpoint.address}{PROBE_PATHS[protocol]}", timeout=self.timeout)
            result = EndpointHealth(
                healthy=response.is_success,
                latency_ms=round((time.perf_counter() - started) * 1000, 1),
                last_checked_at=time.time(),
            )
        except httpx.HTTPError as e:
            logger.debug("%s health check failed: %s", endpoint.provider, e)
            result = EndpointHealth(healthy=False, latency_ms=-1, last_checked_at=time.time())

        self.health[endpoint.address] = result
        logger.debug(
            "%s (%s): %s %sms",
            endpoint.provider,
            endpoint.address,
            "up" if result.healthy else "down",
            result.latency_ms,
        )
        return result

    async def probe_once(self) -> dict[str, EndpointHealth]:
        """Run one probe round over every watched endpoint concurrently."""
        checks = [
            self.probe(endpoint, protocol)
            for balancer, protocol in list(self._watched.values())
            for endpoint in balancer.endpoints
        ]
        if checks:
            await asyncio.gather(*checks, return_exceptions=True)
        return dict(self.health)

    async def _run(self) -> None:
        while True:
            try:
                await self.probe_once()
            except Exception as e:
                logger.warning("Health check round failed: %s", e)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start probing in the background; the first round runs immediately."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the background probe loop."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
