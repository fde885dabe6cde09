"""Round-robin load balancer with failover across an endpoint pool."""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from explorer_gateway.core.models import BalancerStats, EndpointConfig, EndpointHealth, EndpointStats
from explorer_gateway.exceptions import (
    EndpointError,
    EndpointHTTPError,
    EndpointUnavailableError,
    MalformedResponseError,
    NoEndpointsError,
    RateLimitedError,
)
from explorer_gateway.rpc.endpoint import Endpoint, EndpointTracker
from explorer_gateway.rpc.retry import RetryConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class LoadBalancer:
    """
    Dispatches GET requests across one pool of equivalent endpoints.

    Selection is round robin starting at the pool's cursor, skipping
    endpoints in failure cooldown or over the local rate limit. When every
    endpoint is ineligible the first configured endpoint is used anyway, so a
    total outage degrades to "keep trying" instead of "stop trying".

    Parameters
    ----------
    name : str
        Logical resource name (e.g., 'cosmoshub:api')
    endpoints : Iterable[EndpointConfig | Endpoint]
        Candidate endpoints in configured order
    client : httpx.AsyncClient
        Shared HTTP client
    tracker : EndpointTracker | None
        Cooldown and rate-limit rules. Uses defaults if None.
    retry_config : RetryConfig | None
        Attempt budget and backoff. Uses defaults if None.
    timeout : float
        Per-attempt timeout in seconds

    """

    def __init__(
        self,
        name: str,
        endpoints: Iterable[EndpointConfig | Endpoint],
        client: httpx.AsyncClient,
        tracker: EndpointTracker | None = None,
        retry_config: RetryConfig | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.name = name
        self.endpoints = [ep if isinstance(ep, Endpoint) else Endpoint.from_config(ep) for ep in endpoints]
        self.client = client
        self.tracker = tracker or EndpointTracker()
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.cursor = 0

    def __len__(self) -> int:
        return len(self.endpoints)

    def select_endpoint(self) -> Endpoint:
        """
        Pick the next eligible endpoint and advance the cursor.

        Returns
        -------
        Endpoint
            Chosen endpoint

        Raises
        ------
        NoEndpointsError
            If the pool is empty

        """
        if not self.endpoints:
            msg = f"No endpoints configured for {self.name}"
            raise NoEndpointsError(msg)

        for _ in range(len(self.endpoints)):
            endpoint = self.endpoints[self.cursor]
            self.cursor = (self.cursor + 1) % len(self.endpoints)

            if self.tracker.is_in_cooldown(endpoint):
                logger.debug("Skipping %s - in cooldown", endpoint.address)
                continue
            if self.tracker.is_rate_limited(endpoint):
                logger.debug("Skipping %s - rate limited", endpoint.address)
                continue
            return endpoint

        logger.error("[%s] All endpoints unavailable, using first endpoint", self.name)
        return self.endpoints[0]

    async def fetch(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """
        GET ``path`` from the pool with automatic failover.

        Parameters
        ----------
        path : str
            Path appended to the endpoint address (e.g., '/cosmos/staking/v1beta1/pool')
        params : Mapping[str, Any] | None
            Query parameters
        headers : Mapping[str, str] | None
            Extra request headers
        max_retries : int | None
            Total attempts. Uses the retry config if None.

        Returns
        -------
        Any
            Parsed JSON body, returned verbatim

        Raises
        ------
        EndpointError
            The last observed failure once every attempt is spent
        NoEndpointsError
            If the pool is empty

        """
        attempts_left = max_retries if max_retries is not None else self.retry_config.max_retries
        last_error: EndpointError | None = None
        attempt = 0

        while attempts_left > 0:
            endpoint = self.select_endpoint()
            url = f"{endpoint.address}{path}"
            # Counted before the call; slow responses still occupy the window
            self.tracker.record_request(endpoint)
            logger.debug("[%s] Fetching from %s: %s", self.name, endpoint.provider, url)

            try:
                data = await self._get_json(endpoint, url, params, headers)
            except EndpointError as e:
                last_error = e
                self.tracker.record_failure(endpoint, e)
                attempts_left -= 1
                if attempts_left > 0:
                    delay = self.retry_config.get_delay(attempt)
                    logger.info("[%s] Retrying in %.1fs (%d attempts left)", self.name, delay, attempts_left)
                    await asyncio.sleep(delay)
                attempt += 1
                continue

            self.tracker.record_success(endpoint)
            return data

        if last_error is None:
            msg = f"All endpoints failed for {self.name}"
            raise EndpointError(msg)
        raise last_error

    async def _get_json(
        self,
        endpoint: Endpoint,
        url: str,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
    ) -> Any:
        try:
            response = await self.client.get(
                url,
                params=dict(params) if params else None,
                headers=dict(headers) if headers else None,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            msg = f"Request timeout: {e}"
            raise EndpointUnavailableError(msg, endpoint.address) from e
        except httpx.HTTPError as e:
            msg = f"HTTP request failed: {e}"
            raise EndpointUnavailableError(msg, endpoint.address) from e

        if response.status_code == 429:
            msg = f"Rate limit hit on {endpoint.address}"
            raise RateLimitedError(msg, endpoint.address)
        if not response.is_success:
            msg = f"HTTP {response.status_code}: {response.reason_phrase}"
            raise EndpointHTTPError(msg, endpoint.address, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            msg = f"Malformed JSON from {endpoint.address}: {e}"
            raise MalformedResponseError(msg, endpoint.address) from e

    def stats(self, health: Mapping[str, EndpointHealth] | None = None) -> BalancerStats:
        """
        Snapshot the pool for monitoring views.

        Parameters
        ----------
        health : Mapping[str, EndpointHealth] | None
            Probe results keyed by address, merged into the snapshot

        Returns
        -------
        BalancerStats
            Per-endpoint failure counts and probe results

        """
        health = health or {}
        return BalancerStats(
            name=self.name,
            cursor=self.cursor,
            endpoints=[
                EndpointStats(
                    address=ep.address,
                    provider=ep.provider,
                    failure_count=ep.failure_count,
                    healthy=ep.failure_count < self.tracker.max_failures,
                    recent_requests=self.tracker.request_count(ep),
                    health=health.get(ep.address),
                )
                for ep in self.endpoints
            ],
        )
