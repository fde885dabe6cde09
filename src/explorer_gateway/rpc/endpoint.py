"""Per-endpoint failure and local rate-limit tracking."""

import logging
import time
from collections import deque
from collections.abc import Callable

from explorer_gateway.core.models import EndpointConfig

logger = logging.getLogger(__name__)

MAX_FAILURES = 3
FAILURE_COOLDOWN = 60.0
RATE_LIMIT_WINDOW = 10.0
RATE_LIMIT_MAX = 50


class Endpoint:
    """
    Mutable request-path state of one upstream endpoint.

    Parameters
    ----------
    address : str
        Base URL without trailing slash
    provider : str
        Operator label

    """

    def __init__(self, address: str, provider: str = "unknown") -> None:
        self.address = address.rstrip("/")
        self.provider = provider
        self.failure_count = 0
        self.last_failure_at: float | None = None
        self.recent_requests: deque[float] = deque()

    @classmethod
    def from_config(cls, config: EndpointConfig) -> "Endpoint":
        """Build runtime state from a configured endpoint."""
        return cls(config.address, config.provider)

    def __repr__(self) -> str:
        return f"Endpoint({self.address!r}, provider={self.provider!r}, failures={self.failure_count})"


class EndpointTracker:
    """
    Applies the cooldown and rate-limit rules to :class:`Endpoint` state.

    An endpoint enters cooldown after ``max_failures`` consecutive failures
    and stays there for ``cooldown`` seconds after its last failure; the first
    evaluation after that resets its failure count. It is locally rate limited
    while ``rate_max`` or more requests were recorded inside the trailing
    ``rate_window`` seconds.

    Parameters
    ----------
    max_failures : int
        Consecutive failures before cooldown
    cooldown : float
        Cooldown length in seconds
    rate_window : float
        Sliding window length in seconds
    rate_max : int
        Requests allowed per window
    clock : Callable[[], float]
        Monotonic clock, injectable for tests

    """

    def __init__(
        self,
        max_failures: int = MAX_FAILURES,
        cooldown: float = FAILURE_COOLDOWN,
        rate_window: float = RATE_LIMIT_WINDOW,
        rate_max: int = RATE_LIMIT_MAX,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_failures = max_failures
        self.cooldown = cooldown
        self.rate_window = rate_window
        self.rate_max = rate_max
        self.clock = clock

    def record_success(self, endpoint: Endpoint) -> None:
        """Reset the consecutive failure count."""
        if endpoint.failure_count > 0:
            logger.info("Endpoint %s recovered", endpoint.address)
        endpoint.failure_count = 0

    def record_failure(self, endpoint: Endpoint, error: Exception | None = None) -> None:
        """Count a failure and stamp its time."""
        endpoint.failure_count += 1
        endpoint.last_failure_at = self.clock()
        logger.warning(
            "Endpoint %s failed (%d/%d): %s",
            endpoint.address,
            endpoint.failure_count,
            self.max_failures,
            error,
        )

    def is_in_cooldown(self, endpoint: Endpoint) -> bool:
        """
        Check whether the endpoint must be skipped for repeated failures.

        Parameters
        ----------
        endpoint : Endpoint
            Endpoint to evaluate

        Returns
        -------
        bool
            True while in cooldown. An endpoint whose cooldown has elapsed
            has its failure count reset and returns False.

        """
        if endpoint.failure_count < self.max_failures:
            return False
        last_failure = endpoint.last_failure_at or 0.0
        if self.clock() - last_failure < self.cooldown:
            return True
        endpoint.failure_count = 0
        return False

    def _prune(self, endpoint: Endpoint) -> None:
        now = self.clock()
        requests = endpoint.recent_requests
        while requests and now - requests[0] >= self.rate_window:
            requests.popleft()

    def is_rate_limited(self, endpoint: Endpoint) -> bool:
        """True if the trailing window already holds ``rate_max`` requests."""
        self._prune(endpoint)
        return len(endpoint.recent_requests) >= self.rate_max

    def record_request(self, endpoint: Endpoint) -> None:
        """Append the current time to the endpoint's request window."""
        endpoint.recent_requests.append(self.clock())

    def request_count(self, endpoint: Endpoint) -> int:
        """Number of requests inside the current window."""
        self._prune(endpoint)
        return len(endpoint.recent_requests)

    def is_available(self, endpoint: Endpoint) -> bool:
        """Neither in cooldown nor rate limited."""
        return not self.is_in_cooldown(endpoint) and not self.is_rate_limited(endpoint)
