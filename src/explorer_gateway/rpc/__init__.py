"""Endpoint pools with failover, local rate limiting, and health probing."""

from explorer_gateway.rpc.balancer import LoadBalancer
from explorer_gateway.rpc.endpoint import (
    FAILURE_COOLDOWN,
    MAX_FAILURES,
    RATE_LIMIT_MAX,
    RATE_LIMIT_WINDOW,
    Endpoint,
    EndpointTracker,
)
from explorer_gateway.rpc.health import PROBE_PATHS, HealthProber
from explorer_gateway.rpc.retry import RetryConfig

__all__ = [
    "FAILURE_COOLDOWN",
    "MAX_FAILURES",
    "PROBE_PATHS",
    "RATE_LIMIT_MAX",
    "RATE_LIMIT_WINDOW",
    "Endpoint",
    "EndpointTracker",
    "HealthProber",
    "LoadBalancer",
    "RetryConfig",
]
