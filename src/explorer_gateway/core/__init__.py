"""Core functionality including models, registry, network context, and request facade."""

from explorer_gateway.core.models import (
    BalancerStats,
    ChainAsset,
    ChainConfig,
    EndpointConfig,
    EndpointHealth,
    EndpointStats,
    PriceQuote,
    Protocol,
)
from explorer_gateway.core.events import EventBus, Events
from explorer_gateway.core.registry import DEFAULT_ENDPOINTS, EndpointRegistry, EndpointSpec
from explorer_gateway.core.context import ChainBalancers, NetworkContext
from explorer_gateway.core.facade import RequestFacade

__all__ = [
    "DEFAULT_ENDPOINTS",
    "BalancerStats",
    "ChainAsset",
    "ChainBalancers",
    "ChainConfig",
    "EndpointConfig",
    "EndpointHealth",
    "EndpointRegistry",
    "EndpointSpec",
    "EndpointStats",
    "EventBus",
    "Events",
    "NetworkContext",
    "PriceQuote",
    "Protocol",
    "RequestFacade",
]
