"""Load-balanced, cached gateway to Cosmos SDK REST and CometBFT RPC endpoints."""

from explorer_gateway.core import NetworkContext, RequestFacade
from explorer_gateway.config import GatewaySettings
from explorer_gateway.data import load_chains

__version__ = "0.1.0"

__all__ = ["GatewaySettings", "NetworkContext", "RequestFacade", "__version__", "load_chains"]
