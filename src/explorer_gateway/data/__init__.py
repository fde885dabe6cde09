"""Chain configuration loading."""

from explorer_gateway.data.loader import (
    DEFAULT_CHAINS_FILE,
    get_all_supported_chains,
    get_api_endpoints,
    get_chain_config,
    get_coingecko_id,
    get_rpc_endpoints,
    load_chains,
)

__all__ = [
    "DEFAULT_CHAINS_FILE",
    "get_all_supported_chains",
    "get_api_endpoints",
    "get_chain_config",
    "get_coingecko_id",
    "get_rpc_endpoints",
    "load_chains",
]
