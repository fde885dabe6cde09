"""Chain configuration loader."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from explorer_gateway.core.models import ChainConfig, EndpointConfig

DEFAULT_CHAINS_FILE = Path(__file__).parent / "chains.yaml"


def _read_directory(path: Path) -> list[dict[str, Any]]:
    # One JSON document per chain; files starting with '_' are drafts
    chains = []
    for file in sorted(path.glob("*.json")):
        if file.name.startswith("_"):
            continue
        with open(file, encoding="utf-8") as f:
            data = json.load(f)
        data.setdefault("chain_id", file.stem)
        chains.append(data)
    return chains


@lru_cache(maxsize=8)
def _load(path: Path) -> dict[str, ChainConfig]:
    if path.is_dir():
        raw_chains = _read_directory(path)
    else:
        with open(path, encoding="utf-8") as f:
            raw_chains = (yaml.safe_load(f) or {}).get("chains", [])
    chains = [ChainConfig.model_validate(raw) for raw in raw_chains]
    return {chain.chain_name: chain for chain in chains}


def load_chains(path: Path | str | None = None) -> dict[str, ChainConfig]:
    """
    Load chain configurations.

    Parameters
    ----------
    path : Path | str | None
        YAML file with a top-level ``chains`` list, or a directory of
        per-chain JSON files. Uses the packaged chains.yaml if None.

    Returns
    -------
    dict[str, ChainConfig]
        Chains keyed by chain name

    """
    resolved = Path(path).resolve() if path is not None else DEFAULT_CHAINS_FILE
    # Copy so callers cannot mutate the cached mapping
    return dict(_load(resolved))


def get_chain_config(chain: str, path: Path | str | None = None) -> ChainConfig:
    """
    Get configuration for a specific chain.

    Parameters
    ----------
    chain : str
        Chain name (e.g., 'cosmoshub', 'osmosis')
    path : Path | str | None
        Chain data source, see :func:`load_chains`

    Returns
    -------
    ChainConfig
        Chain configuration including API and RPC endpoints

    Raises
    ------
    KeyError
        If chain is not found in configuration

    """
    return load_chains(path)[chain]


def get_api_endpoints(chain: str, path: Path | str | None = None) -> list[EndpointConfig]:
    """LCD/REST endpoints configured for ``chain``."""
    return get_chain_config(chain, path).api


def get_rpc_endpoints(chain: str, path: Path | str | None = None) -> list[EndpointConfig]:
    """CometBFT RPC endpoints configured for ``chain``."""
    return get_chain_config(chain, path).rpc


def get_all_supported_chains(path: Path | str | None = None) -> list[str]:
    """
    Get list of all supported chain names.

    Returns
    -------
    list[str]
        List of chain names

    """
    return list(load_chains(path))


def get_coingecko_id(symbol: str, path: Path | str | None = None) -> str | None:
    """
    Find the CoinGecko id of an asset by symbol or display name.

    Parameters
    ----------
    symbol : str
        Asset symbol, case-insensitive
    path : Path | str | None
        Chain data source, see :func:`load_chains`

    Returns
    -------
    str | None
        CoinGecko id of the first matching asset, None if unknown

    """
    wanted = symbol.lower()
    for chain in load_chains(path).values():
        for asset in chain.assets:
            if asset.symbol.lower() == wanted or (asset.display or "").lower() == wanted:
                return asset.coingecko_id
    return None
