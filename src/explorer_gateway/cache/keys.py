"""Cache key construction."""

import hashlib
import json
from collections.abc import Mapping
from typing import Any

CACHE_VERSION = "v1"


def cache_key(category: str, chain: str, suffix: str | None = None, version: str = CACHE_VERSION) -> str:
    """
    Build a namespaced cache key.

    Keys follow ``{version}_{category}_{chain}[_{suffix}]`` so that a chain's
    entries can be cleared by pattern and a whole cache shape can be retired
    by bumping ``version``.

    Examples
    --------
    >>> cache_key("validators", "cosmoshub")
    'v1_validators_cosmoshub'
    >>> cache_key("block", "osmosis", "12345")
    'v1_block_osmosis_12345'

    """
    key = f"{version}_{category}_{chain}"
    if suffix:
        key = f"{key}_{suffix}"
    return key


def params_suffix(params: Mapping[str, Any] | None) -> str | None:
    """
    Derive a deterministic key suffix from request parameters.

    Parameters
    ----------
    params : Mapping[str, Any] | None
        Request parameters

    Returns
    -------
    str | None
        Short hash of the parameters, None when there are none

    """
    if not params:
        return None
    key_str = json.dumps(dict(params), sort_keys=True, default=str)
    # Hash for consistent key length
    return hashlib.sha256(key_str.encode()).hexdigest()[:16]
