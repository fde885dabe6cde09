"""Runtime settings for the explorer gateway."""

import os
from pathlib import Path

from pydantic import BaseModel

ENV_PREFIX = "EXPLORER_GATEWAY_"


class GatewaySettings(BaseModel):
    """
    Tunables for dispatch, health probing, caching, and pricing.

    Attributes
    ----------
    request_timeout : float
        Per-attempt timeout for LCD/RPC requests in seconds
    max_retries : int
        Attempts per dispatcher call
    retry_backoff : float
        Fixed wait between attempts in seconds
    max_failures : int
        Consecutive failures before an endpoint enters cooldown
    failure_cooldown : float
        Cooldown length in seconds
    rate_limit_window : float
        Sliding window used for local rate limiting in seconds
    rate_limit_max : int
        Requests allowed per endpoint inside the window
    probe_interval : float
        Seconds between health probe rounds
    probe_timeout : float
        Timeout of a single health probe
    memory_sweep_interval : float
        Seconds between in-memory expiry sweeps
    durable_sweep_interval : float
        Seconds between durable-tier expiry sweeps
    cache_version : str
        Prefix of every cache key; bump to invalidate old cache shapes
    session_path : Path | None
        JSON file backing the session tier (disabled if None)
    durable_path : Path | None
        SQLite database backing the durable tier (disabled if None)
    chains_file : Path | None
        Chain configuration file or directory (packaged chains if None)
    price_ttl : float
        Cache lifetime of a price quote in seconds
    price_timeout : float
        Timeout of a single price provider call
    price_listing_timeout : float
        Timeout of bulk token listing calls

    """

    request_timeout: float = 15.0
    max_retries: int = 3
    retry_backoff: float = 0.5
    max_failures: int = 3
    failure_cooldown: float = 60.0
    rate_limit_window: float = 10.0
    rate_limit_max: int = 50
    probe_interval: float = 300.0
    probe_timeout: float = 5.0
    memory_sweep_interval: float = 300.0
    durable_sweep_interval: float = 600.0
    cache_version: str = "v1"
    session_path: Path | None = None
    durable_path: Path | None = None
    chains_file: Path | None = None
    price_ttl: float = 60.0
    price_timeout: float = 5.0
    price_listing_timeout: float = 10.0

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "GatewaySettings":
        """
        Build settings from ``EXPLORER_GATEWAY_*`` environment variables.

        Parameters
        ----------
        environ : dict[str, str] | None
            Environment mapping. Uses ``os.environ`` if None.

        Returns
        -------
        GatewaySettings
            Settings with unset variables left at their defaults

        Examples
        --------
        >>> GatewaySettings.from_env({"EXPLORER_GATEWAY_MAX_RETRIES": "5"}).max_retries
        5

        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        # pydantic coerces the raw strings to the declared field types
        return cls.model_validate(values)
