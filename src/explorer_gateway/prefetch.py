"""Best-effort cache warm-up for chains a user is likely to open."""

import asyncio
import logging
from collections.abc import Sequence

from explorer_gateway.core.facade import RequestFacade
from explorer_gateway.exceptions import GatewayError

logger = logging.getLogger(__name__)

PREFETCH_ENDPOINTS = ("validators", "latest_block", "transactions", "network")


async def _prefetch_one(facade: RequestFacade, chain: str, endpoint: str) -> bool:
    if await facade.cached(chain, endpoint) is not None:
        return False
    try:
        await facade.request(chain, endpoint)
    except GatewayError as e:
        logger.debug("Prefetch of %s for %s failed: %s", endpoint, chain, e)
        return False
    return True


async def prefetch_chain_data(facade: RequestFacade, chain: str) -> list[str]:
    """
    Warm the landing-page endpoints of a chain.

    Endpoints that already have a cached value, even an expired one, are
    skipped. Failures are logged and ignored.

    Parameters
    ----------
    facade : RequestFacade
        Facade used for the requests
    chain : str
        Chain name

    Returns
    -------
    list[str]
        Endpoint names that were fetched

    """
    results = await asyncio.gather(*(_prefetch_one(facade, chain, name) for name in PREFETCH_ENDPOINTS))
    fetched = [name for name, done in zip(PREFETCH_ENDPOINTS, results, strict=True) if done]
    logger.debug("Prefetched %d endpoints for %s", len(fetched), chain)
    return fetched


async def warmup(
    facade: RequestFacade,
    chains: Sequence[str],
    limit: int = 3,
    stagger: float = 2.0,
    preferred: str | None = None,
) -> dict[str, list[str]]:
    """
    Prefetch the first ``limit`` chains, starting one every ``stagger`` seconds.

    Parameters
    ----------
    facade : RequestFacade
        Facade used for the requests
    chains : Sequence[str]
        Candidate chain names in display order
    limit : int
        Maximum number of chains to warm
    stagger : float
        Delay in seconds between consecutive chain starts
    preferred : str | None
        Chain warmed first regardless of its position in ``chains``

    Returns
    -------
    dict[str, list[str]]
        Fetched endpoint names per chain

    """
    ordered = list(chains)
    if preferred is not None and preferred in ordered:
        ordered.remove(preferred)
        ordered.insert(0, preferred)
    selected = ordered[:limit]

    async def delayed(index: int, chain: str) -> list[str]:
        if index and stagger > 0:
            await asyncio.sleep(index * stagger)
        return await prefetch_chain_data(facade, chain)

    results = await asyncio.gather(*(delayed(i, chain) for i, chain in enumerate(selected)))
    return dict(zip(selected, results, strict=True))
