"""Publish/subscribe channel for cross-component notifications."""

import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class Events(StrEnum):
    """Event names published on the bus."""

    CHAIN_SWITCHED = "chain_switched"
    CHAIN_CLEARED = "chain_cleared"


class EventBus:
    """
    In-process event bus.

    Subscribers may be plain functions or coroutine functions. Higher
    priority subscribers run first. A subscriber that raises is logged and
    does not prevent the remaining subscribers from running.

    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[tuple[int, Callable[..., Any]]]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callable[..., Any], priority: int = 0) -> None:
        """
        Register ``callback`` for ``event``.

        Parameters
        ----------
        event : str
            Event name
        callback : Callable[..., Any]
            Called with the published keyword payload
        priority : int
            Higher priority callbacks run first

        """
        self._subscribers[event].append((priority, callback))
        self._subscribers[event].sort(key=lambda item: item[0], reverse=True)

    def unsubscribe(self, event: str, callback: Callable[..., Any]) -> None:
        """Remove ``callback`` from ``event``."""
        remaining = [(p, cb) for p, cb in self._subscribers.get(event, []) if cb != callback]
        if remaining:
            self._subscribers[event] = remaining
        else:
            self._subscribers.pop(event, None)

    async def publish(self, event: str, **payload: Any) -> int:
        """
        Deliver ``payload`` to every subscriber of ``event`` in priority order.

        Returns
        -------
        int
            Number of subscribers that completed without raising

        """
        delivered = 0
        for _, callback in list(self._subscribers.get(event, [])):
            try:
                result = callback(**payload)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error("Subscriber %r for %s failed: %s", callback, event, e)
        return delivered
