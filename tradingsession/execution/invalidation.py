"""Dependent-cache invalidation after order activity."""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Union

logger = logging.getLogger(__name__)

ACTIVE_ORDERS = "active-orders"
POSITIONS = "polymarket-positions"

Callback = Callable[[str], Union[None, Awaitable[None]]]


class CacheInvalidator:
    """
    Fan-out of invalidation signals to subscribed caches.

    Callbacks may be plain functions or coroutines; a failing callback is
    logged and does not stop the others.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Callback]] = {}
        self.counts: dict[str, int] = {}

    def subscribe(self, key: str, callback: Callback) -> None:
        self._subscribers.setdefault(key, []).append(callback)

    def unsubscribe(self, key: str, callback: Callback) -> None:
        callbacks = self._subscribers.get(key, [])
        if callback in callbacks:
            callbacks.remove(callback)

    async def invalidate(self, *keys: str) -> None:
        pending = []
        for key in keys:
            self.counts[key] = self.counts.get(key, 0) + 1
            for callback in list(self._subscribers.get(key, [])):
                try:
                    result = callback(key)
                    if inspect.isawaitable(result):
                        pending.append(result)
                except Exception as e:
                    logger.error(f"Invalidation callback for {key} failed: {e}")

        if pending:
            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Invalidation callback failed: {result}")
