"""
In-process request coalescing.

Concurrent callers asking for the same key share one execution. The work runs
in its own task, so every caller (including the one that started it) only
awaits it: a caller that goes away does not cancel the work for the others.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):

    def __init__(self):
        self._inflight: Dict[str, "asyncio.Task[T]"] = {}

    def inflight(self, key: str) -> bool:
        return key in self._inflight

    def _forget(self, key: str, task: "asyncio.Task[T]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the outcome retrieved even when every caller has gone away
        if not task.cancelled():
            task.exception()

    async def do(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(work())
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        else:
            logger.debug(f"[SingleFlight] Joining in-flight work: {key[:60]}")
        return await asyncio.shield(task)
