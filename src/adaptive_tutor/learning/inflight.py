from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlightRegistry:
    """
    Suppress duplicate requests for the same key.

    The first caller for a key starts the work as a task; callers arriving while
    it is outstanding await that same task instead of issuing their own request.
    Callers are shielded, so a caller that is cancelled (e.g. the learner navigated
    away) does not cancel the shared request for everyone else.
    """

    def __init__(self) -> None:
        self._pending: Dict[Hashable, "asyncio.Future[Any]"] = {}

    def is_pending(self, key: Hashable) -> bool:
        future = self._pending.get(key)
        return future is not None and not future.done()

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        existing = self._pending.get(key)
        if existing is not None and not existing.done():
            logger.debug("Joining in-flight request for %s", key)
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(factory())
        self._pending[key] = task
        task.add_done_callback(lambda done, key=key: self._release(key, done))
        return await asyncio.shield(task)

    def _release(self, key: Hashable, future: "asyncio.Future[Any]") -> None:
        if self._pending.get(key) is future:
            del self._pending[key]
