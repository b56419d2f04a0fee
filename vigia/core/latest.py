import asyncio
import logging
from typing import Awaitable, Callable, Dict

from vigia.core.batching import retry_api_call
from vigia.core.model import UNKNOWN_VERSION


class LatestVersionResolver:
    """
    Memoizes "latest version" lookups for the lifetime of one audit run.

    Concurrent lookups of the same package share a single in-flight task, so
    the registry sees at most one request per name. Failures resolve to
    "unknown" and are cached like any other answer.
    """

    def __init__(self, fetch: Callable[[str], Awaitable[str]]) -> None:
        self.fetch = fetch
        self._tasks: Dict[str, "asyncio.Task[str]"] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    async def latest(self, name: str) -> str:
        task = self._tasks.get(name)
        if task is None:
            task = asyncio.ensure_future(self._lookup(name))
            self._tasks[name] = task
        return await asyncio.shield(task)

    async def _lookup(self, name: str) -> str:
        try:
            return await retry_api_call(lambda: self.fetch(name), max_retries=2, base_delay=0.3)
        except Exception as e:
            logging.warning(f"Latest version lookup failed for {name}: {e}")
            return UNKNOWN_VERSION

    def clear(self) -> None:
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()
