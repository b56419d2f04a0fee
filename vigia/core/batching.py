import asyncio
import logging
import math
import random
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from vigia.errors import AuditCancelledError

T = TypeVar("T")
R = TypeVar("R")

PROGRESS_STEPS = (
    "PARSING_MANIFESTS",
    "PARSING_DEPENDENCIES",
    "FETCHING_TRANSITIVE_DEPENDENCIES",
    "FETCHING_VULNERABILITIES_ID",
    "FETCHING_VULNERABILITIES_DETAILS",
    "FINALISING_RESULTS",
)

ProgressCallback = Callable[[str, float], None]


class ProgressReporter:
    """Forwards (step, percent) to a sink, never letting a step go backwards."""

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self.callback = callback
        self._last: Dict[str, float] = {}

    def reset(self) -> None:
        self._last.clear()

    def update(self, step: str, percent: float) -> None:
        percent = max(0.0, min(100.0, float(percent)))
        percent = max(percent, self._last.get(step, 0.0))
        self._last[step] = percent

        if not self.callback:
            return
        try:
            self.callback(step, percent)
        except Exception as e:
            logging.warning(f"Progress callback failed on {step}: {e}")

    def last(self, step: str) -> float:
        return self._last.get(step, 0.0)


def is_non_retryable(error: BaseException) -> bool:
    """Client errors (4xx) other than 429 will not succeed on a retry."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return 400 <= status < 500 and status != 429
    return False


async def retry_api_call(
    api_call: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 0.5,
) -> T:
    """
    Runs `api_call` up to `max_retries` times with exponential backoff.

    Delay before attempt n+1 is base_delay * 2**(n-1) plus up to 200ms of jitter.
    """
    for attempt in range(1, max_retries + 1):
        try:
            return await api_call()
        except Exception as e:
            if is_non_retryable(e) or attempt == max_retries:
                raise
            delay = base_delay * math.pow(2, attempt - 1) + random.uniform(0, 0.2)
            logging.debug(f"Attempt {attempt}/{max_retries} failed ({e}); retrying in {delay:.2f}s")
            await asyncio.sleep(delay)

    raise RuntimeError("Max retries exceeded")


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def process_batches_in_parallel(
    items: Sequence[T],
    batch_size: int,
    concurrency: int,
    processor: Callable[[T], Awaitable[R]],
    progress: Optional[ProgressReporter] = None,
    step: Optional[str] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[R]:
    """
    Two-level batching: items are chunked into batches, `concurrency` batches
    form a wave, and every item of a wave runs at once. The next wave starts
    only after the previous one has fully drained.
    """
    results: List[R] = []
    batches = chunk(items, batch_size)
    if not batches:
        return results

    for start in range(0, len(batches), concurrency):
        wave = batches[start:start + concurrency]

        wave_results = await asyncio.gather(
            *(_process_batch(batch, processor) for batch in wave)
        )
        for batch_results in wave_results:
            results.extend(batch_results)

        if progress and step:
            processed = min(start + concurrency, len(batches))
            progress.update(step, processed / len(batches) * 100)

        if cancel_event is not None and cancel_event.is_set():
            logging.info(f"Cancellation requested after wave {start // concurrency + 1}")
            raise AuditCancelledError(result=results)

    return results


async def _process_batch(batch: List[T], processor: Callable[[T], Awaitable[R]]) -> List[R]:
    return list(await asyncio.gather(*(processor(item) for item in batch)))
