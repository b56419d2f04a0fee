import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from vigia.core.batching import PROGRESS_STEPS, ProgressReporter, process_batches_in_parallel, retry_api_call
from vigia.core.model import UNKNOWN_VERSION, Dependency, Ecosystem, TransitiveDependency
from vigia.errors import AuditCancelledError, TransitiveResolutionError

ResolveFn = Callable[[Ecosystem, str, str], Awaitable[TransitiveDependency]]

STEP = "Transitive Resolution"


class TransitiveResolver:
    """Expands direct dependencies into their transitive closure through a dependency-graph service."""

    def __init__(
        self,
        resolve: ResolveFn,
        batch_size: int = 15,
        concurrency: int = 6,
        progress: Optional[ProgressReporter] = None,
        max_retries: int = 4,
        base_delay: float = 0.8,
    ) -> None:
        self.resolve = resolve
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.progress = progress
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.errors: List[TransitiveResolutionError] = []

    async def resolve_all(
        self,
        dependencies: Sequence[Dependency],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, TransitiveDependency]:
        """
        Returns `dependency key -> subgraph`. A failed lookup maps to an
        empty subgraph and its error is kept in `self.errors`.
        """
        self.errors = []
        candidates = [dep for dep in dependencies if dep.version != UNKNOWN_VERSION]
        logging.info(f"Resolving transitive graphs for {len(candidates)} dependencies...")

        step = PROGRESS_STEPS[2]
        if self.progress:
            self.progress.update(step, 0)

        try:
            results = await process_batches_in_parallel(
                candidates,
                self.batch_size,
                self.concurrency,
                self._resolve_one,
                progress=self.progress,
                step=step,
                cancel_event=cancel_event,
            )
        except AuditCancelledError as e:
            # Graphs of the waves that completed
            raise AuditCancelledError(result=dict(e.result or [])) from None

        if self.progress:
            self.progress.update(step, 100)

        graphs = dict(results)
        logging.info(f"Transitive graphs resolved: {len(graphs) - len(self.errors)} ok, {len(self.errors)} failed.")
        return graphs

    async def _resolve_one(self, dep: Dependency) -> Tuple[str, TransitiveDependency]:
        try:
            graph = await retry_api_call(
                lambda: self.resolve(dep.ecosystem, dep.name, dep.version),
                self.max_retries,
                self.base_delay,
            )
            return dep.key, graph
        except Exception as e:
            logging.warning(f"Transitive lookup failed for {dep.package}: {e}")
            self.errors.append(TransitiveResolutionError(dep.package, e))
            return dep.key, TransitiveDependency()
