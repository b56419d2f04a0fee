import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from cvss import CVSS3, CVSS4
from cvss.exceptions import CVSSError

from vigia.core.batching import PROGRESS_STEPS, ProgressReporter, chunk, process_batches_in_parallel, retry_api_call
from vigia.core.model import LATEST_VERSION, UNKNOWN_VERSION, Dependency, SeverityScore, Vulnerability
from vigia.errors import AuditCancelledError, VulnerabilityLookupError

QueryBatchFn = Callable[[Sequence[Dependency]], Awaitable[List[List[str]]]]
DetailsFn = Callable[[str], Awaitable[Dict[str, Any]]]

LOOKUP_STEP = "Vulnerability Scanning"
DETAILS_STEP = "Vulnerability Details"


def severity_scores(severity: Iterable[Dict[str, str]]) -> SeverityScore:
    """Evaluates CVSS vectors to 0-10 scores. Unparsable vectors leave the field unset."""
    cvss_v3 = None
    cvss_v4 = None

    for sev in severity or []:
        vector = sev.get("score", "")
        try:
            if sev.get("type") == "CVSS_V3":
                cvss_v3 = float(CVSS3(vector).base_score)
            elif sev.get("type") == "CVSS_V4":
                cvss_v4 = float(CVSS4(vector).base_score)
        except (CVSSError, ValueError, KeyError, IndexError) as e:
            logging.debug(f"Skipping invalid CVSS vector {vector!r}: {e}")

    return SeverityScore(cvss_v3=cvss_v3, cvss_v4=cvss_v4)


def fixed_version(affected: Sequence[Dict[str, Any]]) -> str:
    """First `fixed` event of the first affected range, or "" when none is published."""
    if not affected:
        return ""
    ranges = affected[0].get("ranges") or []
    if not ranges:
        return ""
    for event in ranges[0].get("events") or []:
        if event.get("fixed"):
            return event["fixed"]
    return ""


def parse_vulnerability(data: Dict[str, Any]) -> Vulnerability:
    severity = tuple(data.get("severity") or ())
    affected = tuple(data.get("affected") or ())
    return Vulnerability(
        id=data["id"],
        summary=data.get("summary"),
        details=data.get("details"),
        severity=severity,
        severity_score=severity_scores(severity),
        references=tuple(data.get("references") or ()),
        fix_available=fixed_version(affected),
        affected=affected,
        aliases=tuple(data.get("aliases") or ()),
    )


def collect_worklist(dependencies: Iterable[Dependency]) -> List[Dependency]:
    """Direct dependencies and all their transitive nodes, once per `ecosystem:name:version`."""
    seen = set()
    worklist = []

    def visit(dep: Dependency) -> None:
        if dep.version in (UNKNOWN_VERSION, LATEST_VERSION) or dep.lookup_key in seen:
            return
        seen.add(dep.lookup_key)
        worklist.append(dep)

    for dep in dependencies:
        visit(dep)
        if dep.transitive_dependencies:
            for node in dep.transitive_dependencies.nodes:
                visit(node)

    return worklist


def group_ids(batch_results: Iterable[Tuple[List[Dependency], List[List[str]]]]) -> Dict[str, List[str]]:
    """Flattens `(batch, ids per dependency)` pairs into `lookup_key -> distinct ids`."""
    ids_by_key: Dict[str, List[str]] = {}
    for batch, ids_per_dep in batch_results:
        for dep, vuln_ids in zip(batch, ids_per_dep):
            for vid in vuln_ids:
                ids = ids_by_key.setdefault(dep.lookup_key, [])
                if vid not in ids:
                    ids.append(vid)
    return ids_by_key


def by_id(vulns: Iterable[Optional[Vulnerability]]) -> Dict[str, Vulnerability]:
    return {vuln.id: vuln for vuln in vulns if vuln is not None}


def merge_details(
    ids_by_key: Dict[str, List[str]],
    details: Dict[str, Vulnerability],
) -> Dict[str, Tuple[Vulnerability, ...]]:
    """Ids without a fetched record stay as id-only vulnerabilities."""
    return {
        key: tuple(details.get(vid) or Vulnerability(id=vid) for vid in ids)
        for key, ids in ids_by_key.items()
    }


class VulnerabilityEnricher:
    """
    Two-phase lookup against a vulnerability database: ids for every
    dependency first, then one detail record per distinct id.
    """

    def __init__(
        self,
        query_batch: QueryBatchFn,
        get_details: DetailsFn,
        batch_size: int = 25,
        concurrency: int = 10,
        progress: Optional[ProgressReporter] = None,
    ) -> None:
        self.query_batch = query_batch
        self.get_details = get_details
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.progress = progress
        self.lookup_errors: List[VulnerabilityLookupError] = []
        self.detail_errors: List[VulnerabilityLookupError] = []

    async def enrich(
        self,
        dependencies: Sequence[Dependency],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, Tuple[Vulnerability, ...]]:
        """Returns `lookup_key -> vulnerabilities` for every dependency with at least one hit."""
        self.lookup_errors = []
        self.detail_errors = []

        worklist = collect_worklist(dependencies)
        logging.info(f"Scanning {len(worklist)} packages for vulnerabilities...")

        try:
            ids_by_key = await self.discover(worklist, cancel_event)
        except AuditCancelledError as e:
            raise AuditCancelledError(result=merge_details(e.result, {})) from None

        unique_ids = list(dict.fromkeys(vid for ids in ids_by_key.values() for vid in ids))
        try:
            details = await self.fetch_details(unique_ids, cancel_event)
        except AuditCancelledError as e:
            raise AuditCancelledError(result=merge_details(ids_by_key, e.result)) from None

        found = merge_details(ids_by_key, details)
        logging.info(f"{len(unique_ids)} distinct vulnerabilities across {len(found)} packages.")
        return found

    async def discover(
        self,
        worklist: Sequence[Dependency],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, List[str]]:
        step = PROGRESS_STEPS[3]
        if self.progress:
            self.progress.update(step, 0)

        try:
            batch_results = await process_batches_in_parallel(
                chunk(worklist, self.batch_size),
                1,
                self.concurrency,
                self._query_safe,
                progress=self.progress,
                step=step,
                cancel_event=cancel_event,
            )
        except AuditCancelledError as e:
            raise AuditCancelledError(result=group_ids(e.result or [])) from None

        if self.progress:
            self.progress.update(step, 100)
        return group_ids(batch_results)

    async def _query_safe(self, batch: List[Dependency]) -> Tuple[List[Dependency], List[List[str]]]:
        try:
            ids = await retry_api_call(lambda: self.query_batch(batch), 3, 1.0)
            return batch, ids
        except Exception as e:
            logging.error(f"Vulnerability batch of {len(batch)} packages failed: {e}")
            self.lookup_errors.append(VulnerabilityLookupError(str(e)))
            return batch, []

    async def fetch_details(
        self,
        vuln_ids: Sequence[str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, Vulnerability]:
        step = PROGRESS_STEPS[4]
        if self.progress:
            self.progress.update(step, 0)

        try:
            results = await process_batches_in_parallel(
                vuln_ids,
                self.batch_size,
                self.concurrency,
                self._hydrate_vulnerability,
                progress=self.progress,
                step=step,
                cancel_event=cancel_event,
            )
        except AuditCancelledError as e:
            raise AuditCancelledError(result=by_id(e.result or [])) from None

        if self.progress:
            self.progress.update(step, 100)
        return by_id(results)

    async def _hydrate_vulnerability(self, vuln_id: str) -> Optional[Vulnerability]:
        try:
            data = await retry_api_call(lambda: self.get_details(vuln_id), 4, 0.8)
            data.setdefault("id", vuln_id)
            return parse_vulnerability(data)
        except Exception as e:
            logging.warning(f"Failed to hydrate {vuln_id}: {e}")
            self.detail_errors.append(VulnerabilityLookupError(str(e)))
            return None
