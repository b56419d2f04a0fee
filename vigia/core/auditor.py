"""
Audit pipeline: parse manifests, deduplicate, resolve transitive graphs,
enrich with vulnerabilities, prune to the vulnerable subset and count.

Per-item failures never abort a run; they are collected per step and
reported as one consolidated line per step in `AuditResult.errors`.
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple

import httpx

from vigia.config import Config, load_config
from vigia.core import scanner, transitive
from vigia.core.batching import PROGRESS_STEPS, ProgressCallback, ProgressReporter, process_batches_in_parallel
from vigia.core.clients import (
    DepsDevClient,
    NpmRegistryClient,
    OsvClient,
    SourceTreeProvider,
    build_http_client,
)
from vigia.core.filter import calculate_stats, count_dependencies, filter_vulnerable
from vigia.core.graph import DependencyGraphBuilder
from vigia.core.latest import LatestVersionResolver
from vigia.core.model import LATEST_VERSION, AuditResult, Dependency, Ecosystem, TransitiveDependency
from vigia.core.versions import normalize_version
from vigia.errors import AuditCancelledError, FatalInputError, ManifestParseError
from vigia.managers import detect_manager, is_manifest

PARSING_STEP = "File Parsing"

# Never descended into when walking a project directory
SKIP_DIRS = {
    "node_modules", ".git", ".hg", ".svn", "vendor", "target",
    ".venv", "venv", "env", ".tox", "__pycache__",
}


class Auditor:
    def __init__(
        self,
        config: Optional[Config] = None,
        on_progress: Optional[ProgressCallback] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or load_config()
        self.progress = ProgressReporter(on_progress)
        self.builder = DependencyGraphBuilder()
        self.step_errors: Dict[str, List[str]] = {}
        # An injected client is borrowed, never closed by the auditor
        self.http_client = http_client
        self.latest: Optional[LatestVersionResolver] = None

    # --- Entry points ---

    async def audit_manifests(
        self,
        files: Dict[str, str],
        include_transitive: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AuditResult:
        """Audits in-memory manifests (`path -> content`). Unsupported paths are ignored."""
        self.reset()
        manifests = {path: content for path, content in files.items() if is_manifest(path)}
        return await self._analyse(manifests, include_transitive, cancel_event)

    async def audit_files(
        self,
        paths: Iterable[str],
        include_transitive: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AuditResult:
        self.reset()
        self.progress.update(PROGRESS_STEPS[0], 0)
        manifests = self._read_local([(path, path) for path in paths if is_manifest(path)])
        return await self._analyse(manifests, include_transitive, cancel_event)

    async def audit_directory(
        self,
        directory: str,
        include_transitive: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AuditResult:
        """Walks `directory` for known manifests; groups are keyed by path relative to it."""
        self.reset()
        self.progress.update(PROGRESS_STEPS[0], 0)
        found = [(os.path.relpath(path, directory), path) for path in find_manifests(directory)]
        logging.debug(f"Found {len(found)} manifests under {directory}")
        manifests = self._read_local(found)
        return await self._analyse(manifests, include_transitive, cancel_event)

    async def audit_paths(
        self,
        paths: Iterable[str],
        include_transitive: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AuditResult:
        """A single directory is walked; anything else is treated as a list of manifest files."""
        paths = list(paths)
        if len(paths) == 1 and os.path.isdir(paths[0]):
            return await self.audit_directory(paths[0], include_transitive, cancel_event)
        return await self.audit_files(paths, include_transitive, cancel_event)

    async def audit_repository(
        self,
        provider: SourceTreeProvider,
        repo: str,
        ref: Optional[str] = None,
        include_transitive: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AuditResult:
        """Reads manifests from a hosted repository through `provider`, in batches."""
        self.reset()
        self.progress.update(PROGRESS_STEPS[0], 0)

        tree = await provider.list_files(repo, ref)
        paths = [
            entry["path"] for entry in tree
            if entry.get("type", "blob") == "blob" and is_manifest(entry["path"])
        ]
        if not paths:
            raise FatalInputError("No manifest files found in the repository")

        async def read_one(path: str) -> Tuple[str, Optional[str]]:
            try:
                return path, await provider.read_file(repo, path, ref)
            except Exception as e:
                logging.warning(f"Could not read {path} from {repo}: {e}")
                self.add_step_error(PARSING_STEP, e)
                return path, None

        try:
            contents = await process_batches_in_parallel(
                paths,
                self.config.batch_size,
                self.config.concurrency,
                read_one,
                progress=self.progress,
                step=PROGRESS_STEPS[0],
                cancel_event=cancel_event,
            )
        except AuditCancelledError:
            raise AuditCancelledError(result=self._result(0)) from None

        manifests = {path: content for path, content in contents if content is not None}
        return await self._analyse(manifests, include_transitive, cancel_event)

    # --- State ---

    def reset(self) -> None:
        self.builder.clear()
        self.step_errors = {}
        self.progress.reset()
        if self.latest is not None:
            self.latest.clear()
            self.latest = None

    def add_step_error(self, step: str, error: BaseException) -> None:
        self.step_errors.setdefault(step, []).append(str(error))

    def consolidate_errors(self) -> List[str]:
        errors = []
        for step, messages in self.step_errors.items():
            if not messages:
                continue
            if len(messages) == 1:
                errors.append(f"{step}: {messages[0]}")
            elif len(set(messages)) == 1:
                errors.append(f"{step}: {messages[0]} ({len(messages)} occurrences)")
            else:
                errors.append(f"{step}: {len(messages)} issues encountered")
        return errors

    # --- Pipeline ---

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        async with build_http_client(self.config) as client:
            yield client

    async def _analyse(
        self,
        manifests: Dict[str, str],
        include_transitive: bool,
        cancel_event: Optional[asyncio.Event],
    ) -> AuditResult:
        if not manifests:
            raise FatalInputError("No supported manifest files found")
        self.progress.update(PROGRESS_STEPS[0], 100)

        total = 0
        async with self._session() as client:
            self.latest = LatestVersionResolver(
                NpmRegistryClient(client, self.config.npm_registry_url).latest_version
            )
            try:
                await self._parse_manifests(manifests)
                total = count_dependencies(self.builder.materialize())
                logging.info(f"{len(self.builder)} unique dependencies declared across {len(manifests)} manifests.")

                if include_transitive:
                    await self._resolve_transitive(client, cancel_event)

                await self._scan_vulnerabilities(client, cancel_event)
            except AuditCancelledError:
                logging.info("Audit cancelled; returning partial result.")
                raise AuditCancelledError(result=self._result(total)) from None
            finally:
                self.latest.clear()

        result = self._result(total)
        self.progress.update(PROGRESS_STEPS[5], 100)
        logging.info(
            f"Audit finished: {result.total_vulnerabilities} vulnerabilities "
            f"({result.critical_count} critical, {result.high_count} high)."
        )
        return result

    async def _parse_manifests(self, manifests: Dict[str, str]) -> None:
        step = PROGRESS_STEPS[1]
        self.progress.update(step, 0)

        for done, (path, content) in enumerate(manifests.items(), start=1):
            manager = detect_manager(path)
            try:
                declared = manager.parse(content, path)
            except ManifestParseError as e:
                logging.warning(str(e))
                self.add_step_error(PARSING_STEP, e)
                continue

            pinned = await asyncio.gather(*(self._pin_latest(dep) for dep in declared))
            self.builder.extend(pinned, path)
            self.progress.update(step, done / len(manifests) * 100)

        self.progress.update(step, 100)

    async def _pin_latest(self, dep: Dependency) -> Dependency:
        if dep.ecosystem != Ecosystem.NPM or dep.version != LATEST_VERSION:
            return dep
        version = await self.latest.latest(dep.name)
        return replace(dep, version=normalize_version(version))

    async def _resolve_transitive(self, client: httpx.AsyncClient, cancel_event: Optional[asyncio.Event]) -> None:
        resolver = transitive.TransitiveResolver(
            DepsDevClient(client, self.config.deps_dev_url).resolve,
            batch_size=self.config.transitive_batch_size,
            concurrency=self.config.transitive_concurrency,
            progress=self.progress,
        )
        try:
            graphs = await resolver.resolve_all(self.builder.direct_dependencies(), cancel_event)
        except AuditCancelledError as e:
            self._attach_graphs(e.result or {})
            raise
        finally:
            for error in resolver.errors:
                self.add_step_error(transitive.STEP, error)

        self._attach_graphs(graphs)

    def _attach_graphs(self, graphs: Dict[str, TransitiveDependency]) -> None:
        for key, graph in graphs.items():
            if graph.nodes and key in self.builder:
                self.builder.attach_transitive(key, graph)

    async def _scan_vulnerabilities(self, client: httpx.AsyncClient, cancel_event: Optional[asyncio.Event]) -> None:
        osv = OsvClient(client, self.config.osv_batch_url, self.config.osv_vuln_url)
        enricher = scanner.VulnerabilityEnricher(
            osv.query_batch,
            osv.get_details,
            batch_size=self.config.vuln_batch_size,
            concurrency=self.config.vuln_concurrency,
            progress=self.progress,
        )
        try:
            found = await enricher.enrich(self.builder.direct_dependencies(), cancel_event)
        except AuditCancelledError as e:
            self.builder.attach_vulnerabilities(e.result or {})
            raise
        finally:
            for error in enricher.lookup_errors:
                self.add_step_error(scanner.LOOKUP_STEP, error)
            for error in enricher.detail_errors:
                self.add_step_error(scanner.DETAILS_STEP, error)

        self.builder.attach_vulnerabilities(found)

    def _result(self, total_dependencies: int) -> AuditResult:
        groups = filter_vulnerable(self.builder.materialize())
        stats = calculate_stats(groups)
        return AuditResult(
            dependencies=groups,
            errors=self.consolidate_errors(),
            total_dependencies=total_dependencies,
            total_vulnerabilities=stats["total_vulnerabilities"],
            critical_count=stats["critical_count"],
            high_count=stats["high_count"],
            medium_count=stats["medium_count"],
            low_count=stats["low_count"],
        )

    def _read_local(self, files: List[Tuple[str, str]]) -> Dict[str, str]:
        """Reads `(display path, filesystem path)` pairs; unreadable files are step errors."""
        manifests = {}
        for display, path in files:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    manifests[display] = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logging.warning(f"Error reading {path}: {e}")
                self.add_step_error(PARSING_STEP, e)
        return manifests


def find_manifests(directory: str) -> List[str]:
    found = []
    for root, dirs, files in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for filename in sorted(files):
            if is_manifest(filename):
                found.append(os.path.join(root, filename))
    return found
