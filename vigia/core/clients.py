"""
Thin httpx clients for the remote services the engine consumes:
deps.dev (dependency graphs), OSV.dev (vulnerabilities) and the npm registry.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import quote

import httpx

from vigia.config import Config
from vigia.core.model import Dependency, Ecosystem, Edge, TransitiveDependency
from vigia.core.versions import normalize_version


def build_http_client(config: Config) -> httpx.AsyncClient:
    limits = httpx.Limits(
        max_keepalive_connections=config.max_keepalive_connections,
        max_connections=config.max_connections,
    )
    return httpx.AsyncClient(timeout=config.http_timeout, limits=limits)


class SourceTreeProvider(Protocol):
    """Where manifests come from when auditing a hosted repository."""

    async def list_files(self, repo: str, ref: Optional[str]) -> List[Dict[str, str]]:
        ...

    async def read_file(self, repo: str, path: str, ref: Optional[str]) -> str:
        ...


class DepsDevClient:
    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def resolve(self, ecosystem: Ecosystem, name: str, version: str) -> TransitiveDependency:
        """Fetches the resolved dependency graph of one package version."""
        system = ecosystem.deps_dev_system
        if not system:
            return TransitiveDependency()

        url = (
            f"{self.base_url}/{system}/packages/{quote(name, safe='')}"
            f"/versions/{quote(version, safe='')}:dependencies"
        )
        response = await self.client.get(url)
        if response.status_code == 404:
            logging.debug(f"deps.dev has no graph for {name}@{version}")
            return TransitiveDependency()
        response.raise_for_status()

        return parse_deps_dev_graph(response.json())


def parse_deps_dev_graph(data: Dict[str, Any]) -> TransitiveDependency:
    nodes = []
    for node in data.get("nodes") or []:
        version_key = node.get("versionKey", {})
        nodes.append(Dependency(
            name=version_key.get("name", ""),
            version=normalize_version(version_key.get("version")),
            ecosystem=Ecosystem.from_string(version_key.get("system")),
            dependency_type=node.get("relation"),
        ))

    edges = []
    for edge in data.get("edges") or []:
        source, target = edge.get("fromNode"), edge.get("toNode")
        if not isinstance(source, int) or not isinstance(target, int):
            continue
        if not (0 <= source < len(nodes) and 0 <= target < len(nodes)):
            continue
        edges.append(Edge(source=source, target=target, requirement=edge.get("requirement") or ""))

    return TransitiveDependency(nodes=tuple(nodes), edges=tuple(edges))


class OsvClient:
    def __init__(self, client: httpx.AsyncClient, batch_url: str, vuln_url: str) -> None:
        self.client = client
        self.batch_url = batch_url
        self.vuln_url = vuln_url

    async def query_batch(self, dependencies: Sequence[Dependency]) -> List[List[str]]:
        """Returns, position by position, the vulnerability ids affecting each dependency."""
        queries = [
            {
                "package": {"name": dep.name, "ecosystem": dep.ecosystem.osv_name},
                "version": dep.version,
            }
            for dep in dependencies
        ]
        response = await self.client.post(self.batch_url, json={"queries": queries})
        response.raise_for_status()

        ids = []
        for result in response.json().get("results", []):
            ids.append([v["id"] for v in (result or {}).get("vulns", []) or [] if v.get("id")])
        return ids

    async def get_details(self, vuln_id: str) -> Dict[str, Any]:
        response = await self.client.get(f"{self.vuln_url}{quote(vuln_id, safe='')}")
        response.raise_for_status()
        return response.json()


class NpmRegistryClient:
    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def latest_version(self, name: str) -> str:
        response = await self.client.get(f"{self.base_url}/{quote(name, safe='@')}/latest", timeout=5.0)
        response.raise_for_status()
        return response.json().get("version") or "unknown"
