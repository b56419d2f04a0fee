import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Tuple

from vigia.core.model import Dependency, DependencyGroups, TransitiveDependency, Vulnerability


class DependencyGraphBuilder:
    """
    Global dependency table keyed by `name@version@ecosystem`.

    A dependency declared in several manifests is stored once and every
    manifest group built by `materialize()` references that same value.
    Values are immutable: the attach_* methods swap in annotated copies.
    """

    def __init__(self) -> None:
        self._table: Dict[str, Dependency] = {}
        self._files: Dict[str, List[str]] = {}

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, key: str) -> bool:
        return key in self._table

    def clear(self) -> None:
        self._table.clear()
        self._files.clear()

    def add_dependency(self, dependency: Dependency, file_path: str) -> None:
        key = dependency.key
        if key not in self._table:
            self._table[key] = dependency

        files = self._files.setdefault(key, [])
        if file_path not in files:
            files.append(file_path)

    def files_for(self, key: str) -> List[str]:
        return list(self._files.get(key, []))

    def direct_dependencies(self) -> List[Dependency]:
        return list(self._table.values())

    def attach_transitive(self, key: str, graph: TransitiveDependency) -> None:
        self._table[key] = replace(self._table[key], transitive_dependencies=graph)

    def attach_vulnerabilities(self, found: Dict[str, Tuple[Vulnerability, ...]]) -> None:
        """Rebuilds every stored dependency (and its transitive nodes) with the vulnerabilities found for it."""
        for key, dep in list(self._table.items()):
            graph = dep.transitive_dependencies
            if graph is not None:
                graph = replace(graph, nodes=tuple(_annotate(node, found) for node in graph.nodes))
            self._table[key] = replace(
                _annotate(dep, found),
                transitive_dependencies=graph,
            )

        logging.debug(f"Vulnerabilities merged into {len(self._table)} dependencies.")

    def materialize(self) -> DependencyGroups:
        groups: DependencyGroups = {}
        for key, dep in self._table.items():
            for file_path in self._files.get(key, []):
                groups.setdefault(file_path, []).append(dep)
        return groups

    def extend(self, dependencies: Iterable[Dependency], file_path: str) -> None:
        for dep in dependencies:
            self.add_dependency(dep, file_path)


def _annotate(dep: Dependency, found: Dict[str, Tuple[Vulnerability, ...]]) -> Dependency:
    return replace(dep, vulnerabilities=found.get(dep.lookup_key, ()))
