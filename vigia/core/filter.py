from dataclasses import replace
from typing import Dict, List, Set, Tuple

from vigia.core.model import Dependency, DependencyGroups, Edge, TransitiveDependency

SELF_RELATION = "SELF"


def filter_transitive(graph: TransitiveDependency) -> TransitiveDependency:
    """
    Keeps vulnerable nodes (and the SELF node) of a subgraph.
    Edges are remapped to the surviving indices; edges touching a removed
    node are dropped, duplicates by (source, target) collapse to the first.
    """
    old_to_new: Dict[int, int] = {}
    kept: List[Dependency] = []
    for old_idx, node in enumerate(graph.nodes):
        if node.vulnerabilities or node.dependency_type == SELF_RELATION:
            old_to_new[old_idx] = len(kept)
            kept.append(node)

    seen: Set[Tuple[int, int]] = set()
    edges: List[Edge] = []
    for edge in graph.edges:
        source = old_to_new.get(edge.source)
        target = old_to_new.get(edge.target)
        if source is None or target is None:
            continue
        if (source, target) in seen:
            continue
        seen.add((source, target))
        edges.append(Edge(source=source, target=target, requirement=edge.requirement))

    return TransitiveDependency(nodes=tuple(kept), edges=tuple(edges))


def has_vulnerable_transitive(dep: Dependency) -> bool:
    graph = dep.transitive_dependencies
    return bool(graph) and any(node.vulnerabilities for node in graph.nodes)


def filter_vulnerable(groups: DependencyGroups) -> DependencyGroups:
    """Prunes every manifest group down to dependencies that lead to at least one vulnerability."""
    pruned: Dict[str, Dependency] = {}
    filtered: DependencyGroups = {}

    for file_path, deps in groups.items():
        relevant = []
        for dep in deps:
            # Shared values are filtered once so groups keep referencing one object
            if dep.key not in pruned:
                graph = dep.transitive_dependencies
                pruned[dep.key] = replace(
                    dep,
                    transitive_dependencies=filter_transitive(graph) if graph is not None else None,
                )
            slim = pruned[dep.key]
            if slim.vulnerabilities or has_vulnerable_transitive(slim):
                relevant.append(slim)

        if relevant:
            filtered[file_path] = relevant

    return filtered


def severity_bucket(score: float) -> str:
    if score >= 9.0:
        return "critical"
    if score >= 7.0:
        return "high"
    if score >= 4.0:
        return "medium"
    return "low"


def calculate_stats(groups: DependencyGroups) -> Dict[str, int]:
    """Counts every distinct vulnerability id once, bucketed by its CVSS score."""
    stats = {
        "total_dependencies": 0,
        "total_vulnerabilities": 0,
        "critical_count": 0,
        "high_count": 0,
        "medium_count": 0,
        "low_count": 0,
    }
    counted: Set[str] = set()

    def count(dep: Dependency) -> None:
        stats["total_dependencies"] += 1
        for vuln in dep.vulnerabilities:
            if vuln.id in counted:
                continue
            counted.add(vuln.id)
            stats["total_vulnerabilities"] += 1
            stats[f"{severity_bucket(vuln.cvss)}_count"] += 1

    for deps in groups.values():
        for dep in deps:
            count(dep)
            if dep.transitive_dependencies:
                for node in dep.transitive_dependencies.nodes:
                    count(node)

    return stats


def count_dependencies(groups: DependencyGroups) -> int:
    total = 0
    for deps in groups.values():
        for dep in deps:
            total += 1
            if dep.transitive_dependencies:
                total += len(dep.transitive_dependencies.nodes)
    return total
