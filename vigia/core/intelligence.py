"""
Deterministic analyzers over the filtered audit graph.

Every function here is pure: it reads the flattened view and returns new
values, so the analyzers can run in any order (or concurrently).

    flattened   = flatten_dependencies(groups)
    priorities  = prioritize_vulnerabilities(flattened)
    insights    = analyze_transitive(flattened)
    conflicts   = detect_conflicts(flattened)
    quick_wins  = identify_quick_wins(priorities, insights, conflicts, flattened)
    paths       = generate_critical_paths(priorities, flattened)
"""
import re
from collections import Counter
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from vigia.core.filter import SELF_RELATION
from vigia.core.model import (
    ConflictDetection,
    CriticalPath,
    DependencyGroups,
    Ecosystem,
    FlattenedDependency,
    IntelligenceReport,
    PrioritizedVulnerability,
    QuickWin,
    TransitiveInsight,
    Vulnerability,
)

DIRECT = "direct"
TRANSITIVE = "transitive"

EXPLOIT_BONUS = 5
FIX_BONUS = 3
MAX_USAGE_BONUS = 3
QUICK_WIN_IMPACT_THRESHOLD = 6
DIRECT_QUICK_WIN_MIN_SCORE = 10
MAX_DIRECT_QUICK_WINS = 5
MAX_TRANSITIVE_QUICK_WINS = 3
MAX_CRITICAL_PATHS = 10

_LEADING_NUMBER = re.compile(r"(\d+)")


def flatten_dependencies(groups: DependencyGroups) -> List[FlattenedDependency]:
    """
    One entry per `name@version`: direct dependencies first, then vulnerable
    transitive nodes. The first occurrence wins; `usage_frequency` and
    `parents` are aggregated over every occurrence.
    """
    usage: Counter = Counter()
    parents: Dict[str, List[str]] = {}
    direct: List[FlattenedDependency] = []

    for file_path, deps in groups.items():
        for dep in deps:
            usage[dep.package] += 1
            direct.append(FlattenedDependency(
                name=dep.name,
                version=dep.version,
                ecosystem=dep.ecosystem,
                vulnerabilities=dep.vulnerabilities,
                file_path=file_path,
                dependency_level=DIRECT,
                parent_dependency=None,
                dependency_chain=f"{file_path} -> {dep.package}",
                dependency_depth=1,
                transitive_dependencies=dep.transitive_dependencies,
            ))

    transitive: List[FlattenedDependency] = []
    for parent in direct:
        graph = parent.transitive_dependencies
        if not graph:
            continue
        for node in graph.nodes:
            if node.dependency_type == SELF_RELATION or not node.vulnerabilities:
                continue
            usage[node.package] += 1
            node_parents = parents.setdefault(node.package, [])
            if parent.package not in node_parents:
                node_parents.append(parent.package)
            transitive.append(FlattenedDependency(
                name=node.name,
                version=node.version,
                ecosystem=node.ecosystem,
                vulnerabilities=node.vulnerabilities,
                file_path=parent.file_path,
                dependency_level=TRANSITIVE,
                parent_dependency=parent.package,
                dependency_chain=f"{parent.file_path} -> {parent.package} -> {node.package}",
                dependency_depth=2,
            ))

    seen: Dict[str, FlattenedDependency] = {}
    for dep in direct + transitive:
        if dep.package not in seen:
            seen[dep.package] = replace(
                dep,
                usage_frequency=usage[dep.package],
                parents=tuple(parents.get(dep.package, ())),
            )
    return list(seen.values())


# --- Priority scorer ---

def calculate_priority_score(vuln: Vulnerability, dep: Optional[FlattenedDependency] = None) -> float:
    """CVSS + exploit bonus + fix bonus + depth multiplier + usage multiplier."""
    score = vuln.cvss
    if vuln.exploit_available:
        score += EXPLOIT_BONUS
    if vuln.fix_available:
        score += FIX_BONUS
    if dep is not None:
        score += 2 if dep.dependency_level == DIRECT else 1
        score += min(dep.usage_frequency // 2, MAX_USAGE_BONUS)
    return score


def risk_level(score: float) -> str:
    if score >= 15:
        return "critical"
    if score >= 10:
        return "high"
    if score >= 5:
        return "medium"
    return "low"


def prioritize_vulnerabilities(flattened: List[FlattenedDependency]) -> List[PrioritizedVulnerability]:
    prioritized = []
    for dep in flattened:
        for vuln in dep.vulnerabilities:
            score = calculate_priority_score(vuln, dep)
            prioritized.append(PrioritizedVulnerability(
                vulnerability=vuln,
                package_name=dep.name,
                package_version=dep.version,
                file_path=dep.file_path,
                dependency_level=dep.dependency_level,
                priority_score=score,
                risk_level=risk_level(score),
            ))

    # sorted() is stable, ties keep discovery order
    return sorted(prioritized, key=lambda v: v.priority_score, reverse=True)


# --- Transitive impact ---

def analyze_transitive(flattened: List[FlattenedDependency]) -> List[TransitiveInsight]:
    grouped: Dict[str, Tuple[FlattenedDependency, List[str]]] = {}

    for dep in flattened:
        if dep.dependency_level != TRANSITIVE or not dep.vulnerabilities:
            continue
        entry = grouped.setdefault(dep.package, (dep, []))
        for parent in dep.parents or ((dep.parent_dependency,) if dep.parent_dependency else ()):
            if parent not in entry[1]:
                entry[1].append(parent)

    insights = []
    for package, (dep, used_by) in grouped.items():
        if not used_by:
            continue
        vulnerability_count = len(dep.vulnerabilities)
        fix_available = any(v.fix_available for v in dep.vulnerabilities)
        impact = len(used_by) * vulnerability_count
        insights.append(TransitiveInsight(
            package=package,
            vulnerability_count=vulnerability_count,
            used_by=list(used_by),
            impact_multiplier=impact,
            fix_available=fix_available,
            quick_win_potential=impact >= QUICK_WIN_IMPACT_THRESHOLD and fix_available,
            vulnerability_ids=list(dict.fromkeys(v.id for v in dep.vulnerabilities)),
        ))

    return sorted(insights, key=lambda i: i.impact_multiplier, reverse=True)


# --- Conflict detector ---

def assess_conflict_risk(versions: List[str]) -> str:
    """Different leading numbers (majors) between required versions mean a risky alignment."""
    majors = set()
    for version in versions:
        match = _LEADING_NUMBER.search(version)
        majors.add(int(match.group(1)) if match else 0)
    return "high" if len(majors) > 1 else "low"


def detect_conflicts(flattened: List[FlattenedDependency]) -> List[ConflictDetection]:
    constraints: Dict[str, List[Tuple[str, str]]] = {}

    for dep in flattened:
        graph = dep.transitive_dependencies
        if not graph:
            continue
        for edge in graph.edges:
            if not 0 <= edge.target < len(graph.nodes):
                continue
            target = graph.nodes[edge.target]
            constraints.setdefault(target.name, []).append(
                (dep.package, edge.requirement or target.version)
            )

    conflicts = []
    for package, pairs in constraints.items():
        versions = list(dict.fromkeys(version for _, version in pairs))
        if len(versions) <= 1:
            continue
        conflicts.append(ConflictDetection(
            package=package,
            conflict_type="version_mismatch",
            required_versions=versions,
            affected_parents=list(dict.fromkeys(parent for parent, _ in pairs)),
            risk_level=assess_conflict_risk(versions),
            suggested_resolution=f"Review version constraints for {package} and align parent dependencies",
        ))
    return conflicts


# --- Quick wins ---

def update_command(ecosystem: Ecosystem, package: str, version: str) -> str:
    if ecosystem == Ecosystem.NPM:
        return f"npm update {package}@{version}"
    if ecosystem == Ecosystem.PYPI:
        return f"pip install --upgrade {package}=={version}"
    if ecosystem == Ecosystem.MAVEN:
        return f"# Update {package} to {version} in pom.xml"
    if ecosystem == Ecosystem.GRADLE:
        return f"# Update {package} to {version} in build.gradle"
    if ecosystem == Ecosystem.GO:
        return f"go get {package}@v{version}"
    if ecosystem == Ecosystem.CARGO:
        return f"cargo update -p {package} --precise {version}"
    if ecosystem == Ecosystem.RUBYGEMS:
        return f"bundle update {package}"
    if ecosystem == Ecosystem.COMPOSER:
        return f"composer require {package}:{version}"
    return f"# Update {package} to {version}"


def identify_quick_wins(
    priorities: List[PrioritizedVulnerability],
    insights: List[TransitiveInsight],
    conflicts: List[ConflictDetection],
    flattened: List[FlattenedDependency],
) -> List[QuickWin]:
    conflict_parents = {parent for conflict in conflicts for parent in conflict.affected_parents}
    by_package = {dep.package: dep for dep in flattened}

    direct = [
        vuln for vuln in priorities
        if vuln.dependency_level == DIRECT
        and vuln.vulnerability.fix_available
        and vuln.priority_score > DIRECT_QUICK_WIN_MIN_SCORE
        and f"{vuln.package_name}@{vuln.package_version}" not in conflict_parents
    ][:MAX_DIRECT_QUICK_WINS]

    quick_wins = []
    for vuln in direct:
        package = f"{vuln.package_name}@{vuln.package_version}"
        dep = by_package.get(package)
        ecosystem = dep.ecosystem if dep else Ecosystem.NPM
        target = vuln.vulnerability.fix_available
        quick_wins.append(QuickWin(
            type="direct_upgrade",
            package=package,
            target_version=target,
            impact=f"Fixes {vuln.id} (Risk Score: {vuln.priority_score:.1f})",
            effort="low",
            command=update_command(ecosystem, vuln.package_name, target),
            estimated_time="5 minutes",
        ))

    for insight in [i for i in insights if i.quick_win_potential][:MAX_TRANSITIVE_QUICK_WINS]:
        quick_wins.append(QuickWin(
            type="transitive_multiplier",
            package=insight.package,
            impact=f"Fixes {insight.vulnerability_count} vulnerabilities across {len(insight.used_by)} packages",
            effort="low",
            benefit_multiplier=insight.impact_multiplier,
            estimated_time="10 minutes",
        ))

    return quick_wins


# --- Critical paths ---

def generate_critical_paths(
    priorities: List[PrioritizedVulnerability],
    flattened: List[FlattenedDependency],
) -> List[CriticalPath]:
    by_package = {dep.package: dep for dep in flattened}
    best: Dict[str, Tuple[CriticalPath, float]] = {}

    for vuln in priorities:
        if vuln.risk_level not in ("critical", "high"):
            continue
        dep = by_package.get(f"{vuln.package_name}@{vuln.package_version}")
        if dep is None:
            continue

        existing = best.get(dep.package)
        if existing and vuln.priority_score <= existing[1]:
            continue

        cvss = vuln.vulnerability.cvss
        if cvss == 0:
            continue

        exploit = " (exploit available)" if vuln.vulnerability.exploit_available else ""
        via = f" via {dep.parent_dependency}" if dep.dependency_level == TRANSITIVE else ""
        parent_info = f" (required by {dep.parent_dependency})" if dep.parent_dependency else ""
        locations = f" across {dep.usage_frequency} locations" if dep.usage_frequency > 1 else ""
        vuln_count = len(dep.vulnerabilities) or 1

        fix = vuln.vulnerability.fix_available
        if not fix:
            resolution = "No fix available - consider alternatives"
        elif dep.dependency_level == DIRECT:
            resolution = f"Upgrade {dep.name} to {fix}"
        else:
            resolution = f"Update parent {dep.parent_dependency} to resolve {dep.name}"

        best[dep.package] = (
            CriticalPath(
                path=dep.dependency_chain,
                risk=(
                    f"{vuln.risk_level.upper()}: CVSS {cvss:.1f}{exploit}{via}"
                    f" - {vuln.vulnerability.summary or vuln.id}"
                ),
                resolution=resolution,
                estimated_impact=f"Resolves {vuln_count} vuln(s) in {dep.file_path}{parent_info}{locations}",
                cve_id=vuln.id,
            ),
            vuln.priority_score,
        )

    ranked = sorted(best.values(), key=lambda item: item[1], reverse=True)
    return [path for path, _ in ranked[:MAX_CRITICAL_PATHS]]


def run_intelligence(groups: DependencyGroups) -> IntelligenceReport:
    flattened = flatten_dependencies(groups)
    priorities = prioritize_vulnerabilities(flattened)
    insights = analyze_transitive(flattened)
    conflicts = detect_conflicts(flattened)

    return IntelligenceReport(
        priorities=priorities,
        transitive_insights=insights,
        conflicts=conflicts,
        quick_wins=identify_quick_wins(priorities, insights, conflicts, flattened),
        critical_paths=generate_critical_paths(priorities, flattened),
    )
