from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

UNKNOWN_VERSION = "unknown"
LATEST_VERSION = "latest"


class Ecosystem(str, Enum):
    NPM = "npm"
    PYPI = "PyPI"
    MAVEN = "Maven"
    GRADLE = "Gradle"
    GO = "Go"
    CARGO = "Cargo"
    RUBYGEMS = "RubyGems"
    COMPOSER = "Composer"
    PUB = "Pub"
    NULL = "null"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Ecosystem":
        """Maps any spelling used by manifests or remote APIs to a member, NULL otherwise."""
        if not value:
            return cls.NULL
        return _ECOSYSTEM_ALIASES.get(value.strip().lower(), cls.NULL)

    @property
    def osv_name(self) -> str:
        return _OSV_NAMES[self]

    @property
    def deps_dev_system(self) -> Optional[str]:
        return _DEPS_DEV_SYSTEMS[self]


_ECOSYSTEM_ALIASES = {
    "npm": Ecosystem.NPM,
    "pypi": Ecosystem.PYPI,
    "maven": Ecosystem.MAVEN,
    "gradle": Ecosystem.GRADLE,
    "go": Ecosystem.GO,
    "cargo": Ecosystem.CARGO,
    "crates.io": Ecosystem.CARGO,
    "rubygems": Ecosystem.RUBYGEMS,
    "composer": Ecosystem.COMPOSER,
    "php": Ecosystem.COMPOSER,
    "packagist": Ecosystem.COMPOSER,
    "pub": Ecosystem.PUB,
}

_OSV_NAMES = {
    Ecosystem.NPM: "npm",
    Ecosystem.PYPI: "PyPI",
    Ecosystem.MAVEN: "Maven",
    Ecosystem.GRADLE: "Maven",
    Ecosystem.GO: "Go",
    Ecosystem.CARGO: "crates.io",
    Ecosystem.RUBYGEMS: "RubyGems",
    Ecosystem.COMPOSER: "Packagist",
    Ecosystem.PUB: "Pub",
    Ecosystem.NULL: "",
}

# None means deps.dev does not index the ecosystem.
_DEPS_DEV_SYSTEMS = {
    Ecosystem.NPM: "npm",
    Ecosystem.PYPI: "pypi",
    Ecosystem.MAVEN: "maven",
    Ecosystem.GRADLE: "maven",
    Ecosystem.GO: "go",
    Ecosystem.CARGO: "cargo",
    Ecosystem.RUBYGEMS: "rubygems",
    Ecosystem.COMPOSER: None,
    Ecosystem.PUB: None,
    Ecosystem.NULL: None,
}


@dataclass(frozen=True)
class SeverityScore:
    cvss_v3: Optional[float] = None
    cvss_v4: Optional[float] = None


@dataclass(frozen=True)
class Vulnerability:
    id: str
    summary: Optional[str] = None
    details: Optional[str] = None
    severity: Tuple[Dict[str, str], ...] = ()
    severity_score: SeverityScore = field(default_factory=SeverityScore)
    references: Tuple[Dict[str, str], ...] = ()
    fix_available: Optional[str] = None
    affected: Tuple[Dict[str, Any], ...] = ()
    aliases: Tuple[str, ...] = ()
    exploit_available: bool = False

    @property
    def cvss(self) -> float:
        return self.severity_score.cvss_v3 or self.severity_score.cvss_v4 or 0.0


@dataclass(frozen=True)
class Edge:
    source: int
    target: int
    requirement: str = ""


@dataclass(frozen=True)
class TransitiveDependency:
    nodes: Tuple["Dependency", ...] = ()
    edges: Tuple[Edge, ...] = ()


@dataclass(frozen=True)
class Dependency:
    name: str
    version: str
    ecosystem: Ecosystem
    vulnerabilities: Tuple[Vulnerability, ...] = ()
    dependency_type: Optional[str] = None
    transitive_dependencies: Optional[TransitiveDependency] = None

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}@{self.ecosystem.value}"

    @property
    def lookup_key(self) -> str:
        return f"{self.ecosystem.value}:{self.name}:{self.version}"

    @property
    def package(self) -> str:
        return f"{self.name}@{self.version}"


# Per-manifest grouping: manifest path -> dependencies declared in it
DependencyGroups = Dict[str, List[Dependency]]


@dataclass(frozen=True)
class FlattenedDependency:
    name: str
    version: str
    ecosystem: Ecosystem
    vulnerabilities: Tuple[Vulnerability, ...]
    file_path: str
    dependency_level: str
    parent_dependency: Optional[str]
    dependency_chain: str
    dependency_depth: int
    usage_frequency: int = 1
    parents: Tuple[str, ...] = ()
    transitive_dependencies: Optional[TransitiveDependency] = None

    @property
    def package(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class PrioritizedVulnerability:
    vulnerability: Vulnerability
    package_name: str
    package_version: str
    file_path: str
    dependency_level: str
    priority_score: float
    risk_level: str

    @property
    def id(self) -> str:
        return self.vulnerability.id


@dataclass
class ConflictDetection:
    package: str
    conflict_type: str
    required_versions: List[str]
    affected_parents: List[str]
    risk_level: str
    suggested_resolution: str


@dataclass
class TransitiveInsight:
    package: str
    vulnerability_count: int
    used_by: List[str]
    impact_multiplier: int
    fix_available: bool
    quick_win_potential: bool
    vulnerability_ids: List[str]


@dataclass
class QuickWin:
    type: str
    package: str
    impact: str
    effort: str
    command: Optional[str] = None
    estimated_time: Optional[str] = None
    target_version: Optional[str] = None
    benefit_multiplier: Optional[int] = None


@dataclass
class CriticalPath:
    path: str
    risk: str
    resolution: str
    estimated_impact: str
    cve_id: str


@dataclass
class IntelligenceReport:
    priorities: List[PrioritizedVulnerability] = field(default_factory=list)
    transitive_insights: List[TransitiveInsight] = field(default_factory=list)
    conflicts: List[ConflictDetection] = field(default_factory=list)
    quick_wins: List[QuickWin] = field(default_factory=list)
    critical_paths: List[CriticalPath] = field(default_factory=list)


@dataclass
class AuditResult:
    dependencies: DependencyGroups = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    total_dependencies: int = 0
    total_vulnerabilities: int = 0
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
