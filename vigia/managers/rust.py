import sys
from typing import Any, Dict, Iterator, List, Tuple

from vigia.core.model import Dependency, Ecosystem
from vigia.managers.base import ManifestParser

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


class RustManager(ManifestParser):
    @property
    def name(self) -> str:
        return "Cargo (Rust)"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.CARGO

    @property
    def manifest_files(self) -> List[str]:
        return ["Cargo.toml"]

    def get_dependencies(self, content: str) -> List[Dependency]:
        data = tomllib.loads(content)

        dependencies = []
        for name, spec in self._declared(data):
            if isinstance(spec, str):
                crate, version = name, spec
            elif isinstance(spec, dict):
                crate, version = spec.get("package", name), spec.get("version")
            else:
                continue

            # Path/git dependencies without a version are not published crates
            if not version:
                continue
            dependencies.append(self.dependency(crate, version))

        return dependencies

    def _declared(self, data: Dict[str, Any]) -> Iterator[Tuple[str, Any]]:
        for table in DEPENDENCY_TABLES:
            yield from (data.get(table) or {}).items()

        # [target.'cfg(unix)'.dependencies] and friends
        for target in (data.get("target") or {}).values():
            for table in DEPENDENCY_TABLES:
                yield from (target.get(table) or {}).items()

        yield from ((data.get("workspace") or {}).get("dependencies") or {}).items()
