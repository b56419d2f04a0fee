import json
from typing import List

from vigia.core.model import LATEST_VERSION, UNKNOWN_VERSION, Dependency, Ecosystem
from vigia.managers.base import ManifestParser

# Specs that only mean "whatever is newest"; resolved later against the registry
LATEST_SPECS = ("", "*", "latest")


class NodeManager(ManifestParser):
    @property
    def name(self) -> str:
        return "NPM"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.NPM

    @property
    def manifest_files(self) -> List[str]:
        return ["package.json"]

    def get_dependencies(self, content: str) -> List[Dependency]:
        package_json = json.loads(content)

        dependencies = []
        for section in ("dependencies", "devDependencies"):
            for name, spec in (package_json.get(section) or {}).items():
                dependencies.append(self._declared(name, spec))
        return dependencies

    def _declared(self, name: str, spec) -> Dependency:
        if spec is None or (isinstance(spec, str) and spec.strip() in LATEST_SPECS):
            return Dependency(name=name, version=LATEST_VERSION, ecosystem=self.ecosystem)

        # file:, git+https:, workspace:, npm: aliases and github shorthands carry no registry version
        if not isinstance(spec, str) or ":" in spec or "/" in spec:
            return Dependency(name=name, version=UNKNOWN_VERSION, ecosystem=self.ecosystem)

        return self.dependency(name, spec)
