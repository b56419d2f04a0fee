from typing import List

import yaml

from vigia.core.model import UNKNOWN_VERSION, Dependency, Ecosystem
from vigia.managers.base import ManifestParser


class PubManager(ManifestParser):
    @property
    def name(self) -> str:
        return "Pub (Dart)"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.PUB

    @property
    def manifest_files(self) -> List[str]:
        return ["pubspec.yaml"]

    def get_dependencies(self, content: str) -> List[Dependency]:
        pubspec = yaml.safe_load(content) or {}

        dependencies = []
        for section in ("dependencies", "dev_dependencies"):
            for name, spec in (pubspec.get(section) or {}).items():
                # sdk:, git: and path: entries are mappings without a hosted version
                version = spec if isinstance(spec, str) else UNKNOWN_VERSION
                dependencies.append(self.dependency(str(name), version))

        return dependencies
