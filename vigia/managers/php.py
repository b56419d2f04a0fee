import json
from typing import List

from vigia.core.model import UNKNOWN_VERSION, Dependency, Ecosystem
from vigia.managers.base import ManifestParser


class ComposerManager(ManifestParser):
    @property
    def name(self) -> str:
        return "Composer (PHP)"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.COMPOSER

    @property
    def manifest_files(self) -> List[str]:
        return ["composer.json"]

    def get_dependencies(self, content: str) -> List[Dependency]:
        composer = json.loads(content)

        dependencies = []
        for section in ("require", "require-dev"):
            for name, version in (composer.get(section) or {}).items():
                # Platform requirements, not packages
                if name == "php" or name.startswith("ext-"):
                    continue
                dependencies.append(self.dependency(name, version if isinstance(version, str) else UNKNOWN_VERSION))

        return dependencies
