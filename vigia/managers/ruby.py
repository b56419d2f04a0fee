import re
from typing import List

from vigia.core.model import UNKNOWN_VERSION, Dependency, Ecosystem
from vigia.managers.base import ManifestParser

# Get name and optional first version requirement: gem 'rails', '~> 7.0'
RE_GEM = re.compile(r"""gem\s+['"]([^'"]+)['"](?:\s*,\s*['"]([^'"]+)['"])?""")


class RubyManager(ManifestParser):
    @property
    def name(self) -> str:
        return "RubyGems"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.RUBYGEMS

    @property
    def manifest_files(self) -> List[str]:
        return ["Gemfile"]

    def get_dependencies(self, content: str) -> List[Dependency]:
        dependencies = []

        for line in content.splitlines():
            line = line.strip()
            if not line.startswith("gem "):
                continue

            match = RE_GEM.match(line)
            if match:
                dependencies.append(self.dependency(match.group(1), match.group(2) or UNKNOWN_VERSION))

        return dependencies
