import os
import re
from typing import List

from vigia.core.model import UNKNOWN_VERSION, Dependency, Ecosystem
from vigia.managers.base import ManifestParser

# Matches: package==1.0, package[extra]>=1.0, package
RE_REQ = re.compile(
    r"^([a-zA-Z0-9][a-zA-Z0-9._\-]*)\s*(?:\[[^\]]*\])?\s*"
    r"(?:(===|==|~=|!=|>=|<=|>|<)\s*([^;,\s]+))?"
)


class PythonManager(ManifestParser):
    @property
    def name(self) -> str:
        return "PyPI (Pip)"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.PYPI

    @property
    def manifest_files(self) -> List[str]:
        return ["requirements.txt"]

    def detect(self, filename: str) -> bool:
        if super().detect(filename):
            return True

        basename = os.path.basename(filename)
        return "requirements" in basename and basename.endswith(".txt")

    def get_dependencies(self, content: str) -> List[Dependency]:
        dependencies = []

        for line in content.splitlines():
            line = line.split(" #", 1)[0].strip()
            # Options (-r, -c, -e, --index-url...) and comments are not packages
            if not line or line.startswith(("#", "-")):
                continue

            match = RE_REQ.match(line)
            if not match:
                continue

            name, operator, version = match.group(1), match.group(2), match.group(3)
            if not version or operator == "!=":
                version = UNKNOWN_VERSION
            dependencies.append(self.dependency(name, version))

        return dependencies
