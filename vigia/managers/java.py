import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from vigia.core.model import UNKNOWN_VERSION, Dependency, Ecosystem
from vigia.managers.base import ManifestParser

RE_PROPERTY = re.compile(r"\$\{([^}]+)\}")


def _local(tag: str) -> str:
    """Drops the `{namespace}` prefix so poms with and without xmlns parse the same."""
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _text(element: Optional[ET.Element], name: str) -> Optional[str]:
    if element is None:
        return None
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


class MavenManager(ManifestParser):
    @property
    def name(self) -> str:
        return "Maven"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.MAVEN

    @property
    def manifest_files(self) -> List[str]:
        return ["pom.xml"]

    def get_dependencies(self, content: str) -> List[Dependency]:
        root = ET.fromstring(content)
        if _local(root.tag) != "project":
            raise ValueError(f"expected <project> root element, got <{_local(root.tag)}>")

        properties = self._properties(root)

        dependencies = []
        block = _child(root, "dependencies")
        for dep in (block if block is not None else []):
            if _local(dep.tag) != "dependency":
                continue

            artifact = _text(dep, "artifactId")
            if not artifact:
                continue
            group = _text(dep, "groupId")
            name = f"{group}:{artifact}" if group else artifact

            version = self._resolve(_text(dep, "version"), properties)
            dependencies.append(self.dependency(name, version))

        return dependencies

    def _properties(self, root: ET.Element) -> Dict[str, str]:
        properties: Dict[str, str] = {}

        block = _child(root, "properties")
        for prop in (block if block is not None else []):
            properties[_local(prop.tag)] = (prop.text or "").strip()

        version = _text(root, "version") or _text(_child(root, "parent"), "version")
        if version:
            properties.setdefault("project.version", version)
        return properties

    def _resolve(self, version: Optional[str], properties: Dict[str, str]) -> str:
        """Expands `${prop}` placeholders; anything left unresolved means the version is unknown."""
        if not version:
            return UNKNOWN_VERSION

        # A property may point at another property
        for _ in range(5):
            if not RE_PROPERTY.search(version):
                return version
            missing = [key for key in RE_PROPERTY.findall(version) if key not in properties]
            if missing:
                return UNKNOWN_VERSION
            version = RE_PROPERTY.sub(lambda m: properties[m.group(1)], version)

        return UNKNOWN_VERSION if RE_PROPERTY.search(version) else version
