import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

from vigia.core.model import Dependency, Ecosystem
from vigia.core.versions import normalize_version
from vigia.errors import ManifestParseError


class ManifestParser(ABC):
    """Base class inherited by all manifest parsers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly ecosystem name (e.g., NPM, PyPI, Maven)."""
        pass

    @property
    @abstractmethod
    def ecosystem(self) -> Ecosystem:
        pass

    @property
    @abstractmethod
    def manifest_files(self) -> List[str]:
        """Exact manifest filenames this parser understands."""
        pass

    def detect(self, filename: str) -> bool:
        """
        Returns True if this parser supports the given file.
        Default implementation checks the basename against manifest_files.
        """
        return os.path.basename(filename) in self.manifest_files

    def parse(self, content: str, path: str) -> List[Dependency]:
        """Parses one manifest. Any failure surfaces as ManifestParseError."""
        logging.debug(f"Parsing {path} ({self.name})...")
        try:
            dependencies = self.get_dependencies(content)
        except Exception as e:
            raise ManifestParseError(self.ecosystem, path, e) from e

        logging.debug(f"{path}: {len(dependencies)} dependencies declared.")
        return dependencies

    @abstractmethod
    def get_dependencies(self, content: str) -> List[Dependency]:
        pass

    def dependency(self, name: str, version: Optional[str]) -> Dependency:
        return Dependency(name=name, version=normalize_version(version), ecosystem=self.ecosystem)
