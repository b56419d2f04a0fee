from typing import List, Optional

from .base import ManifestParser
from .dart import PubManager
from .java import MavenManager
from .javascript import NodeManager
from .php import ComposerManager
from .python import PythonManager
from .ruby import RubyManager
from .rust import RustManager

MANAGERS: List[ManifestParser] = [
    NodeManager(),
    PythonManager(),
    MavenManager(),
    RubyManager(),
    ComposerManager(),
    PubManager(),
    RustManager(),
]


def detect_manager(filename: str) -> Optional[ManifestParser]:
    """Returns the parser responsible for a manifest path, None for unsupported files."""
    for manager in MANAGERS:
        if manager.detect(filename):
            return manager

    return None


def is_manifest(filename: str) -> bool:
    return detect_manager(filename) is not None
