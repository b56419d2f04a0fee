import unittest

from vigia.managers import detect_manager, is_manifest
from vigia.managers.dart import PubManager
from vigia.managers.java import MavenManager
from vigia.managers.javascript import NodeManager
from vigia.managers.php import ComposerManager
from vigia.managers.python import PythonManager
from vigia.managers.ruby import RubyManager
from vigia.managers.rust import RustManager


class TestManagerRegistry(unittest.TestCase):

    def test_detect_manager_by_filename(self):
        cases = {
            "package.json": NodeManager,
            "api/requirements-dev.txt": PythonManager,
            "services/billing/pom.xml": MavenManager,
            "Gemfile": RubyManager,
            "composer.json": ComposerManager,
            "mobile/pubspec.yaml": PubManager,
            "crates/core/Cargo.toml": RustManager,
        }
        for path, expected in cases.items():
            with self.subTest(path=path):
                self.assertIsInstance(detect_manager(path), expected)

    def test_unsupported_files(self):
        self.assertIsNone(detect_manager("go.mod"))
        self.assertIsNone(detect_manager("README.md"))
        self.assertFalse(is_manifest("yarn.lock"))


if __name__ == '__main__':
    unittest.main()
