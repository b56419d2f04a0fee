import unittest

from vigia.core.model import Ecosystem
from vigia.errors import ManifestParseError
from vigia.managers.python import PythonManager


class TestPythonManager(unittest.TestCase):

    def setUp(self):
        self.manager = PythonManager()

    def test_parse_requirements_simple(self):
        mock_content = """
        requests==2.31.0
        flask>=2.0
        # comment
        textual
        """

        deps = self.manager.parse(mock_content, "requirements.txt")
        versions = {d.name: d.version for d in deps}

        self.assertEqual(versions["requests"], "2.31.0")
        self.assertEqual(versions["flask"], "2.0.0")
        self.assertEqual(versions["textual"], "unknown")
        self.assertEqual(len(deps), 3)
        self.assertTrue(all(d.ecosystem == Ecosystem.PYPI for d in deps))

    def test_options_and_includes_are_skipped(self):
        mock_content = "\n".join([
            "-r base.txt",
            "-c constraints.txt",
            "-e git+https://github.com/org/repo.git#egg=repo",
            "--index-url https://pypi.org/simple",
            "django==4.2.1  # pinned for LTS",
        ])

        deps = self.manager.parse(mock_content, "requirements.txt")

        self.assertEqual([(d.name, d.version) for d in deps], [("django", "4.2.1")])

    def test_extras_markers_and_exclusions(self):
        mock_content = "\n".join([
            "uvicorn[standard]==0.23.2",
            "numpy>=1.24,<2.0",
            "pywin32==306; sys_platform == 'win32'",
            "urllib3!=2.0.0",
        ])

        versions = {d.name: d.version for d in self.manager.parse(mock_content, "requirements.txt")}

        self.assertEqual(versions["uvicorn"], "0.23.2")
        self.assertEqual(versions["numpy"], "1.24.0")
        self.assertEqual(versions["pywin32"], "306.0.0")
        self.assertEqual(versions["urllib3"], "unknown")

    def test_detect_requirements_files(self):
        self.assertTrue(self.manager.detect("requirements.txt"))
        self.assertTrue(self.manager.detect("backend/requirements_dev.txt"))
        self.assertTrue(self.manager.detect("dev-requirements.txt"))

    def test_detect_ignores_other_files(self):
        self.assertFalse(self.manager.detect("main.py"))
        self.assertFalse(self.manager.detect("README.md"))
        self.assertFalse(self.manager.detect("requirements.in"))

    def test_empty_file_has_no_dependencies(self):
        self.assertEqual(self.manager.parse("", "requirements.txt"), [])

    def test_parse_error_is_wrapped(self):
        with self.assertRaises(ManifestParseError):
            self.manager.parse(None, "requirements.txt")


if __name__ == '__main__':
    unittest.main()
