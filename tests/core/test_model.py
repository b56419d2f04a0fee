import unittest

from vigia.core.model import Dependency, Ecosystem, SeverityScore, Vulnerability


class TestEcosystem(unittest.TestCase):

    def test_from_string_aliases(self):
        self.assertEqual(Ecosystem.from_string("NPM"), Ecosystem.NPM)
        self.assertEqual(Ecosystem.from_string(" PyPI "), Ecosystem.PYPI)
        self.assertEqual(Ecosystem.from_string("crates.io"), Ecosystem.CARGO)
        self.assertEqual(Ecosystem.from_string("packagist"), Ecosystem.COMPOSER)
        self.assertEqual(Ecosystem.from_string("php"), Ecosystem.COMPOSER)

    def test_unknown_maps_to_null(self):
        self.assertEqual(Ecosystem.from_string("nuget"), Ecosystem.NULL)
        self.assertEqual(Ecosystem.from_string(None), Ecosystem.NULL)
        self.assertEqual(Ecosystem.from_string(""), Ecosystem.NULL)

    def test_remote_names(self):
        self.assertEqual(Ecosystem.CARGO.osv_name, "crates.io")
        self.assertEqual(Ecosystem.COMPOSER.osv_name, "Packagist")
        self.assertEqual(Ecosystem.GRADLE.osv_name, "Maven")
        self.assertEqual(Ecosystem.PYPI.deps_dev_system, "pypi")
        self.assertIsNone(Ecosystem.PUB.deps_dev_system)
        self.assertIsNone(Ecosystem.COMPOSER.deps_dev_system)


class TestKeys(unittest.TestCase):

    def test_dependency_keys(self):
        dep = Dependency(name="serde", version="1.0.188", ecosystem=Ecosystem.CARGO)

        self.assertEqual(dep.key, "serde@1.0.188@Cargo")
        self.assertEqual(dep.lookup_key, "Cargo:serde:1.0.188")
        self.assertEqual(dep.package, "serde@1.0.188")

    def test_cvss_prefers_v3(self):
        self.assertEqual(Vulnerability(id="a", severity_score=SeverityScore(7.5, 9.3)).cvss, 7.5)
        self.assertEqual(Vulnerability(id="b", severity_score=SeverityScore(cvss_v4=9.3)).cvss, 9.3)
        self.assertEqual(Vulnerability(id="c").cvss, 0.0)


if __name__ == '__main__':
    unittest.main()
