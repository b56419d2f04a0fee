import unittest

from vigia.core.graph import DependencyGraphBuilder
from vigia.core.model import Dependency, Ecosystem, Edge, TransitiveDependency, Vulnerability


def npm(name, version, **kwargs):
    return Dependency(name=name, version=version, ecosystem=Ecosystem.NPM, **kwargs)


class TestDependencyGraphBuilder(unittest.TestCase):

    def setUp(self):
        self.builder = DependencyGraphBuilder()

    def test_same_dependency_in_two_manifests_is_stored_once(self):
        self.builder.add_dependency(npm("lodash", "4.17.19"), "web/package.json")
        self.builder.add_dependency(npm("lodash", "4.17.19"), "api/package.json")
        self.builder.add_dependency(npm("lodash", "4.17.19"), "web/package.json")

        self.assertEqual(len(self.builder), 1)
        self.assertEqual(self.builder.files_for("lodash@4.17.19@npm"), ["web/package.json", "api/package.json"])

        groups = self.builder.materialize()
        self.assertEqual(list(groups), ["web/package.json", "api/package.json"])
        self.assertIs(groups["web/package.json"][0], groups["api/package.json"][0])

    def test_key_includes_version_and_ecosystem(self):
        self.builder.extend([npm("a", "1.0.0"), npm("a", "2.0.0")], "package.json")
        self.builder.add_dependency(
            Dependency(name="a", version="1.0.0", ecosystem=Ecosystem.PYPI), "requirements.txt"
        )

        self.assertEqual(len(self.builder), 3)
        self.assertIn("a@1.0.0@PyPI", self.builder)

    def test_attach_transitive(self):
        self.builder.add_dependency(npm("express", "4.17.1"), "package.json")
        graph = TransitiveDependency(
            nodes=(npm("express", "4.17.1", dependency_type="SELF"), npm("qs", "6.7.0", dependency_type="DIRECT")),
            edges=(Edge(0, 1, "6.7.0"),),
        )

        self.builder.attach_transitive("express@4.17.1@npm", graph)

        self.assertEqual(self.builder.materialize()["package.json"][0].transitive_dependencies, graph)

    def test_attach_vulnerabilities_annotates_direct_and_transitive(self):
        self.builder.add_dependency(npm("express", "4.17.1"), "a/package.json")
        self.builder.add_dependency(npm("express", "4.17.1"), "b/package.json")
        self.builder.attach_transitive("express@4.17.1@npm", TransitiveDependency(
            nodes=(npm("express", "4.17.1", dependency_type="SELF"), npm("qs", "6.7.0")),
            edges=(Edge(0, 1),),
        ))
        vuln = Vulnerability(id="GHSA-hrpp-h998-j3pp")

        self.builder.attach_vulnerabilities({"npm:qs:6.7.0": (vuln,)})

        groups = self.builder.materialize()
        express = groups["a/package.json"][0]
        self.assertIs(express, groups["b/package.json"][0])
        self.assertEqual(express.vulnerabilities, ())
        self.assertEqual(express.transitive_dependencies.nodes[1].vulnerabilities, (vuln,))

    def test_clear(self):
        self.builder.add_dependency(npm("a", "1.0.0"), "package.json")
        self.builder.clear()

        self.assertEqual(len(self.builder), 0)
        self.assertEqual(self.builder.materialize(), {})


if __name__ == '__main__':
    unittest.main()
