import unittest

from vigia.core.filter import calculate_stats, count_dependencies, filter_transitive, filter_vulnerable, severity_bucket
from vigia.core.model import Dependency, Ecosystem, Edge, SeverityScore, TransitiveDependency, Vulnerability


def vuln(vid, cvss):
    return Vulnerability(id=vid, severity_score=SeverityScore(cvss_v3=cvss))


def npm(name, version, vulns=(), relation=None, graph=None):
    return Dependency(
        name=name,
        version=version,
        ecosystem=Ecosystem.NPM,
        vulnerabilities=tuple(vulns),
        dependency_type=relation,
        transitive_dependencies=graph,
    )


class TestFilterTransitive(unittest.TestCase):

    def test_keeps_self_and_vulnerable_nodes_with_remapped_edges(self):
        graph = TransitiveDependency(
            nodes=(
                npm("express", "4.17.1", relation="SELF"),
                npm("body-parser", "1.19.0", relation="DIRECT"),
                npm("qs", "6.7.0", [vuln("GHSA-qs", 7.5)], relation="INDIRECT"),
                npm("debug", "2.6.9", relation="DIRECT"),
            ),
            edges=(
                Edge(0, 1, "1.19.0"),
                Edge(1, 2, "6.7.0"),
                Edge(0, 2, "6.7.0"),
                Edge(0, 2, "~6.7.0"),
                Edge(0, 3, "2.6.9"),
            ),
        )

        filtered = filter_transitive(graph)

        self.assertEqual([n.name for n in filtered.nodes], ["express", "qs"])
        self.assertEqual(filtered.edges, (Edge(0, 1, "6.7.0"),))
        for edge in filtered.edges:
            self.assertTrue(0 <= edge.source < len(filtered.nodes))
            self.assertTrue(0 <= edge.target < len(filtered.nodes))


class TestFilterVulnerable(unittest.TestCase):

    def test_prunes_groups_to_vulnerable_paths(self):
        lodash = npm("lodash", "4.17.19", [vuln("GHSA-1", 7.5)])
        express = npm("express", "4.17.1", graph=TransitiveDependency(nodes=(
            npm("express", "4.17.1", relation="SELF"),
            npm("qs", "6.7.0", [vuln("GHSA-qs", 7.5)]),
            npm("debug", "2.6.9"),
        )))
        react = npm("react", "18.2.0", graph=TransitiveDependency(nodes=(npm("react", "18.2.0", relation="SELF"),)))

        groups = filter_vulnerable({
            "web/package.json": [lodash, express, react],
            "docs/package.json": [react],
        })

        self.assertEqual(list(groups), ["web/package.json"])
        self.assertEqual([d.name for d in groups["web/package.json"]], ["lodash", "express"])
        kept_express = groups["web/package.json"][1]
        self.assertEqual([n.name for n in kept_express.transitive_dependencies.nodes], ["express", "qs"])

    def test_shared_dependency_stays_shared(self):
        lodash = npm("lodash", "4.17.19", [vuln("GHSA-1", 7.5)])

        groups = filter_vulnerable({"a/package.json": [lodash], "b/package.json": [lodash]})

        self.assertIs(groups["a/package.json"][0], groups["b/package.json"][0])


class TestStats(unittest.TestCase):

    def test_severity_buckets(self):
        self.assertEqual(severity_bucket(9.8), "critical")
        self.assertEqual(severity_bucket(9.0), "critical")
        self.assertEqual(severity_bucket(7.0), "high")
        self.assertEqual(severity_bucket(4.0), "medium")
        self.assertEqual(severity_bucket(3.9), "low")
        self.assertEqual(severity_bucket(0.0), "low")

    def test_distinct_ids_counted_once(self):
        shared = vuln("GHSA-shared", 9.8)
        groups = {
            "package.json": [
                npm("a", "1.0.0", [shared, vuln("GHSA-a", 7.2)], graph=TransitiveDependency(nodes=(
                    npm("a", "1.0.0", relation="SELF"),
                    npm("b", "2.0.0", [shared, vuln("GHSA-b", 5.0)]),
                ))),
            ],
            "other/package.json": [npm("c", "3.0.0", [vuln("GHSA-c", 1.0)])],
        }

        stats = calculate_stats(groups)

        self.assertEqual(stats["total_vulnerabilities"], 4)
        self.assertEqual(stats["critical_count"], 1)
        self.assertEqual(stats["high_count"], 1)
        self.assertEqual(stats["medium_count"], 1)
        self.assertEqual(stats["low_count"], 1)
        self.assertEqual(count_dependencies(groups), 4)


if __name__ == '__main__':
    unittest.main()
