import unittest

from vigia.core.model import Ecosystem
from vigia.errors import ManifestParseError
from vigia.managers.java import MavenManager

POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.example</groupId>
  <artifactId>demo</artifactId>
  <version>1.4.0</version>
  <properties>
    <jackson.version>2.15.2</jackson.version>
    <spring.version>${spring.base}</spring.version>
    <spring.base>6.0.11</spring.base>
  </properties>
  <dependencies>
    <dependency>
      <groupId>com.fasterxml.jackson.core</groupId>
      <artifactId>jackson-databind</artifactId>
      <version>${jackson.version}</version>
    </dependency>
    <dependency>
      <groupId>org.springframework</groupId>
      <artifactId>spring-core</artifactId>
      <version>${spring.version}</version>
    </dependency>
    <dependency>
      <groupId>org.apache.logging.log4j</groupId>
      <artifactId>log4j-core</artifactId>
      <version>2.14.1</version>
    </dependency>
    <dependency>
      <groupId>com.example</groupId>
      <artifactId>demo-common</artifactId>
      <version>${project.version}</version>
    </dependency>
    <dependency>
      <groupId>junit</groupId>
      <artifactId>junit</artifactId>
      <version>${missing.version}</version>
    </dependency>
    <dependency>
      <groupId>org.slf4j</groupId>
      <artifactId>slf4j-api</artifactId>
    </dependency>
  </dependencies>
</project>
"""


class TestMavenManager(unittest.TestCase):

    def setUp(self):
        self.manager = MavenManager()

    def test_parse_pom(self):
        deps = self.manager.parse(POM, "pom.xml")
        versions = {d.name: d.version for d in deps}

        self.assertEqual(versions["com.fasterxml.jackson.core:jackson-databind"], "2.15.2")
        self.assertEqual(versions["org.springframework:spring-core"], "6.0.11")
        self.assertEqual(versions["org.apache.logging.log4j:log4j-core"], "2.14.1")
        self.assertEqual(versions["com.example:demo-common"], "1.4.0")
        self.assertEqual(versions["junit:junit"], "unknown")
        self.assertEqual(versions["org.slf4j:slf4j-api"], "unknown")
        self.assertTrue(all(d.ecosystem == Ecosystem.MAVEN for d in deps))

    def test_pom_without_namespace(self):
        content = """<project>
  <dependencies>
    <dependency><groupId>g</groupId><artifactId>a</artifactId><version>1.0</version></dependency>
  </dependencies>
</project>"""

        deps = self.manager.parse(content, "pom.xml")

        self.assertEqual([(d.name, d.version) for d in deps], [("g:a", "1.0.0")])

    def test_managed_dependencies_are_not_declared(self):
        content = """<project>
  <dependencyManagement>
    <dependencies>
      <dependency><groupId>g</groupId><artifactId>managed</artifactId><version>1.0</version></dependency>
    </dependencies>
  </dependencyManagement>
</project>"""

        self.assertEqual(self.manager.parse(content, "pom.xml"), [])

    def test_malformed_xml(self):
        with self.assertRaises(ManifestParseError) as ctx:
            self.manager.parse("<project><dependencies>", "service/pom.xml")

        self.assertTrue(str(ctx.exception).startswith("Failed to parse pom.xml file"))

    def test_wrong_root_element(self):
        with self.assertRaises(ManifestParseError):
            self.manager.parse("<settings/>", "pom.xml")


if __name__ == '__main__':
    unittest.main()
