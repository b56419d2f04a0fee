import unittest

from vigia.core.model import Ecosystem
from vigia.errors import ManifestParseError
from vigia.managers.rust import RustManager


class TestRustManager(unittest.TestCase):

    def setUp(self):
        self.manager = RustManager()

    def test_parse_cargo_toml(self):
        mock_content = """
[package]
name = "server"
version = "0.1.0"

[dependencies]
serde = { version = "1.0", features = ["derive"] }
tokio = "1.28.2"
internal = { path = "../internal" }
shared = { workspace = true }
rand_core = { package = "rand", version = "0.8.5" }

[dev-dependencies]
criterion = "0.5"

[build-dependencies]
cc = "1.0.79"

[target.'cfg(unix)'.dependencies]
nix = "0.26"

[workspace.dependencies]
anyhow = "1.0.71"
"""

        deps = self.manager.parse(mock_content, "Cargo.toml")
        versions = {d.name: d.version for d in deps}

        self.assertEqual(versions, {
            "serde": "1.0.0",
            "tokio": "1.28.2",
            "rand": "0.8.5",
            "criterion": "0.5.0",
            "cc": "1.0.79",
            "nix": "0.26.0",
            "anyhow": "1.0.71",
        })
        self.assertTrue(all(d.ecosystem == Ecosystem.CARGO for d in deps))

    def test_invalid_toml(self):
        with self.assertRaises(ManifestParseError):
            self.manager.parse("[dependencies\nserde =", "Cargo.toml")


if __name__ == '__main__':
    unittest.main()
