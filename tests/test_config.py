import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from vigia.config import load_config


class TestConfig(unittest.TestCase):

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        config = load_config()

        self.assertEqual(config.osv_batch_url, "https://api.osv.dev/v1/querybatch")
        self.assertEqual(config.vuln_batch_size, 25)
        self.assertEqual(config.transitive_concurrency, 6)
        self.assertEqual(config.log_file, "debug.log")

    @patch.dict(os.environ, {"VIGIA_VULN_CONCURRENCY": "2", "VIGIA_DEPS_DEV_URL": "http://localhost:8080/v3/systems"})
    def test_environment_overrides(self):
        config = load_config()

        self.assertEqual(config.vuln_concurrency, 2)
        self.assertEqual(config.deps_dev_url, "http://localhost:8080/v3/systems")

    def test_keyword_overrides_and_validation(self):
        self.assertEqual(load_config(batch_size=10).batch_size, 10)
        with self.assertRaises(ValidationError):
            load_config(concurrency=0)


if __name__ == '__main__':
    unittest.main()
