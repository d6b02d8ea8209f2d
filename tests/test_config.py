import importlib
import json
import logging
import os
import tempfile
import unittest
from unittest.mock import patch

from config import logging_config
from config.config import Config
from config.institutions import DEFAULT_INSTITUTIONS, load_institutions


class TestConfig(unittest.TestCase):
    def test_config_defaults(self):
        self.assertEqual(Config.PORT, 3000)
        self.assertEqual(Config.INTERVAL_SECONDS, 60)
        self.assertEqual(Config.DIRECT_TIMEOUT_SECONDS, 8.0)
        self.assertEqual(Config.STATUS_API_TIMEOUT_SECONDS, 3.0)
        self.assertEqual(Config.AGGREGATOR_TIMEOUT_SECONDS, 5.0)
        self.assertEqual(Config.INSTITUTION_DEADLINE_SECONDS, 30.0)
        self.assertLess(Config.SLOW_LATENCY_MS, Config.CRITICAL_LATENCY_MS)
        self.assertLess(Config.AGGREGATOR_LOW_THRESHOLD, Config.AGGREGATOR_HIGH_THRESHOLD)
        self.assertIn("{id}", Config.AGGREGATOR_URL_TEMPLATE)

    def test_config_env_override(self):
        import config.config as config_mod

        try:
            with patch.dict(os.environ, {"MONITOR_INTERVAL_SECONDS": "15", "PORT": "9000"}):
                importlib.reload(config_mod)
                self.assertEqual(config_mod.Config.INTERVAL_SECONDS, 15)
                self.assertEqual(config_mod.Config.PORT, 9000)
        finally:
            importlib.reload(config_mod)


class TestLoggingConfig(unittest.TestCase):
    def test_logging_setup(self):
        try:
            logging_config.setup_logging()
        except Exception as e:
            self.fail(f"setup_logging() raised {e}")
        self.assertTrue(logging.getLogger().hasHandlers())
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)


class TestInstitutions(unittest.TestCase):
    def test_default_roster(self):
        roster = load_institutions()
        ids = [i.id for i in roster]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertIn("nubank", ids)
        for institution in roster:
            self.assertTrue(institution.urls, institution.id)
            self.assertGreater(institution.initial_baseline_ms, 0)
        self.assertIsNot(roster, DEFAULT_INSTITUTIONS)

    def test_roster_from_file(self):
        data = [
            {"id": "one", "name": "One", "urls": ["https://one.example"]},
            {"id": "two", "name": "Two", "urls": [], "aggregator_id": "two"},
        ]
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "roster.json")
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            roster = load_institutions(path)
        self.assertEqual([i.id for i in roster], ["one", "two"])
        self.assertEqual(roster[0].initial_baseline_ms, 1000.0)
        self.assertEqual(roster[1].aggregator_id, "two")

    def test_duplicate_ids_rejected(self):
        data = [{"id": "dup", "name": "A"}, {"id": "dup", "name": "B"}]
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "roster.json")
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            with self.assertRaises(ValueError):
                load_institutions(path)


if __name__ == "__main__":
    unittest.main()
