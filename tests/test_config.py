import os
import sys
import unittest
from datetime import timedelta

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import config  # noqa: E402


class StoreSettingsTestCase(unittest.TestCase):
    def test_defaults_without_environment(self):
        settings = config.StoreSettings.from_env({})
        self.assertEqual(settings, config.StoreSettings())
        self.assertEqual(settings.db_path, config.DB_PATH)
        self.assertEqual(settings.session_ttl, timedelta(days=1))
        self.assertIsNone(settings.secret)

    def test_environment_overrides(self):
        settings = config.StoreSettings.from_env(
            {
                "STORE_DB_PATH": "/tmp/shop.sqlite",
                "STORE_MAX_VALUE_BYTES": "2048",
                "STORE_SESSION_TTL": "600",
                "STORE_SECRET": "hush",
                "STORE_MAX_PRODUCTS": "5",
                "STORE_MAX_INLINE_IMAGE_BYTES": "0",
            }
        )
        self.assertEqual(settings.db_path, "/tmp/shop.sqlite")
        self.assertEqual(settings.max_value_bytes, 2048)
        self.assertEqual(settings.session_ttl, timedelta(minutes=10))
        self.assertEqual(settings.secret, "hush")
        self.assertEqual(settings.capacity.max_products, 5)
        self.assertEqual(settings.capacity.retain_products, 4)
        self.assertEqual(settings.capacity.max_inline_image_bytes, 0)

    def test_bad_numbers_fall_back(self):
        with self.assertLogs("db.config", level="WARNING"):
            settings = config.StoreSettings.from_env(
                {"STORE_MAX_VALUE_BYTES": "lots", "STORE_SESSION_TTL": "-5"}
            )
        self.assertEqual(settings.max_value_bytes, config.DEFAULT_MAX_VALUE_BYTES)
        self.assertEqual(settings.session_ttl, config.DEFAULT_SESSION_TTL)

    def test_zero_max_products_is_ignored(self):
        with self.assertLogs("db.config", level="WARNING"):
            settings = config.StoreSettings.from_env({"STORE_MAX_PRODUCTS": "0"})
        self.assertEqual(settings.capacity.max_products, 20)

    def test__to_int_helper(self):
        self.assertEqual(config._to_int("3"), 3)
        self.assertIsNone(config._to_int("nan"))
        self.assertIsNone(config._to_int(None))


if __name__ == "__main__":
    unittest.main()
