"""Unit tests for app.core.config: validated settings and lazy loading."""

import unittest

from pydantic import SecretStr
from pydantic import ValidationError as SettingsError

from app.core import config
from app.core.config import Settings, get_settings


class TestSettingsValidation(unittest.TestCase):
    def test_api_prefix_trailing_slash_is_stripped(self) -> None:
        self.assertEqual(Settings(API_PREFIX="/api/").API_PREFIX, "/api")

    def test_log_level_is_upper_cased(self) -> None:
        self.assertEqual(Settings(LOG_LEVEL="debug").LOG_LEVEL, "DEBUG")

    def test_unsupported_database_url_is_rejected(self) -> None:
        with self.assertRaises(SettingsError):
            Settings(DATABASE_URL="mysql://user@localhost/db")

    def test_bcrypt_rounds_outside_range_is_rejected(self) -> None:
        with self.assertRaises(SettingsError):
            Settings(BCRYPT_ROUNDS=3)

    def test_blank_jwt_secret_is_rejected(self) -> None:
        with self.assertRaises(SettingsError):
            Settings(JWT_SECRET=SecretStr("  "))


class TestSettingsLoading(unittest.TestCase):
    def test_get_settings_is_cached(self) -> None:
        self.assertIs(get_settings(), get_settings())

    def test_config_module_holds_no_eager_settings_instance(self) -> None:
        instances = [v for v in vars(config).values() if isinstance(v, Settings)]
        self.assertEqual(instances, [])


if __name__ == "__main__":
    unittest.main()
