import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from pagepilot.config.manager import EnvironmentManager


class TestEnvironmentManager(unittest.TestCase):
    """Test cases for the EnvironmentManager class."""

    def setUp(self):
        """Set up test fixtures."""
        # Create a new instance for each test to avoid singleton issues
        self.original_instance = EnvironmentManager._instance
        EnvironmentManager._instance = None
        self.env_manager = EnvironmentManager()
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up after tests."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        EnvironmentManager._instance = self.original_instance

    def create_env_file(self, content):
        """Create a temporary .env file with the given content."""
        env_file = Path(self.temp_dir) / ".env"
        env_file.write_text(content)
        return env_file

    def test_initialization(self):
        """Test that EnvironmentManager initializes with every default setting."""
        for key in EnvironmentManager.DEFAULT_SETTINGS:
            self.assertIn(key, self.env_manager.settings)
        self.assertIsInstance(self.env_manager.env_variables, dict)
        self.assertIsInstance(self.env_manager._providers, list)

    def test_singleton_pattern(self):
        """Test that EnvironmentManager follows singleton pattern."""
        manager1 = EnvironmentManager()
        manager2 = EnvironmentManager()
        self.assertIs(manager1, manager2)

    def test_env_mapping_uses_prefix(self):
        self.assertEqual(EnvironmentManager.ENV_MAPPING["PAGEPILOT_HEADLESS"], "headless")
        self.assertEqual(EnvironmentManager.ENV_MAPPING["PAGEPILOT_WAIT_TIMEOUT_MS"], "wait_timeout_ms")
        self.assertEqual(set(EnvironmentManager.ENV_MAPPING.values()), set(EnvironmentManager.DEFAULT_SETTINGS))

    def test_parse_env_file(self):
        """Test parsing an environment file."""
        env_file = self.create_env_file(
            """
            # Test environment file
            PAGEPILOT_SURFACE_TYPE=selenium
            PAGEPILOT_HEADLESS=false
            PAGEPILOT_WAIT_TIMEOUT_MS=1200
            PAGEPILOT_LOG_LEVEL="debug"
            UNRELATED_VARIABLE='kept'
            """
        )
        self.env_manager._parse_env_file(env_file)

        self.assertEqual(self.env_manager.get_setting("surface_type"), "selenium")
        self.assertFalse(self.env_manager.get_setting("headless"))
        self.assertEqual(self.env_manager.get_setting("wait_timeout_ms"), 1200)
        self.assertEqual(self.env_manager.get_setting("log_level"), "debug")
        self.assertEqual(self.env_manager.env_variables["UNRELATED_VARIABLE"], "kept")

    def test_invalid_value_is_ignored(self):
        env_file = self.create_env_file("PAGEPILOT_STEP_POLL_INTERVAL_MS=fast\n")
        self.env_manager._parse_env_file(env_file)
        self.assertEqual(self.env_manager.get_setting("step_poll_interval_ms"), 250)

    def test_load_from_os_environ(self):
        """Test that prefixed process variables override defaults."""
        with mock.patch.dict(os.environ, {"PAGEPILOT_VERBOSE": "yes", "PAGEPILOT_TIMEOUT_MS": "3000"}):
            with mock.patch.object(self.env_manager, "_load_from_env_file"):
                self.env_manager.load()

        self.assertTrue(self.env_manager.get_setting("verbose"))
        self.assertEqual(self.env_manager.get_setting("timeout_ms"), 3000)

    def test_provider_settings(self):
        self.env_manager.register_provider(lambda: {"settings": {"browser_type": "firefox", "unknown": 1}})
        with mock.patch.object(self.env_manager, "_load_from_env_file"):
            self.env_manager.load()
        self.assertEqual(self.env_manager.get_setting("browser_type"), "firefox")
        self.assertNotIn("unknown", self.env_manager.settings)

    def test_path_settings_are_resolved(self):
        self.env_manager.settings["capture_dir"] = "captures"
        self.env_manager._resolve_paths()
        self.assertTrue(Path(self.env_manager.get_setting("capture_dir")).is_absolute())

    def test_get_setting_default(self):
        self.assertIsNone(self.env_manager.settings["browser_type"])
        self.assertEqual(self.env_manager.get_setting("browser_type", "chromium"), "chromium")

    def test_update_configuration(self):
        result = self.env_manager.update_configuration(
            {"headless": "false", "wait_poll_interval_ms": "20", "nope": 1}
        )
        self.assertFalse(result["success"])
        self.assertEqual(result["updated_settings"], ["headless", "wait_poll_interval_ms"])
        self.assertEqual(result["errors"], ["Unknown setting: nope"])
        self.assertFalse(self.env_manager.get_setting("headless"))
        self.assertEqual(self.env_manager.get_setting("wait_poll_interval_ms"), 20)

    def test_reset_setting(self):
        self.env_manager.update_configuration({"log_level": "info"})
        result = self.env_manager.reset_setting("log_level")
        self.assertTrue(result["success"])
        self.assertEqual(self.env_manager.get_setting("log_level"), "error")
        self.assertFalse(self.env_manager.reset_setting("missing")["success"])

    def test_get_all_configuration(self):
        configuration = self.env_manager.get_all_configuration()
        self.assertIn("settings", configuration)
        descriptor = configuration["default_settings"]["headless"]
        self.assertEqual(descriptor["type"], "bool")
        self.assertEqual(descriptor["env_var"], "PAGEPILOT_HEADLESS")


if __name__ == "__main__":
    unittest.main()
