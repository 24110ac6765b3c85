import json
import os
import unittest
from pathlib import Path
from unittest.mock import patch

from grouped_commit.config.loader import ConfigError, Settings, load_config, require_api_key


class TestConfigLoader(unittest.TestCase):
    """Tests for the configuration loader."""

    def _config_dir(self) -> Path:
        path = Path(os.environ["GROUPED_COMMIT_HOME"])
        path.mkdir(parents=True, exist_ok=True)
        return path

    def test_defaults_without_file(self) -> None:
        settings = load_config()
        self.assertIsInstance(settings, Settings)
        self.assertIsNone(settings.api_key)
        self.assertFalse(settings.use_emoji)
        self.assertEqual(settings.unknown_type_policy, "chore")
        self.assertEqual(settings.trailers, ())

    def test_load_config_file_values(self) -> None:
        config = {
            "model": "claude-test",
            "request_timeout": 30,
            "max_tokens": 512,
            "use_emoji": True,
            "trailers": ["Co-authored-by: Jane <jane@example.com>"],
        }
        (self._config_dir() / "config.json").write_text(json.dumps(config))
        settings = load_config()
        self.assertEqual(settings.model, "claude-test")
        self.assertEqual(settings.request_timeout, 30.0)
        self.assertEqual(settings.max_tokens, 512)
        self.assertTrue(settings.use_emoji)
        self.assertEqual(settings.trailers, ("Co-authored-by: Jane <jane@example.com>",))

    def test_invalid_json(self) -> None:
        (self._config_dir() / "config.json").write_text("{invalid}")
        with self.assertRaises(ConfigError):
            load_config()

    def test_non_object_json(self) -> None:
        (self._config_dir() / "config.json").write_text("[1, 2]")
        with self.assertRaises(ConfigError):
            load_config()

    def test_wrong_types(self) -> None:
        for bad in ({"max_tokens": "many"}, {"use_emoji": "yes"}, {"max_tokens": True}, {"trailers": [1]}):
            (self._config_dir() / "config.json").write_text(json.dumps(bad))
            with self.subTest(bad=bad):
                with self.assertRaises(ConfigError):
                    load_config()

    def test_unknown_type_policy_validated(self) -> None:
        with self.assertRaises(ConfigError):
            load_config(unknown_type_policy="maybe")
        self.assertEqual(load_config(unknown_type_policy="reject").unknown_type_policy, "reject")

    def test_environment_overrides_file(self) -> None:
        (self._config_dir() / "config.json").write_text(json.dumps({"use_emoji": False}))
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": " key-1 ", "USE_EMOJI": "true", "DEBUG": "true"}):
            settings = load_config()
        self.assertEqual(settings.api_key, "key-1")
        self.assertTrue(settings.use_emoji)
        self.assertTrue(settings.debug)

    def test_legacy_api_key_variable(self) -> None:
        with patch.dict(os.environ, {"CLAUDE_API_KEY": "legacy"}):
            self.assertEqual(load_config().api_key, "legacy")

    def test_cli_overrides_win_and_none_is_ignored(self) -> None:
        with patch.dict(os.environ, {"USE_EMOJI": "true"}):
            settings = load_config(use_emoji=False, dry_run=None, skip_ai=True)
        self.assertFalse(settings.use_emoji)
        self.assertFalse(settings.dry_run)
        self.assertTrue(settings.skip_ai)

    def test_unknown_override_rejected(self) -> None:
        with self.assertRaises(ConfigError):
            load_config(colour=True)

    def test_settings_are_immutable(self) -> None:
        settings = load_config()
        with self.assertRaises(Exception):
            settings.dry_run = True  # type: ignore[misc]

    def test_require_api_key(self) -> None:
        with self.assertRaises(ConfigError):
            require_api_key(Settings())
        self.assertEqual(require_api_key(Settings(api_key="k")), "k")

    def test_ai_messages_property(self) -> None:
        self.assertTrue(Settings(api_key="k").ai_messages)
        self.assertFalse(Settings(api_key="k", skip_ai=True).ai_messages)
        self.assertFalse(Settings().ai_messages)


if __name__ == "__main__":
    unittest.main()
