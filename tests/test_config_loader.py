import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from commit_wizard.config.loader import (
    ConfigError,
    apply_environment,
    get_config_path,
    load_config,
)


class TestLoadConfig(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name)
        self.path = self.dir / "config.json"
        env = patch.dict(os.environ, {}, clear=True)
        env.start()
        self.addCleanup(env.stop)

    def write(self, content) -> None:
        text = content if isinstance(content, str) else json.dumps(content)
        self.path.write_text(text, encoding="utf-8")

    def test_missing_file_gives_defaults(self) -> None:
        self.assertEqual(load_config(self.path), {})

    def test_valid_file(self) -> None:
        data = {
            "provider": "ollama",
            "base_url": "http://gpu-box",
            "port": 11500,
            "models": {"fast": "qwen2.5:3b", "thinking": "qwen2.5:14b"},
            "analysis": {"max_file_count": 5},
            "request_timeout": 30,
            "scope_repair_confidence": 0.7,
        }
        self.write(data)
        self.assertEqual(load_config(self.path), data)

    def test_invalid_json(self) -> None:
        self.write("{not json")
        with self.assertRaises(ConfigError):
            load_config(self.path)

    def test_non_object(self) -> None:
        self.write([1, 2, 3])
        with self.assertRaises(ConfigError):
            load_config(self.path)

    def test_wrong_types(self) -> None:
        cases = [
            {"provider": "openai"},
            {"port": "11434"},
            {"max_regenerations": 1.5},
            {"request_timeout": True},
            {"api_key": 42},
            {"models": ["llama3"]},
            {"models": {"fast": ""}},
            {"models": {"huge": "llama3"}},
            {"analysis": {"max_file_count": 0}},
            {"analysis": {"max_total_diff_lines": "2000"}},
            {"analysis": {"max_depth": 3}},
        ]
        for data in cases:
            with self.subTest(data=data):
                self.write(data)
                with self.assertRaises(ConfigError):
                    load_config(self.path)

    def test_environment_selects_openrouter(self) -> None:
        with patch.dict(os.environ, {"OPENROUTER_API_KEY": "sk-env", "OPENROUTER_MODEL": "x/model"}):
            data = load_config(self.path)
        self.assertEqual(data["provider"], "openrouter")
        self.assertEqual(data["api_key"], "sk-env")
        self.assertEqual(data["models"], {"fast": "x/model", "thinking": "x/model"})

    def test_explicit_provider_wins_over_environment_key(self) -> None:
        self.write({"provider": "ollama"})
        with patch.dict(os.environ, {"OPENROUTER_API_KEY": "sk-env"}):
            data = load_config(self.path)
        self.assertEqual(data["provider"], "ollama")
        self.assertEqual(data["api_key"], "sk-env")

    def test_api_key_is_not_logged(self) -> None:
        self.write({"provider": "openrouter", "api_key": "sk-secret"})
        with self.assertLogs("commit_wizard.config.loader", level="DEBUG") as logs:
            data = load_config(self.path)
        self.assertEqual(data["api_key"], "sk-secret")
        self.assertFalse(any("sk-secret" in line for line in logs.output))

    def test_default_location(self) -> None:
        with patch("pathlib.Path.home", return_value=self.dir):
            self.assertEqual(get_config_path(), self.dir / ".commit_wizard" / "config.json")
            self.assertEqual(load_config(), {})


class TestApplyEnvironment(unittest.TestCase):
    def test_empty_values_are_ignored(self) -> None:
        data = {"provider": "ollama"}
        result = apply_environment(data, {"OPENROUTER_API_KEY": "", "OPENROUTER_MODEL": ""})
        self.assertEqual(result, {"provider": "ollama"})

    def test_input_is_not_mutated(self) -> None:
        data = {}
        apply_environment(data, {"OPENROUTER_API_KEY": "k"})
        self.assertEqual(data, {})


if __name__ == "__main__":
    unittest.main()
