import unittest

from commit_wizard.config.loader import ConfigError
from commit_wizard.config.settings import PipelineConfig, build_pipeline_config


class TestBuildPipelineConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        config = build_pipeline_config({})
        self.assertEqual(config, PipelineConfig())
        self.assertEqual(config.budget.max_file_size_kb, 100)
        self.assertEqual(config.budget.max_file_count, 10)
        self.assertEqual(config.budget.max_total_diff_lines, 2000)
        self.assertEqual(config.provider.name, "ollama")
        self.assertEqual((config.provider.base_url, config.provider.port), ("http://localhost", 11434))
        self.assertEqual((config.models.fast, config.models.thinking), ("llama3.2", "llama3.1"))
        self.assertEqual(config.max_regenerations, 3)
        self.assertEqual(config.validator.scope_repair_confidence, 0.5)
        self.assertEqual(config.validator.max_description_length, 72)

    def test_file_values(self) -> None:
        config = build_pipeline_config({
            "models": {"thinking": "qwen2.5:14b"},
            "analysis": {"max_file_count": 4},
            "max_regenerations": 1,
            "scope_repair_confidence": 0.8,
            "max_description_length": 90,
            "editor": "vim",
            "request_timeout": 15,
        })
        self.assertEqual(config.models.fast, "llama3.2")
        self.assertEqual(config.models.thinking, "qwen2.5:14b")
        self.assertEqual(config.budget.max_file_count, 4)
        self.assertEqual(config.max_regenerations, 1)
        self.assertEqual(config.validator.scope_repair_confidence, 0.8)
        self.assertEqual(config.validator.max_description_length, 90)
        self.assertEqual(config.editor, "vim")
        self.assertEqual(config.provider.request_timeout, 15.0)

    def test_command_line_overrides_win(self) -> None:
        config = build_pipeline_config(
            {"analysis": {"max_file_count": 4, "max_total_diff_lines": 50}},
            max_file_count=7,
            max_file_size_kb=20,
            model="custom",
        )
        self.assertEqual(config.budget.max_file_count, 7)
        self.assertEqual(config.budget.max_file_size_kb, 20)
        self.assertEqual(config.budget.max_total_diff_lines, 50)
        self.assertEqual(config.models.override, "custom")

    def test_openrouter_defaults(self) -> None:
        config = build_pipeline_config({"provider": "openrouter", "api_key": "sk-test"})
        self.assertEqual(config.provider.base_url, "https://openrouter.ai/api/v1")
        self.assertIsNone(config.provider.port)
        self.assertEqual(config.provider.api_key, "sk-test")

    def test_invalid_values(self) -> None:
        for data, overrides in (
            ({"analysis": {"max_file_count": 0}}, {}),
            ({}, {"max_total_diff_lines": -5}),
            ({"max_regenerations": -1}, {}),
        ):
            with self.subTest(data=data, overrides=overrides):
                with self.assertRaises(ConfigError):
                    build_pipeline_config(data, **overrides)

    def test_none_is_treated_as_empty(self) -> None:
        self.assertEqual(build_pipeline_config(None), PipelineConfig())


if __name__ == "__main__":
    unittest.main()
