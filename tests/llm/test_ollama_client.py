import json
import unittest
from types import SimpleNamespace
from unittest.mock import patch

import requests

from commit_wizard.llm.ollama_client import OllamaClient
from commit_wizard.llm.provider import ExternalProviderError


class DummyResponse(SimpleNamespace):
    def json(self):
        return json.loads(self.text)


class TestOllamaClient(unittest.TestCase):
    def test_generate_success(self) -> None:
        captured = {}

        def fake_post(url, *_args, **kwargs):
            captured["url"] = url
            captured.update(kwargs)
            return DummyResponse(status_code=200, text=json.dumps({"response": "feat: add x"}))

        with patch("requests.post", fake_post):
            client = OllamaClient("http://localhost", 11434, "llama3.2", max_tokens=200)
            resp = client.generate("prompt", model="llama3.1", system="be brief")

        self.assertEqual(resp, "feat: add x")
        self.assertEqual(captured["url"], "http://localhost:11434/api/generate")
        payload = captured["json"]
        self.assertEqual(payload["model"], "llama3.1")
        self.assertEqual(payload["prompt"], "prompt")
        self.assertFalse(payload["stream"])
        self.assertEqual(payload["system"], "be brief")
        self.assertEqual(payload["options"], {"num_predict": 200})
        self.assertEqual(captured["timeout"], 60.0)

    def test_default_model_and_no_port(self) -> None:
        captured = {}

        def fake_post(url, *_args, **kwargs):
            captured["url"] = url
            captured.update(kwargs)
            return DummyResponse(status_code=200, text=json.dumps({"response": "fix: y"}))

        with patch("requests.post", fake_post):
            OllamaClient("https://ollama.example.com/", None, "llama3.2").generate("prompt")

        self.assertEqual(captured["url"], "https://ollama.example.com/api/generate")
        self.assertEqual(captured["json"]["model"], "llama3.2")
        self.assertNotIn("system", captured["json"])
        self.assertNotIn("options", captured["json"])

    def test_thinking_tags_are_removed(self) -> None:
        def fake_post(url, *_args, **kwargs):
            body = {"response": "<think>looks like a fix</think>\nfix: handle crash"}
            return DummyResponse(status_code=200, text=json.dumps(body))

        with patch("requests.post", fake_post):
            client = OllamaClient("http://localhost", 11434, "model")
            self.assertEqual(client.generate("prompt"), "fix: handle crash")

    def test_chat_style_reply(self) -> None:
        def fake_post(url, *_args, **kwargs):
            body = {"message": {"role": "assistant", "content": "docs: update readme"}}
            return DummyResponse(status_code=200, text=json.dumps(body))

        with patch("requests.post", fake_post):
            client = OllamaClient("http://localhost", 11434, "model")
            self.assertEqual(client.generate("prompt"), "docs: update readme")

    def test_generate_error_status(self) -> None:
        def fake_post(url, *_args, **kwargs):
            return DummyResponse(status_code=500, text="Internal error")

        with patch("requests.post", fake_post):
            client = OllamaClient("http://localhost", 11434, "model")
            with self.assertRaises(ExternalProviderError) as ctx:
                client.generate("prompt")
        self.assertEqual(ctx.exception.status_code, 500)

    def test_generate_invalid_json(self) -> None:
        def fake_post(url, *_args, **kwargs):
            return DummyResponse(status_code=200, text="not json")

        with patch("requests.post", fake_post):
            client = OllamaClient("http://localhost", 11434, "model")
            with self.assertRaises(ExternalProviderError):
                client.generate("prompt")

    def test_generate_unexpected_structure(self) -> None:
        def fake_post(url, *_args, **kwargs):
            return DummyResponse(status_code=200, text=json.dumps(["no", "response"]))

        with patch("requests.post", fake_post):
            client = OllamaClient("http://localhost", 11434, "model")
            with self.assertRaises(ExternalProviderError):
                client.generate("prompt")

    def test_connection_error(self) -> None:
        def fake_post(url, *_args, **kwargs):
            raise requests.ConnectionError("connection refused")

        with patch("requests.post", fake_post):
            client = OllamaClient("http://localhost", 11434, "model")
            with self.assertRaises(ExternalProviderError) as ctx:
                client.generate("prompt")
        self.assertIn("connection refused", str(ctx.exception))
        self.assertIsNone(ctx.exception.status_code)


if __name__ == "__main__":
    unittest.main()
