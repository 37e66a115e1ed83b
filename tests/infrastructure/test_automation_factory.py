"""
LLM backend and executor factory tests

SDK clients are patched so no network calls are made.
"""

import pytest
from unittest.mock import patch, MagicMock

from webeval_core.infrastructure.automation.factory import create_backend, create_executor
from webeval_core.infrastructure.automation.model_agent import ModelAgentExecutor
from webeval_core.infrastructure.automation.model_backends import (
    AnthropicBackend,
    LMStudioBackend,
    VertexAIBackend,
)
from webeval_core.orchestrator_config import OrchestratorConfig

MODULE = "webeval_core.infrastructure.automation.model_backends"


@pytest.fixture
def config():
    config = OrchestratorConfig()
    config.agent.max_retries = 2
    config.agent.max_tokens = 512
    return config


class TestCreateBackend:
    @patch(f"{MODULE}.Anthropic")
    def test_anthropic(self, mock_anthropic, config, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        backend = create_backend("anthropic", "claude-haiku-4-5-20251001", config)

        assert isinstance(backend, AnthropicBackend)
        assert backend.max_retries == 2
        assert backend.max_tokens == 512
        mock_anthropic.assert_called_once_with(api_key="test-key")

    @patch(f"{MODULE}.OpenAI")
    def test_lmstudio(self, mock_openai, config):
        config.agent.lmstudio_base_url = "http://lm:1234/v1"
        backend = create_backend("LMStudio", "lmstudio/qwen2.5-7b", config)

        assert isinstance(backend, LMStudioBackend)
        assert backend.api_model_name == "qwen2.5-7b"
        mock_openai.assert_called_once_with(base_url="http://lm:1234/v1", api_key="lm-studio")

    @patch(f"{MODULE}.genai.Client")
    def test_vertex_ai(self, mock_client, config, monkeypatch):
        monkeypatch.setenv("GCP_PROJECT_ID", "proj")
        backend = create_backend("vertex_ai", "gemini-2.5-flash", config)

        assert isinstance(backend, VertexAIBackend)
        assert mock_client.call_args.kwargs["project"] == "proj"
        assert mock_client.call_args.kwargs["vertexai"] is True

    def test_unknown_provider(self, config):
        with pytest.raises(ValueError, match="Unsupported model provider: bedrock"):
            create_backend("bedrock", "x", config)

    def test_anthropic_requires_api_key(self, config, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY is not set"):
            create_backend("anthropic", "claude", config)

    @patch(f"{MODULE}.OpenAI")
    def test_create_executor_wraps_backend(self, mock_openai, config):
        executor = create_executor("lmstudio", "lmstudio/qwen", config)
        assert isinstance(executor, ModelAgentExecutor)
        assert isinstance(executor.backend, LMStudioBackend)


class TestBackendComplete:
    @patch(f"{MODULE}.Anthropic")
    def test_anthropic_complete(self, mock_anthropic, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "k")
        response = MagicMock()
        response.content = [MagicMock(text="  Tokyo\nCONFIDENCE: 0.9  ")]
        mock_anthropic.return_value.messages.create.return_value = response

        backend = AnthropicBackend("claude", max_tokens=256)
        assert backend.complete("prompt") == "Tokyo\nCONFIDENCE: 0.9"
        kwargs = mock_anthropic.return_value.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 256
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @patch(f"{MODULE}.OpenAI")
    def test_lmstudio_complete_handles_empty_content(self, mock_openai):
        response = MagicMock()
        response.choices = [MagicMock(message=MagicMock(content=None))]
        mock_openai.return_value.chat.completions.create.return_value = response

        assert LMStudioBackend("lmstudio/qwen").complete("prompt") == ""

    @patch("webeval_core.infrastructure.retry.time.sleep")
    @patch(f"{MODULE}.genai.Client")
    def test_vertex_retries_transient_errors(self, mock_client, mock_sleep):
        from google.api_core import exceptions as google_exceptions

        response = MagicMock(text="answer")
        mock_client.return_value.models.generate_content.side_effect = [
            google_exceptions.ServiceUnavailable("busy"),
            response,
        ]
        backend = VertexAIBackend("gemini-2.5-flash", project_id="proj", max_retries=3)

        assert backend.complete("prompt") == "answer"
        mock_sleep.assert_called_once_with(1.0)
