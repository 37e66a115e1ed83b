"""
LLM backends for the model-driven automation executor

Each backend sends one prompt and returns the reply text, retrying transient
provider errors with exponential backoff.
"""

import logging
import os
from abc import ABC, abstractmethod

import openai
from anthropic import Anthropic, APIConnectionError, APIStatusError, RateLimitError
from google import genai
from google.api_core import exceptions as google_exceptions
from google.genai.types import GenerateContentConfig, HttpOptions
from openai import OpenAI

from webeval_core.infrastructure.retry import RetryMixin

logger = logging.getLogger(__name__)


class ChatBackend(ABC):
    """Abstract base class for LLM backends"""

    model_name: str

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Send a prompt and return the reply text"""
        pass


class AnthropicBackend(RetryMixin, ChatBackend):
    """Backend using the Anthropic Messages API"""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        max_retries: int = 3,
        max_tokens: int = 1024,
    ):
        """
        Args:
            model_name: Model name (e.g. claude-sonnet-4-5-20250514)
            api_key: Anthropic API key (falls back to ANTHROPIC_API_KEY)
            max_retries: Maximum number of attempts (default: 3)
            max_tokens: Maximum reply tokens per step (default: 1024)
        """
        self.model_name = model_name
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.max_retries = max_retries
        self.max_tokens = max_tokens

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        self.client = Anthropic(api_key=self.api_key)

    def complete(self, prompt: str) -> str:
        def _call():
            response = self.client.messages.create(
                model=self.model_name,
                max_tokens=self.max_tokens,
                temperature=0.0,
                messages=[{"role": "user", "content": prompt}],
            )
            return response.content[0].text.strip()

        return self._with_retry(
            _call,
            retryable_exceptions=(APIConnectionError, RateLimitError, APIStatusError),
            description=f"anthropic:{self.model_name}",
        )


class LMStudioBackend(RetryMixin, ChatBackend):
    """Backend using LMStudio (OpenAI-compatible API)"""

    def __init__(
        self,
        model_name: str,
        base_url: str | None = None,
        api_key: str | None = None,
        max_retries: int = 3,
        max_tokens: int = 1024,
    ):
        """
        Args:
            model_name: Model name (e.g. lmstudio/qwen2.5-7b)
            base_url: API endpoint (falls back to LMSTUDIO_BASE_URL)
            api_key: API key (falls back to LMSTUDIO_API_KEY; usually not required)
            max_retries: Maximum number of attempts (default: 3)
            max_tokens: Maximum reply tokens per step (default: 1024)
        """
        self.model_name = model_name
        self.api_model_name = model_name.removeprefix("lmstudio/")
        self.max_retries = max_retries
        self.max_tokens = max_tokens

        # argument > environment variable > default value
        base_url = base_url or os.environ.get("LMSTUDIO_BASE_URL", "http://localhost:1234/v1")
        api_key = api_key or os.environ.get("LMSTUDIO_API_KEY", "lm-studio")

        self.base_url = base_url
        self.client = OpenAI(base_url=base_url, api_key=api_key)

    def complete(self, prompt: str) -> str:
        def _call():
            response = self.client.chat.completions.create(
                model=self.api_model_name,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.0,
                max_tokens=self.max_tokens,
            )
            return (response.choices[0].message.content or "").strip()

        return self._with_retry(
            _call,
            retryable_exceptions=(
                openai.APIConnectionError,
                openai.RateLimitError,
                openai.APIStatusError,
            ),
            description=f"lmstudio:{self.api_model_name}",
        )


class VertexAIBackend(RetryMixin, ChatBackend):
    """Backend using the Google GenAI SDK via Vertex AI"""

    def __init__(
        self,
        model_name: str,
        project_id: str | None = None,
        location: str | None = None,
        timeout_seconds: int = 120,
        max_retries: int = 3,
        max_tokens: int = 1024,
    ):
        """
        Args:
            model_name: Model name (e.g. gemini-2.5-flash)
            project_id: GCP project ID (falls back to GCP_PROJECT_ID)
            location: Region (default: global)
            timeout_seconds: Request timeout in seconds
            max_retries: Maximum number of attempts (default: 3)
            max_tokens: Maximum reply tokens per step (default: 1024)
        """
        self.model_name = model_name
        self.project_id = project_id or os.environ.get("GCP_PROJECT_ID")
        self.location = location or "global"
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries

        if not self.project_id:
            raise ValueError("GCP_PROJECT_ID is not set")

        # HttpOptions timeout is in milliseconds
        self.client = genai.Client(
            vertexai=True,
            project=self.project_id,
            location=self.location,
            http_options=HttpOptions(timeout=timeout_seconds * 1000),
        )
        self.generation_config = GenerateContentConfig(temperature=0.0, max_output_tokens=max_tokens)

    def complete(self, prompt: str) -> str:
        def _call():
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=self.generation_config,
            )
            return (response.text or "").strip()

        return self._with_retry(
            _call,
            retryable_exceptions=(
                google_exceptions.DeadlineExceeded,
                google_exceptions.ServiceUnavailable,
                google_exceptions.ResourceExhausted,
            ),
            description=f"vertex_ai:{self.model_name}",
        )
