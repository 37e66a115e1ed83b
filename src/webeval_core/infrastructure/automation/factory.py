"""
Automation executor factory

Creates the model-driven executor with the backend for a model provider.
"""

from __future__ import annotations

from webeval_core.domain.constants import SUPPORTED_PROVIDERS
from webeval_core.infrastructure.automation.base import AutomationExecutor
from webeval_core.infrastructure.automation.model_agent import ModelAgentExecutor
from webeval_core.infrastructure.automation.model_backends import (
    AnthropicBackend,
    ChatBackend,
    LMStudioBackend,
    VertexAIBackend,
)
from webeval_core.orchestrator_config import OrchestratorConfig, load_config


def create_backend(provider: str, model_name: str, config: OrchestratorConfig | None = None) -> ChatBackend:
    """
    Create the LLM backend for a provider

    Args:
        provider: One of SUPPORTED_PROVIDERS
        model_name: Model name passed to the provider
        config: OrchestratorConfig (loads from env if not provided)

    Raises:
        ValueError: If the provider is not supported
    """
    if config is None:
        config = load_config()
    agent = config.agent

    provider = provider.lower()
    if provider == "anthropic":
        return AnthropicBackend(model_name, max_retries=agent.max_retries, max_tokens=agent.max_tokens)
    elif provider == "lmstudio":
        return LMStudioBackend(
            model_name,
            base_url=agent.lmstudio_base_url,
            api_key=agent.lmstudio_api_key,
            max_retries=agent.max_retries,
            max_tokens=agent.max_tokens,
        )
    elif provider == "vertex_ai":
        return VertexAIBackend(
            model_name,
            timeout_seconds=agent.timeout_seconds,
            max_retries=agent.max_retries,
            max_tokens=agent.max_tokens,
        )
    raise ValueError(f"Unsupported model provider: {provider} (supported: {', '.join(SUPPORTED_PROVIDERS)})")


def create_executor(provider: str, model_name: str, config: OrchestratorConfig | None = None) -> AutomationExecutor:
    """Create a ModelAgentExecutor for the provider's backend"""
    return ModelAgentExecutor(create_backend(provider, model_name, config))
