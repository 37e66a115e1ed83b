"""
Automation package

Provides the executor interface and the model-driven executor with its LLM backends.
"""

from webeval_core.infrastructure.automation.base import (
    AutomationError,
    AutomationExecutor,
    StepReporter,
)
from webeval_core.infrastructure.automation.factory import create_backend, create_executor
from webeval_core.infrastructure.automation.model_agent import ModelAgentExecutor

__all__ = [
    "AutomationError",
    "AutomationExecutor",
    "ModelAgentExecutor",
    "StepReporter",
    "create_backend",
    "create_executor",
]
