"""
Automation executor interface

The executor drives an agent through one task. It reports every interaction
step to a StepReporter and stops when the returned StepResult says so.
"""

from abc import ABC, abstractmethod

from webeval_core.domain.errors import WebEvalError
from webeval_core.domain.value_objects import (
    AutomationResult,
    ExecutionContext,
    ExecutionParameters,
    StepResult,
)


class AutomationError(WebEvalError):
    """The automation backend could not complete a task"""
    pass


class StepReporter(ABC):
    """Step callback handed to the executor for one task"""

    @abstractmethod
    def advance(self, description: str, confidence: float) -> StepResult:
        """Record a finished step and return whether to continue"""
        pass


class AutomationExecutor(ABC):
    """Abstract base class for automation executors"""

    @abstractmethod
    def execute(
        self,
        instruction: str,
        parameters: ExecutionParameters,
        context: ExecutionContext,
        steps: StepReporter,
    ) -> AutomationResult:
        """
        Perform a task

        Args:
            instruction: Natural-language task prompt
            parameters: Step limits and early completion settings
            context: Correlation identifiers for the call chain
            steps: Reporter to call after each interaction step

        Returns:
            AutomationResult with the agent's final text and screenshot references

        Raises:
            AutomationError: If the task could not be performed
        """
        pass
