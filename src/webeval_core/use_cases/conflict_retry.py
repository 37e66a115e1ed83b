"""
Conflict Retry

Runs store operations that may race with concurrent writers of the same record,
retrying optimistic version conflicts with exponential backoff.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from webeval_core.domain.constants import CONFLICT_BASE_DELAY_SECONDS, CONFLICT_MAX_ATTEMPTS
from webeval_core.domain.errors import WebEvalError
from webeval_core.infrastructure.retry import RetryMixin
from webeval_core.infrastructure.store.base import ConflictError
from webeval_core.orchestrator_config import ConflictRetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConflictRetryExhaustedError(WebEvalError):
    """An operation kept conflicting after all attempts"""

    def __init__(self, description: str, attempts: int):
        super().__init__(f"Operation '{description}' still conflicting after {attempts} attempts")
        self.description = description
        self.attempts = attempts


class ConflictRetryExecutor(RetryMixin):
    """
    Retry wrapper for units of work

    The operation must open its own unit of work so every attempt re-reads the
    current record versions. Only ConflictError is retried; anything else
    propagates from the first attempt.
    """

    def __init__(
        self,
        max_attempts: int = CONFLICT_MAX_ATTEMPTS,
        base_delay_seconds: float = CONFLICT_BASE_DELAY_SECONDS,
    ):
        self.max_retries = max_attempts
        self.base_delay_seconds = base_delay_seconds

    @classmethod
    def from_config(cls, config: ConflictRetryConfig) -> "ConflictRetryExecutor":
        return cls(max_attempts=config.max_attempts, base_delay_seconds=config.base_delay_seconds)

    def run(self, operation: Callable[[], T], description: str) -> T:
        """
        Execute an operation, retrying on ConflictError

        Raises:
            ConflictRetryExhaustedError: If every attempt conflicted (chained to the last conflict)
        """
        try:
            return self._with_retry(operation, retryable_exceptions=(ConflictError,), description=description)
        except ConflictError as e:
            logger.error("Conflict retry exhausted for %s after %d attempts: %s", description, self.max_retries, e)
            raise ConflictRetryExhaustedError(description, self.max_retries) from e
