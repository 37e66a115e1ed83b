"""
Retry mixin

Consolidates the exponential backoff retry shared by the conflict retry
executor and the LLM backends.
"""

import logging
import time

logger = logging.getLogger(__name__)


class RetryMixin:
    """Exponential backoff retry. Subclasses set self.max_retries and self.base_delay_seconds."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0

    def _backoff_delay(self, attempt: int) -> float:
        """Delay after the given (0-based) failed attempt: base, 2*base, 4*base, ..."""
        return self.base_delay_seconds * (2 ** attempt)

    def _with_retry(self, fn, retryable_exceptions=(Exception,), description: str = ""):
        """
        Execute with exponential backoff retry.

        Args:
            fn: The function to retry (a callable with no arguments)
            retryable_exceptions: Tuple of exception types eligible for retry
            description: Label used in log messages

        Returns:
            The return value of fn()

        Raises:
            ValueError: If max_retries is less than 1
            Exception: The last exception if max retries are exceeded
        """
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1.")

        last_exception: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                return fn()
            except retryable_exceptions as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self._backoff_delay(attempt)
                    logger.debug(
                        "Attempt %d/%d of %s failed (%s), retrying in %.3fs",
                        attempt + 1, self.max_retries, description or "operation", e, delay,
                    )
                    time.sleep(delay)

        assert last_exception is not None
        raise last_exception
