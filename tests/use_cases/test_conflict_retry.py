"""
ConflictRetryExecutor tests
"""

from unittest.mock import MagicMock, patch

import pytest

from webeval_core.infrastructure.store.base import ConflictError, RecordNotFoundError
from webeval_core.orchestrator_config import ConflictRetryConfig
from webeval_core.use_cases.conflict_retry import ConflictRetryExecutor, ConflictRetryExhaustedError


def _conflict():
    return ConflictError("Evaluation", "e1", expected_version=1, actual_version=2)


class TestConflictRetryExecutor:
    @patch("webeval_core.infrastructure.retry.time.sleep")
    def test_returns_on_first_success(self, mock_sleep):
        operation = MagicMock(return_value="ok")
        assert ConflictRetryExecutor().run(operation, "op") == "ok"
        operation.assert_called_once()
        mock_sleep.assert_not_called()

    @patch("webeval_core.infrastructure.retry.time.sleep")
    def test_retries_conflict_then_succeeds(self, mock_sleep):
        operation = MagicMock(side_effect=[_conflict(), "ok"])
        assert ConflictRetryExecutor().run(operation, "op") == "ok"
        assert operation.call_count == 2
        mock_sleep.assert_called_once_with(0.1)

    @patch("webeval_core.infrastructure.retry.time.sleep")
    def test_exhausted_after_three_attempts(self, mock_sleep):
        last = _conflict()
        operation = MagicMock(side_effect=[_conflict(), _conflict(), last])

        with pytest.raises(ConflictRetryExhaustedError) as excinfo:
            ConflictRetryExecutor().run(operation, "record progress")

        assert operation.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.1, 0.2]
        assert excinfo.value.__cause__ is last
        assert excinfo.value.attempts == 3
        assert "record progress" in str(excinfo.value)

    @patch("webeval_core.infrastructure.retry.time.sleep")
    def test_other_errors_are_not_retried(self, mock_sleep):
        operation = MagicMock(side_effect=RecordNotFoundError("Task", "t1"))

        with pytest.raises(RecordNotFoundError):
            ConflictRetryExecutor().run(operation, "op")

        operation.assert_called_once()
        mock_sleep.assert_not_called()

    def test_from_config(self):
        executor = ConflictRetryExecutor.from_config(ConflictRetryConfig(max_attempts=5, base_delay_seconds=0.5))
        assert executor.max_retries == 5
        assert executor.base_delay_seconds == 0.5

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            ConflictRetryExecutor(max_attempts=0).run(lambda: None, "op")
