"""
Domain Layer

Defines constants, entities, value objects and errors that form the core of the
evaluation engine. Has no dependencies on external libraries.
"""

from webeval_core.domain.constants import (
    CONFLICT_BASE_DELAY_SECONDS,
    CONFLICT_MAX_ATTEMPTS,
    EVALUATION_TIMEOUT_MESSAGE,
    EVALUATION_TIMEOUT_SECONDS,
)
from webeval_core.domain.entities import (
    Evaluation,
    EvaluationStatus,
    EvaluationTask,
    TaskStatus,
)
from webeval_core.domain.errors import (
    EvaluationError,
    EvaluationFencedError,
    UnknownBenchmarkError,
    WebEvalError,
)
from webeval_core.domain.value_objects import (
    AutomationResult,
    EvaluationStatistics,
    EvaluationStatusSnapshot,
    ExecutionContext,
    ExecutionMode,
    ExecutionParameters,
    ExecutionStatistics,
    ExecutionSummary,
    StepInfo,
    StepResult,
    StepStatus,
)

__all__ = [
    # constants
    "CONFLICT_BASE_DELAY_SECONDS",
    "CONFLICT_MAX_ATTEMPTS",
    "EVALUATION_TIMEOUT_MESSAGE",
    "EVALUATION_TIMEOUT_SECONDS",
    # entities
    "Evaluation",
    "EvaluationStatus",
    "EvaluationTask",
    "TaskStatus",
    # errors
    "EvaluationError",
    "EvaluationFencedError",
    "UnknownBenchmarkError",
    "WebEvalError",
    # value objects
    "AutomationResult",
    "EvaluationStatistics",
    "EvaluationStatusSnapshot",
    "ExecutionContext",
    "ExecutionMode",
    "ExecutionParameters",
    "ExecutionStatistics",
    "ExecutionSummary",
    "StepInfo",
    "StepResult",
    "StepStatus",
]
