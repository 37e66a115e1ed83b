"""
Use Cases Layer

Step control, task execution, the evaluation lifecycle and its scheduler.
"""

from webeval_core.use_cases.conflict_retry import (
    ConflictRetryExecutor,
    ConflictRetryExhaustedError,
)
from webeval_core.use_cases.evaluation import (
    EvaluationHandle,
    EvaluationRunner,
    HandleRegistry,
    begin_evaluation,
    create_evaluation,
    finalize_cancelled,
    finalize_completed,
    finalize_failed,
    record_task_progress,
)
from webeval_core.use_cases.reporting import (
    save_task_results,
    summarize_by_category,
    tasks_to_frame,
)
from webeval_core.use_cases.scheduler import EvaluationScheduler
from webeval_core.use_cases.step_control import StepContext, StepController
from webeval_core.use_cases.task_runner import (
    TaskRunner,
    attach_screenshots,
    ensure_run_owner,
    mark_task_started,
    record_task_completed,
    record_task_failed,
)

__all__ = [
    # conflict_retry
    "ConflictRetryExecutor",
    "ConflictRetryExhaustedError",
    # evaluation
    "EvaluationHandle",
    "EvaluationRunner",
    "HandleRegistry",
    "begin_evaluation",
    "create_evaluation",
    "finalize_cancelled",
    "finalize_completed",
    "finalize_failed",
    "record_task_progress",
    # reporting
    "save_task_results",
    "summarize_by_category",
    "tasks_to_frame",
    # scheduler
    "EvaluationScheduler",
    # step_control
    "StepContext",
    "StepController",
    # task_runner
    "TaskRunner",
    "attach_screenshots",
    "ensure_run_owner",
    "mark_task_started",
    "record_task_completed",
    "record_task_failed",
]
