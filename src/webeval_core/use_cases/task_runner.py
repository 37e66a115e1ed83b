"""
Task Execution

Executes one task to a terminal state: marks it RUNNING, hands it to the
automation executor under step control, scores the result and records the
outcome. Each store interaction is its own unit of work, and no row lock is
held while the executor runs.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from webeval_core.domain.entities import Evaluation, EvaluationStatus, EvaluationTask, TaskStatus
from webeval_core.domain.errors import EvaluationFencedError
from webeval_core.domain.value_objects import AutomationResult, ExecutionContext, ExecutionSummary
from webeval_core.infrastructure.automation.base import AutomationExecutor
from webeval_core.infrastructure.store.base import EvaluationStore, LockMode
from webeval_core.scoring.scorer import calculate_task_score, evaluate_task_result
from webeval_core.use_cases.conflict_retry import ConflictRetryExecutor
from webeval_core.use_cases.step_control import StepController

logger = logging.getLogger(__name__)


def ensure_run_owner(evaluation: Evaluation, run_token: str | None) -> None:
    """
    Check that a run still owns its evaluation

    A run owns the evaluation while it is RUNNING under the run's token. Without
    a token (direct task execution) no ownership is checked.

    Raises:
        EvaluationFencedError: If the evaluation was finalized or taken over
    """
    if run_token is None:
        return
    if evaluation.status != EvaluationStatus.RUNNING:
        raise EvaluationFencedError(evaluation.evaluation_id, f"status is {evaluation.status.value}")
    if evaluation.run_token != run_token:
        raise EvaluationFencedError(evaluation.evaluation_id, "run token superseded")


def mark_task_started(
    store: EvaluationStore,
    task_id: str,
    evaluation_id: str,
    run_token: str | None,
    now: datetime,
) -> tuple[EvaluationTask, Evaluation]:
    """
    Unit of work: PENDING -> RUNNING; returns the task and its evaluation

    Raises:
        EvaluationFencedError: If the task already ran (it is not PENDING)
    """
    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id, lock=LockMode.SHARED)
        ensure_run_owner(evaluation, run_token)
        task = uow.require_task(task_id, lock=LockMode.EXCLUSIVE)
        if task.status != TaskStatus.PENDING:
            raise EvaluationFencedError(evaluation_id, f"task {task_id} is {task.status.value}, not PENDING")
        task.mark_started(now)
        uow.save_task(task)
    return task, evaluation


def _finish_task(
    store: EvaluationStore,
    task_id: str,
    evaluation_id: str,
    run_token: str | None,
    apply: Callable[[EvaluationTask], None],
) -> None:
    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id, lock=LockMode.SHARED)
        ensure_run_owner(evaluation, run_token)
        task = uow.require_task(task_id, lock=LockMode.EXCLUSIVE)
        if task.status != TaskStatus.RUNNING:
            logger.warning("Dropping late result for task %s (status %s)", task_id, task.status.value)
            raise EvaluationFencedError(evaluation_id, f"task {task_id} finalized elsewhere")
        apply(task)
        uow.save_task(task)


def record_task_completed(
    store: EvaluationStore,
    task_id: str,
    evaluation_id: str,
    run_token: str | None,
    result_text: str,
    success: bool,
    score: float,
    summary: ExecutionSummary,
    now: datetime,
) -> None:
    """Unit of work: RUNNING -> COMPLETED with result, score and step summary"""
    def apply(task: EvaluationTask) -> None:
        task.mark_completed(result_text, success, score, now)
        task.record_steps(summary.steps_completed, summary.early_completion)

    _finish_task(store, task_id, evaluation_id, run_token, apply)


def record_task_failed(
    store: EvaluationStore,
    task_id: str,
    evaluation_id: str,
    run_token: str | None,
    message: str,
    summary: ExecutionSummary,
    now: datetime,
) -> None:
    """Unit of work: RUNNING -> FAILED with the error message"""
    def apply(task: EvaluationTask) -> None:
        task.mark_failed(message, now)
        task.record_steps(summary.steps_completed, summary.early_completion)

    _finish_task(store, task_id, evaluation_id, run_token, apply)


def attach_screenshots(store: EvaluationStore, task_id: str, screenshot_refs: list[str]) -> None:
    """Unit of work: append artifact references to a finished task"""
    with store.unit_of_work() as uow:
        task = uow.require_task(task_id, lock=LockMode.EXCLUSIVE)
        task.screenshots.extend(screenshot_refs)
        uow.save_task(task)


class TaskRunner:
    """Runs single tasks against an automation executor"""

    def __init__(
        self,
        store: EvaluationStore,
        executor: AutomationExecutor,
        step_controller: StepController | None = None,
        conflict_retry: ConflictRetryExecutor | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.executor = executor
        self.step_controller = step_controller or StepController(clock=clock)
        self.conflict_retry = conflict_retry or ConflictRetryExecutor()
        self._clock = clock

    def execute(
        self,
        task_id: str,
        evaluation_id: str,
        context: ExecutionContext,
        run_token: str | None = None,
    ) -> bool:
        """
        Execute one task to a terminal state

        Args:
            task_id: Task to execute
            evaluation_id: Owning evaluation
            context: Correlation identifiers passed to the executor
            run_token: Token of the owning run; writes are fenced against it

        Returns:
            True if the task completed and its result matched the expectation

        Raises:
            RecordNotFoundError: If the task or evaluation does not exist
            EvaluationFencedError: If the run lost ownership of the evaluation or the
                task is not PENDING
        """
        task, _ = self.conflict_retry.run(
            lambda: mark_task_started(self.store, task_id, evaluation_id, run_token, self._clock()),
            f"start task {task_id}",
        )
        logger.info("Task %s (%d) started: %s", task_id, task.execution_order, task.task_name)

        result: AutomationResult | None = None
        error: Exception | None = None
        try:
            self.step_controller.initialize(task_id, task.execution_parameters)
            result = self.executor.execute(
                task.prompt,
                task.execution_parameters,
                context,
                self.step_controller.reporter(task_id),
            )
        except Exception as e:
            error = e
        finally:
            summary = self.step_controller.complete(task_id)

        if error is not None:
            message = str(error) or type(error).__name__
            logger.warning("Task %s failed: %s", task_id, message)
            self.conflict_retry.run(
                lambda: record_task_failed(
                    self.store, task_id, evaluation_id, run_token, message, summary, self._clock()
                ),
                f"fail task {task_id}",
            )
            return False

        success = evaluate_task_result(task.expected_result, result.text_result)
        score = calculate_task_score(task.max_score, success)
        self.conflict_retry.run(
            lambda: record_task_completed(
                self.store, task_id, evaluation_id, run_token,
                result.text_result, success, score, summary, self._clock(),
            ),
            f"complete task {task_id}",
        )
        logger.info(
            "Task %s completed: success=%s score=%.2f steps=%d",
            task_id, success, score, summary.steps_completed,
        )

        if result.screenshot_refs:
            # The task is already committed COMPLETED; attachment errors stay with the task
            try:
                self.conflict_retry.run(
                    lambda: attach_screenshots(self.store, task_id, list(result.screenshot_refs)),
                    f"attach screenshots to task {task_id}",
                )
            except Exception:
                logger.warning(
                    "Could not attach %d screenshots to task %s",
                    len(result.screenshot_refs), task_id, exc_info=True,
                )
        return success
