"""
Evaluation Execution

Owns the evaluation lifecycle QUEUED -> RUNNING -> {COMPLETED, FAILED, CANCELLED}:
materializes tasks from a benchmark, runs them in order on a bounded worker pool,
aggregates progress, handles cooperative cancellation and finalizes the status.

Each lock scope is a module-level unit-of-work function taking the store. A run
owns its evaluation through the run token issued when it enters RUNNING; every
later write by the run is fenced against that token, so a run that was reaped or
cancelled stops without overwriting the final status.
"""

from __future__ import annotations

import logging
import platform
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from webeval_core.benchmark_loader import BenchmarkCatalog
from webeval_core.domain.constants import (
    EVALUATION_CANCELLED_MESSAGE,
    EVALUATION_COMPLETED_MESSAGE,
    EVALUATION_STARTED_MESSAGE,
)
from webeval_core.domain.entities import Evaluation, EvaluationStatus, EvaluationTask, TaskStatus
from webeval_core.domain.errors import EvaluationError, EvaluationFencedError
from webeval_core.domain.value_objects import (
    EvaluationStatistics,
    EvaluationStatusSnapshot,
    ExecutionContext,
    ExecutionMode,
    ExecutionParameters,
)
from webeval_core.infrastructure.automation.base import AutomationExecutor
from webeval_core.infrastructure.progress import LoggingProgressSink, ProgressSink
from webeval_core.infrastructure.store.base import EvaluationStore, LockMode, RecordNotFoundError
from webeval_core.orchestrator_config import OrchestratorConfig, load_config
from webeval_core.scoring.scorer import calculate_overall_score
from webeval_core.use_cases.conflict_retry import ConflictRetryExecutor
from webeval_core.use_cases.step_control import StepController
from webeval_core.use_cases.task_runner import TaskRunner, ensure_run_owner

logger = logging.getLogger(__name__)


# Execution handles

@dataclass
class EvaluationHandle:
    """Cancellation signal and pooled future of one tracked evaluation"""
    evaluation_id: str
    cancel_event: threading.Event = field(default_factory=threading.Event)
    future: Future | None = None


class HandleRegistry:
    """Lock-guarded map of evaluation id -> EvaluationHandle"""

    def __init__(self):
        self._lock = threading.Lock()
        self._handles: dict[str, EvaluationHandle] = {}

    def register_if_absent(self, evaluation_id: str) -> tuple[EvaluationHandle, bool]:
        """Return (handle, created)"""
        with self._lock:
            handle = self._handles.get(evaluation_id)
            if handle is not None:
                return handle, False
            handle = EvaluationHandle(evaluation_id)
            self._handles[evaluation_id] = handle
            return handle, True

    def ensure(self, evaluation_id: str) -> EvaluationHandle:
        return self.register_if_absent(evaluation_id)[0]

    def get(self, evaluation_id: str) -> EvaluationHandle | None:
        with self._lock:
            return self._handles.get(evaluation_id)

    def remove(self, evaluation_id: str, handle: EvaluationHandle | None = None) -> EvaluationHandle | None:
        """Remove the handle (only if it is `handle`, when given)"""
        with self._lock:
            current = self._handles.get(evaluation_id)
            if current is None or (handle is not None and current is not handle):
                return None
            return self._handles.pop(evaluation_id)

    def __contains__(self, evaluation_id: str) -> bool:
        with self._lock:
            return evaluation_id in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)


# Units of work

def create_evaluation(store: EvaluationStore, evaluation: Evaluation, tasks: list[EvaluationTask]) -> None:
    with store.unit_of_work() as uow:
        uow.add_evaluation(evaluation)
        for task in tasks:
            uow.add_task(task)


def begin_evaluation(
    store: EvaluationStore,
    evaluation_id: str,
    run_token: str,
    now: datetime,
) -> tuple[Evaluation, list[EvaluationTask]]:
    """
    QUEUED -> RUNNING under a fresh run token

    Raises:
        RecordNotFoundError: If the evaluation does not exist
        EvaluationFencedError: If the evaluation is no longer QUEUED
        EvaluationError: If the evaluation has no tasks
    """
    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id, lock=LockMode.EXCLUSIVE)
        if evaluation.status != EvaluationStatus.QUEUED:
            raise EvaluationFencedError(evaluation_id, f"cannot start from {evaluation.status.value}")
        tasks = uow.list_tasks(evaluation_id)
        if not tasks:
            raise EvaluationError(f"No tasks found for evaluation: {evaluation_id}")
        evaluation.mark_started(now, run_token)
        uow.save_evaluation(evaluation)
    return evaluation, tasks


def record_task_progress(store: EvaluationStore, evaluation_id: str, run_token: str, success: bool) -> Evaluation:
    """Count one finished task on the evaluation row"""
    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id, lock=LockMode.EXCLUSIVE)
        ensure_run_owner(evaluation, run_token)
        evaluation.record_task_outcome(success)
        uow.save_evaluation(evaluation)
    return evaluation


def finalize_completed(store: EvaluationStore, evaluation_id: str, run_token: str, now: datetime) -> Evaluation:
    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id, lock=LockMode.EXCLUSIVE)
        ensure_run_owner(evaluation, run_token)
        overall_score, max_possible_score = calculate_overall_score(uow.list_tasks(evaluation_id))
        evaluation.mark_completed(now, overall_score, max_possible_score)
        uow.save_evaluation(evaluation)
    return evaluation


def _claim_for_finalization(evaluation: Evaluation, run_token: str | None) -> bool:
    # With a token the run must still own the evaluation; without one any
    # non-terminal evaluation may be finalized.
    if run_token is not None:
        ensure_run_owner(evaluation, run_token)
        return True
    return not evaluation.status.is_terminal


def finalize_cancelled(
    store: EvaluationStore,
    evaluation_id: str,
    now: datetime,
    run_token: str | None = None,
) -> Evaluation | None:
    """Finalize as CANCELLED, leaving unfinished tasks untouched; None if already terminal"""
    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id, lock=LockMode.EXCLUSIVE)
        if not _claim_for_finalization(evaluation, run_token):
            return None
        evaluation.mark_cancelled(now)
        uow.save_evaluation(evaluation)
    return evaluation


def finalize_failed(
    store: EvaluationStore,
    evaluation_id: str,
    message: str,
    now: datetime,
    run_token: str | None = None,
) -> Evaluation | None:
    """
    Finalize as FAILED; None if already terminal

    Unfinished tasks are failed as aborted so the counters cover every task.
    """
    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id, lock=LockMode.EXCLUSIVE)
        if not _claim_for_finalization(evaluation, run_token):
            return None
        tasks = []
        for listed in uow.list_tasks(evaluation_id):
            task = listed
            if not listed.status.is_terminal:
                task = uow.require_task(listed.task_id, lock=LockMode.EXCLUSIVE)
                if not task.status.is_terminal:
                    task.mark_failed(f"Evaluation aborted: {message}", now)
                    uow.save_task(task)
            tasks.append(task)
        evaluation.recount(tasks)
        evaluation.mark_failed(message, now)
        uow.save_evaluation(evaluation)
    return evaluation


def _environment_info(now: datetime) -> dict:
    return {
        "python": platform.python_version(),
        "os": f"{platform.system()} {platform.release()}".strip(),
        "machine": platform.machine(),
        "captured_at": now.isoformat(),
    }


def _message_of(error: BaseException) -> str:
    return str(error) or type(error).__name__


class EvaluationRunner:
    """Starts, runs, cancels and reports on evaluations"""

    def __init__(
        self,
        store: EvaluationStore,
        catalog: BenchmarkCatalog,
        executor: AutomationExecutor,
        config: OrchestratorConfig | None = None,
        progress_sink: ProgressSink | None = None,
        step_controller: StepController | None = None,
        conflict_retry: ConflictRetryExecutor | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or load_config()
        self.store = store
        self.catalog = catalog
        self.progress_sink = progress_sink or LoggingProgressSink()
        self.conflict_retry = conflict_retry or ConflictRetryExecutor.from_config(self.config.conflict_retry)
        self.step_controller = step_controller or StepController(clock=clock)
        self.task_runner = TaskRunner(store, executor, self.step_controller, self.conflict_retry, clock)
        self.handles = HandleRegistry()
        self._clock = clock
        self._pool = ThreadPoolExecutor(
            max_workers=self.config.execution.max_workers,
            thread_name_prefix="evaluation",
        )

    # Creation

    def _default_parameters(self) -> ExecutionParameters:
        execution = self.config.execution
        return ExecutionParameters(
            max_steps=execution.default_max_steps,
            execution_mode=ExecutionMode(execution.default_execution_mode.upper()),
            allow_early_completion=execution.allow_early_completion,
            early_completion_threshold=execution.early_completion_threshold,
        )

    def _task_parameters(self, template_overrides: dict | None, configuration: dict) -> ExecutionParameters:
        # engine defaults < benchmark template < evaluation configuration
        params = ExecutionParameters.from_dict(template_overrides, defaults=self._default_parameters())
        params = ExecutionParameters.from_dict(configuration.get("execution_parameters"), defaults=params)
        params.validate()
        return params

    def start(
        self,
        model_name: str,
        model_provider: str,
        benchmark_name: str,
        initiated_by: str | None = None,
        configuration: dict | None = None,
    ) -> str:
        """
        Create a QUEUED evaluation with its tasks and submit it for execution

        Args:
            model_name: Model under evaluation
            model_provider: Provider of the model
            benchmark_name: Benchmark in the catalog
            initiated_by: User who requested the evaluation
            configuration: Free-form configuration; "execution_parameters" overrides
                the step control parameters of every task

        Returns:
            The new evaluation id

        Raises:
            UnknownBenchmarkError: If the benchmark is not in the catalog
            EvaluationError: If the benchmark has no tasks
            ValueError: If the execution parameters are invalid
        """
        configuration = dict(configuration or {})
        templates = self.catalog.tasks_for(benchmark_name)
        if not templates:
            raise EvaluationError(f"No tasks found for benchmark: {benchmark_name}")

        now = self._clock()
        evaluation_id = str(uuid.uuid4())
        evaluation = Evaluation(
            evaluation_id=evaluation_id,
            model_name=model_name,
            model_provider=model_provider,
            benchmark_name=benchmark_name,
            benchmark_version=self.catalog.version_of(benchmark_name),
            created_at=now,
            initiated_by=initiated_by,
            total_tasks=len(templates),
            configuration=configuration,
            environment_info=_environment_info(now),
        )
        tasks = [
            EvaluationTask(
                task_id=str(uuid.uuid4()),
                evaluation_id=evaluation_id,
                task_name=template.name,
                prompt=template.prompt,
                execution_order=order,
                created_at=now,
                description=template.description,
                expected_result=template.expected_result,
                evaluation_criteria=template.evaluation_criteria,
                max_score=template.max_score,
                category=template.category,
                difficulty=template.difficulty,
                tags=list(template.tags),
                timeout_seconds=template.timeout_seconds,
                execution_parameters=self._task_parameters(template.execution_parameters, configuration),
            )
            for order, template in enumerate(templates, 1)
        ]

        self.conflict_retry.run(lambda: create_evaluation(self.store, evaluation, tasks), f"create evaluation {evaluation_id}")
        logger.info(
            "Created evaluation %s: model=%s provider=%s benchmark=%s (%d tasks)",
            evaluation_id, model_name, model_provider, benchmark_name, len(tasks),
        )
        self.submit(evaluation_id)
        return evaluation_id

    # Execution

    def submit(self, evaluation_id: str) -> bool:
        """Track the evaluation and run it on the worker pool; False if already tracked"""
        handle, created = self.handles.register_if_absent(evaluation_id)
        if not created:
            logger.debug("Evaluation %s is already tracked", evaluation_id)
            return False
        try:
            handle.future = self._pool.submit(self.run, evaluation_id)
        except Exception:
            self.handles.remove(evaluation_id, handle)
            raise
        logger.info("Submitted evaluation %s", evaluation_id)
        return True

    def run(self, evaluation_id: str) -> None:
        """Execute an evaluation to a terminal state (never raises)"""
        handle = self.handles.ensure(evaluation_id)
        owner_token: str | None = None
        try:
            if handle.cancel_event.is_set():
                self._cancel(evaluation_id, None)
                return

            run_token = uuid.uuid4().hex
            evaluation, tasks = self.conflict_retry.run(
                lambda: begin_evaluation(self.store, evaluation_id, run_token, self._clock()),
                f"begin evaluation {evaluation_id}",
            )
            owner_token = run_token
            logger.info("Evaluation %s started (%d tasks)", evaluation_id, len(tasks))
            self._publish(evaluation, EVALUATION_STARTED_MESSAGE)
            self._execute_tasks(evaluation, tasks, handle, run_token)
        except EvaluationFencedError as e:
            logger.warning("Evaluation %s stopped without writing: %s", evaluation_id, e.reason)
        except Exception as e:
            logger.error("Evaluation %s failed: %s", evaluation_id, _message_of(e), exc_info=True)
            self._fail(evaluation_id, _message_of(e), owner_token)
        finally:
            self.handles.remove(evaluation_id, handle)

    def _execute_tasks(
        self,
        evaluation: Evaluation,
        tasks: list[EvaluationTask],
        handle: EvaluationHandle,
        run_token: str,
    ) -> None:
        evaluation_id = evaluation.evaluation_id
        for task in tasks:
            if task.status != TaskStatus.PENDING:
                continue
            if handle.cancel_event.is_set():
                self._cancel(evaluation_id, run_token)
                return

            context = ExecutionContext(
                evaluation_id=evaluation_id,
                task_id=task.task_id,
                session_id=f"evaluation-{evaluation_id}",
                user_id=evaluation.initiated_by,
                model_name=evaluation.model_name,
                model_provider=evaluation.model_provider,
            )
            success = self.task_runner.execute(task.task_id, evaluation_id, context, run_token)
            evaluation = self.conflict_retry.run(
                lambda: record_task_progress(self.store, evaluation_id, run_token, success),
                f"record progress of evaluation {evaluation_id}",
            )
            outcome = "succeeded" if success else "failed"
            self._publish(
                evaluation,
                f"Task {task.execution_order}/{evaluation.total_tasks} {outcome}: {task.task_name}",
            )

        evaluation = self.conflict_retry.run(
            lambda: finalize_completed(self.store, evaluation_id, run_token, self._clock()),
            f"complete evaluation {evaluation_id}",
        )
        logger.info(
            "Evaluation %s completed: %d/%d tasks successful, score %.2f/%.2f",
            evaluation_id, evaluation.successful_tasks, evaluation.total_tasks,
            evaluation.overall_score, evaluation.max_possible_score,
        )
        self._publish(evaluation, EVALUATION_COMPLETED_MESSAGE)

    def _cancel(self, evaluation_id: str, run_token: str | None) -> None:
        evaluation = self.conflict_retry.run(
            lambda: finalize_cancelled(self.store, evaluation_id, self._clock(), run_token),
            f"cancel evaluation {evaluation_id}",
        )
        if evaluation is not None:
            logger.info("Evaluation %s cancelled after %d/%d tasks",
                        evaluation_id, evaluation.completed_tasks, evaluation.total_tasks)
            self._publish(evaluation, EVALUATION_CANCELLED_MESSAGE)

    def _fail(self, evaluation_id: str, message: str, run_token: str | None) -> bool:
        try:
            evaluation = self.conflict_retry.run(
                lambda: finalize_failed(self.store, evaluation_id, message, self._clock(), run_token),
                f"fail evaluation {evaluation_id}",
            )
        except EvaluationFencedError as e:
            logger.warning("Evaluation %s not marked failed: %s", evaluation_id, e.reason)
            return False
        except Exception:
            logger.exception("Could not record failure of evaluation %s", evaluation_id)
            return False
        if evaluation is None:
            return False
        self._publish(evaluation, f"Evaluation failed: {message}")
        return True

    def fail(self, evaluation_id: str, message: str) -> bool:
        """Finalize a non-terminal evaluation as FAILED from outside its run"""
        return self._fail(evaluation_id, message, None)

    # Control

    def cancel(self, evaluation_id: str) -> None:
        """
        Request cancellation

        A running evaluation stops at the next task boundary. One that never
        started (or has no tracked execution) is finalized CANCELLED right away.

        Raises:
            RecordNotFoundError: If the evaluation does not exist and is not tracked
        """
        handle = self.handles.get(evaluation_id)
        if handle is not None:
            handle.cancel_event.set()
            if handle.future is None or not handle.future.cancel():
                logger.info("Cancellation requested for evaluation %s", evaluation_id)
                return
            self.handles.remove(evaluation_id, handle)
        self._cancel(evaluation_id, None)

    def abandon(self, evaluation_id: str) -> None:
        """Stop tracking an evaluation, telling its execution to stop"""
        handle = self.handles.remove(evaluation_id)
        if handle is None:
            return
        handle.cancel_event.set()
        if handle.future is not None:
            handle.future.cancel()
        logger.info("Abandoned execution of evaluation %s", evaluation_id)

    def is_tracked(self, evaluation_id: str) -> bool:
        return evaluation_id in self.handles

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    # Queries

    def _snapshot(self, evaluation: Evaluation, message: str = "") -> EvaluationStatusSnapshot:
        return EvaluationStatusSnapshot(
            evaluation_id=evaluation.evaluation_id,
            status=evaluation.status.value,
            progress_percent=evaluation.progress_percent,
            completed_tasks=evaluation.completed_tasks,
            total_tasks=evaluation.total_tasks,
            successful_tasks=evaluation.successful_tasks,
            model_name=evaluation.model_name,
            benchmark_name=evaluation.benchmark_name,
            message=message or evaluation.error_message or "",
            timestamp=self._clock().isoformat(),
        )

    def _publish(self, evaluation: Evaluation, message: str) -> None:
        try:
            self.progress_sink.publish(evaluation.evaluation_id, self._snapshot(evaluation, message))
        except Exception:
            logger.warning("Progress sink failed for evaluation %s", evaluation.evaluation_id, exc_info=True)

    def get_status(self, evaluation_id: str) -> EvaluationStatusSnapshot:
        """
        Raises:
            RecordNotFoundError: If the evaluation does not exist
        """
        with self.store.unit_of_work() as uow:
            evaluation = uow.get_evaluation(evaluation_id)
        if evaluation is None:
            raise RecordNotFoundError("Evaluation", evaluation_id)
        return self._snapshot(evaluation)

    def get_statistics(self, now: datetime | None = None) -> EvaluationStatistics:
        now = now or self._clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        with self.store.unit_of_work() as uow:
            evaluations = uow.list_evaluations()

        def finished_today(status: EvaluationStatus) -> int:
            return sum(
                1 for e in evaluations
                if e.status == status and e.completed_at is not None and e.completed_at >= start_of_day
            )

        scores = [
            e.overall_score for e in evaluations
            if e.status == EvaluationStatus.COMPLETED and e.overall_score is not None
        ]
        return EvaluationStatistics(
            running_count=len(self.handles),
            queued_count=sum(1 for e in evaluations if e.status == EvaluationStatus.QUEUED),
            completed_today=finished_today(EvaluationStatus.COMPLETED),
            failed_today=finished_today(EvaluationStatus.FAILED),
            average_score=sum(scores) / len(scores) if scores else 0.0,
            total_evaluations=len(evaluations),
        )
