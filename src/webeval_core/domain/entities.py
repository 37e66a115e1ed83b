"""
Domain Entities

Defines the evaluation and task records and their lifecycle transitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from webeval_core.domain.constants import DEFAULT_TASK_MAX_RETRIES, DEFAULT_TASK_TIMEOUT_SECONDS
from webeval_core.domain.value_objects import ExecutionParameters


class EvaluationStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (EvaluationStatus.COMPLETED, EvaluationStatus.FAILED, EvaluationStatus.CANCELLED)


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


def _seconds_between(start: datetime | None, end: datetime | None) -> int | None:
    if start is None or end is None:
        return None
    return int((end - start).total_seconds())


@dataclass
class Evaluation:
    """One benchmark run of one model configuration"""
    evaluation_id: str
    model_name: str
    model_provider: str
    benchmark_name: str
    created_at: datetime
    benchmark_version: str = ""
    status: EvaluationStatus = EvaluationStatus.QUEUED
    initiated_by: str | None = None
    total_tasks: int = 0
    completed_tasks: int = 0
    successful_tasks: int = 0
    failed_tasks: int = 0
    progress_percent: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    overall_score: float | None = None
    max_possible_score: float | None = None
    error_message: str | None = None
    configuration: dict = field(default_factory=dict)
    environment_info: dict = field(default_factory=dict)
    run_token: str | None = None
    version: int = 0

    @property
    def success_rate(self) -> float:
        return (self.successful_tasks * 100.0) / self.total_tasks if self.total_tasks else 0.0

    @property
    def duration_seconds(self) -> int | None:
        return _seconds_between(self.started_at, self.completed_at)

    def mark_started(self, now: datetime, run_token: str) -> None:
        self.status = EvaluationStatus.RUNNING
        if self.started_at is None:
            self.started_at = now
        self.run_token = run_token

    def record_task_outcome(self, success: bool) -> None:
        """Count one finished task and recompute the progress percentage"""
        if self.completed_tasks >= self.total_tasks:
            raise ValueError(
                f"Evaluation {self.evaluation_id} already has {self.completed_tasks}/{self.total_tasks} tasks completed"
            )
        self.completed_tasks += 1
        if success:
            self.successful_tasks += 1
        else:
            self.failed_tasks += 1
        self._recompute_progress()

    def _recompute_progress(self) -> None:
        self.progress_percent = (self.completed_tasks * 100) // self.total_tasks if self.total_tasks else 0

    def mark_completed(self, now: datetime, overall_score: float, max_possible_score: float) -> None:
        self.status = EvaluationStatus.COMPLETED
        self.completed_at = now
        self.overall_score = overall_score
        self.max_possible_score = max_possible_score
        self._recompute_progress()

    def recount(self, tasks: list["EvaluationTask"]) -> None:
        """Recompute the task counters from the task rows"""
        finished = [t for t in tasks if t.status.is_terminal]
        self.completed_tasks = len(finished)
        self.successful_tasks = sum(1 for t in finished if t.success)
        self.failed_tasks = self.completed_tasks - self.successful_tasks
        self._recompute_progress()

    def mark_failed(self, message: str, now: datetime) -> None:
        self.status = EvaluationStatus.FAILED
        self.error_message = message
        self.completed_at = now

    def mark_cancelled(self, now: datetime) -> None:
        self.status = EvaluationStatus.CANCELLED
        self.completed_at = now


@dataclass
class EvaluationTask:
    """One ordered, scripted interaction within an evaluation"""
    task_id: str
    evaluation_id: str
    task_name: str
    prompt: str
    execution_order: int
    created_at: datetime
    status: TaskStatus = TaskStatus.PENDING
    description: str = ""
    expected_result: str | None = None
    evaluation_criteria: str | None = None
    max_score: float | None = None
    category: str = ""
    difficulty: int | None = None
    tags: list[str] = field(default_factory=list)
    timeout_seconds: int = DEFAULT_TASK_TIMEOUT_SECONDS
    retry_count: int = 0
    max_retries: int = DEFAULT_TASK_MAX_RETRIES
    execution_parameters: ExecutionParameters = field(default_factory=ExecutionParameters)
    actual_result: str | None = None
    success: bool = False
    score: float | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    execution_time_seconds: int | None = None
    steps_completed: int | None = None
    early_completion_triggered: bool | None = None
    screenshots: list[str] = field(default_factory=list)
    version: int = 0

    def mark_started(self, now: datetime) -> None:
        self.status = TaskStatus.RUNNING
        self.started_at = now

    def mark_completed(self, result: str, success: bool, score: float, now: datetime) -> None:
        self.status = TaskStatus.COMPLETED
        self.actual_result = result
        self.success = success
        self.score = score
        self.completed_at = now
        self.execution_time_seconds = _seconds_between(self.started_at, now)

    def mark_failed(self, message: str, now: datetime) -> None:
        self.status = TaskStatus.FAILED
        self.error_message = message
        self.success = False
        self.score = 0.0
        self.completed_at = now
        self.execution_time_seconds = _seconds_between(self.started_at, now)

    def record_steps(self, steps_completed: int, early_completion: bool) -> None:
        self.steps_completed = steps_completed
        self.early_completion_triggered = early_completion
