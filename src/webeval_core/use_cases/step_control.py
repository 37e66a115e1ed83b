"""
Step Control

Bounds the interaction steps of a single task execution and decides after each
reported step whether the automation should continue.

Stopping policy (evaluated on every advance_step):
- current_step >= max_steps: stop, reached_limit
- ONE_SHOT: stop after the first step
- MULTI_STEP: stop early when the step's confidence reaches the threshold
- AUTO: stop early when the last min(3, n) steps (n >= 2) all reach the threshold
Early completion requires allow_early_completion. Once a context has stopped,
further steps repeat the stop decision without advancing the counter.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from webeval_core.domain.constants import (
    CONSISTENT_CONFIDENCE_MIN_STEPS,
    CONSISTENT_CONFIDENCE_WINDOW,
)
from webeval_core.domain.value_objects import (
    ExecutionMode,
    ExecutionParameters,
    ExecutionStatistics,
    ExecutionSummary,
    StepInfo,
    StepResult,
    StepStatus,
)
from webeval_core.infrastructure.automation.base import StepReporter

logger = logging.getLogger(__name__)


@dataclass
class StepContext:
    """In-memory step bookkeeping for one task execution"""
    task_id: str
    parameters: ExecutionParameters
    started_at: datetime
    current_step: int = 0
    step_history: list[StepInfo] = field(default_factory=list)
    stop_result: StepResult | None = None

    @property
    def max_steps(self) -> int:
        return self.parameters.max_steps

    @property
    def execution_mode(self) -> ExecutionMode:
        return self.parameters.execution_mode


def has_consistent_high_confidence(history: list[StepInfo], threshold: float) -> bool:
    """Whether the last min(3, len(history)) steps all reach the threshold (needs 2+ steps)"""
    if len(history) < CONSISTENT_CONFIDENCE_MIN_STEPS:
        return False
    window = history[-min(CONSISTENT_CONFIDENCE_WINDOW, len(history)):]
    return all(step.confidence_score >= threshold for step in window)


def should_trigger_early_completion(context: StepContext, confidence: float) -> bool:
    params = context.parameters
    if not params.allow_early_completion:
        return False
    if context.execution_mode == ExecutionMode.AUTO:
        return has_consistent_high_confidence(context.step_history, params.early_completion_threshold)
    return confidence >= params.early_completion_threshold


def should_continue_execution(context: StepContext, confidence: float) -> bool:
    if context.current_step >= context.max_steps:
        return False
    if context.execution_mode == ExecutionMode.ONE_SHOT:
        return context.current_step < 1
    return not should_trigger_early_completion(context, confidence)


class StepController:
    """
    Registry of step contexts keyed by task id

    The registry itself is thread-safe; each task id is expected to have a single
    writer (the worker executing that task).
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._lock = threading.Lock()
        self._contexts: dict[str, StepContext] = {}

    def initialize(self, task_id: str, params: ExecutionParameters) -> str:
        """
        Register a fresh step context for a task

        Raises:
            ValueError: If the parameters are invalid (e.g. max_steps < 1)
        """
        params.validate()
        context = StepContext(task_id=task_id, parameters=params, started_at=self._clock())
        with self._lock:
            self._contexts[task_id] = context
        logger.info(
            "Initialized step control for task %s: mode=%s max_steps=%d",
            task_id, params.execution_mode.value, params.max_steps,
        )
        return task_id

    def advance_step(self, task_id: str, description: str, confidence: float) -> StepResult:
        with self._lock:
            context = self._contexts.get(task_id)
        if context is None:
            logger.warning("No step context found for task %s", task_id)
            return StepResult.error("No step context found")

        if context.stop_result is not None:
            logger.debug("Task %s already stopped at step %d; ignoring step", task_id, context.current_step)
            return context.stop_result

        context.current_step += 1
        context.step_history.append(
            StepInfo(context.current_step, description, confidence, self._clock())
        )
        logger.debug(
            "Step %d/%d for task %s: %s (confidence: %.2f)",
            context.current_step, context.max_steps, task_id, description, confidence,
        )

        should_continue = should_continue_execution(context, confidence)
        reached_limit = context.current_step >= context.max_steps
        result = StepResult(
            current_step=context.current_step,
            max_steps=context.max_steps,
            should_continue=should_continue,
            reached_limit=reached_limit,
            early_completion=not should_continue and not reached_limit,
            confidence_score=confidence,
            step_description=description,
        )

        if not should_continue:
            context.stop_result = result
            if result.early_completion:
                logger.info(
                    "Early completion triggered for task %s at step %d/%d (confidence: %.2f)",
                    task_id, context.current_step, context.max_steps, confidence,
                )
            else:
                logger.info("Reached step limit for task %s at step %d/%d",
                            task_id, context.current_step, context.max_steps)
        return result

    def get_step_status(self, task_id: str) -> StepStatus | None:
        with self._lock:
            context = self._contexts.get(task_id)
        if context is None:
            return None
        return StepStatus(
            current_step=context.current_step,
            max_steps=context.max_steps,
            execution_mode=context.execution_mode,
            step_history=list(context.step_history),
            early_completion_allowed=context.parameters.allow_early_completion,
        )

    def complete(self, task_id: str) -> ExecutionSummary:
        """Remove the task's context and summarize it (empty summary for unknown tasks)"""
        with self._lock:
            context = self._contexts.pop(task_id, None)
        if context is None:
            logger.warning("No step context found for task %s during completion", task_id)
            return ExecutionSummary(0, 0, False, [])

        summary = ExecutionSummary(
            steps_completed=context.current_step,
            max_steps=context.max_steps,
            early_completion=context.current_step < context.max_steps and bool(context.step_history),
            step_history=list(context.step_history),
        )
        logger.info("Completed step control for task %s: %s", task_id, summary)
        return summary

    def get_execution_statistics(self) -> ExecutionStatistics:
        with self._lock:
            modes = [c.execution_mode for c in self._contexts.values()]
        return ExecutionStatistics(
            total_active_tasks=len(modes),
            one_shot_tasks=modes.count(ExecutionMode.ONE_SHOT),
            multi_step_tasks=modes.count(ExecutionMode.MULTI_STEP),
            auto_tasks=modes.count(ExecutionMode.AUTO),
        )

    def reporter(self, task_id: str) -> StepReporter:
        """StepReporter bound to one task, handed to the automation executor"""
        return _TaskStepReporter(self, task_id)


class _TaskStepReporter(StepReporter):

    def __init__(self, controller: StepController, task_id: str):
        self._controller = controller
        self._task_id = task_id

    def advance(self, description: str, confidence: float) -> StepResult:
        return self._controller.advance_step(self._task_id, description, confidence)
