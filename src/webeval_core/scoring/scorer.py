"""
Task result scoring policy

Decides whether an automation result satisfies a task and converts the outcome
into a score. Semantic grading is out of scope: the policy is a normalized
substring match against the task's expected result.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from webeval_core.scoring.text_scorers import contains_expected, normalize_text

if TYPE_CHECKING:
    from webeval_core.domain.entities import EvaluationTask

logger = logging.getLogger(__name__)

DEFAULT_TASK_MAX_SCORE = 1.0


def evaluate_task_result(expected_result: str | None, actual_result: str | None) -> bool:
    """
    Check whether an actual result meets the expected result

    Args:
        expected_result: Expected result (None or blank means "any non-empty result")
        actual_result: Text returned by the automation executor

    Returns:
        True if the task succeeded
    """
    if expected_result is None or not expected_result.strip():
        return bool(normalize_text(actual_result))
    return contains_expected(expected_result, actual_result)


def calculate_task_score(max_score: float | None, success: bool) -> float:
    """Full max score on success (1.0 when the task has none), 0.0 otherwise"""
    if not success:
        return 0.0
    return DEFAULT_TASK_MAX_SCORE if max_score is None else float(max_score)


def calculate_overall_score(tasks: Iterable[EvaluationTask]) -> tuple[float, float]:
    """
    Aggregate task scores into the evaluation score

    Args:
        tasks: Tasks of one evaluation

    Returns:
        Tuple of (sum of task scores, maximum possible score)
    """
    total = 0.0
    max_possible = 0.0
    for task in tasks:
        if task.score is not None:
            total += task.score
        max_possible += DEFAULT_TASK_MAX_SCORE if task.max_score is None else task.max_score
    logger.debug("Overall score %.2f / %.2f", total, max_possible)
    return total, max_possible
