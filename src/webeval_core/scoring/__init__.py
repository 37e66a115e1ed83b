"""
Scoring sub-package

Provides result matching and task / evaluation scoring.
"""

from webeval_core.scoring.scorer import (
    DEFAULT_TASK_MAX_SCORE,
    calculate_overall_score,
    calculate_task_score,
    evaluate_task_result,
)
from webeval_core.scoring.text_scorers import (
    contains_expected,
    normalize_text,
    remove_markdown,
)

__all__ = [
    # policy
    "DEFAULT_TASK_MAX_SCORE",
    "calculate_overall_score",
    "calculate_task_score",
    "evaluate_task_result",
    # text helpers
    "contains_expected",
    "normalize_text",
    "remove_markdown",
]
