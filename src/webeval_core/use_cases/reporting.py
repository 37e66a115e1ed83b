"""
Result Reporting

Tabulates the tasks of finished evaluations with pandas and writes CSV results.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from webeval_core.domain.entities import Evaluation, EvaluationTask

TASK_COLUMNS = [
    "evaluation_id",
    "model_name",
    "model_provider",
    "benchmark_name",
    "execution_order",
    "task_name",
    "category",
    "difficulty",
    "execution_mode",
    "status",
    "success",
    "score",
    "max_score",
    "steps_completed",
    "max_steps",
    "early_completion_triggered",
    "execution_time_seconds",
    "error_message",
]


def tasks_to_frame(evaluation: Evaluation, tasks: list[EvaluationTask]) -> pd.DataFrame:
    """
    One row per task, ordered by execution order

    Args:
        evaluation: Owning evaluation (model and benchmark columns)
        tasks: Its tasks

    Returns:
        pd.DataFrame with TASK_COLUMNS
    """
    rows = [
        {
            "evaluation_id": evaluation.evaluation_id,
            "model_name": evaluation.model_name,
            "model_provider": evaluation.model_provider,
            "benchmark_name": evaluation.benchmark_name,
            "execution_order": task.execution_order,
            "task_name": task.task_name,
            "category": task.category,
            "difficulty": task.difficulty,
            "execution_mode": task.execution_parameters.execution_mode.value,
            "status": task.status.value,
            "success": task.success,
            "score": task.score,
            "max_score": task.max_score,
            "steps_completed": task.steps_completed,
            "max_steps": task.execution_parameters.max_steps,
            "early_completion_triggered": task.early_completion_triggered,
            "execution_time_seconds": task.execution_time_seconds,
            "error_message": task.error_message,
        }
        for task in sorted(tasks, key=lambda t: t.execution_order)
    ]
    return pd.DataFrame(rows, columns=TASK_COLUMNS)


def summarize_by_category(df: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate a task frame per category

    Returns:
        pd.DataFrame with category, tasks, successful, success_rate, mean_score, mean_steps
    """
    columns = ["category", "tasks", "successful", "success_rate", "mean_score", "mean_steps"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    frame = df.assign(
        category=df["category"].replace("", "uncategorized").fillna("uncategorized"),
        success=df["success"].astype(bool),
        score=pd.to_numeric(df["score"], errors="coerce").fillna(0.0),
        steps_completed=pd.to_numeric(df["steps_completed"], errors="coerce"),
    )
    summary = (
        frame.groupby("category", sort=True)
        .agg(
            tasks=("task_name", "count"),
            successful=("success", "sum"),
            mean_score=("score", "mean"),
            mean_steps=("steps_completed", "mean"),
        )
        .reset_index()
    )
    summary["successful"] = summary["successful"].astype(int)
    summary["success_rate"] = summary["successful"] / summary["tasks"]
    return summary[columns]


def save_task_results(df: pd.DataFrame, output_dir: str | Path, evaluation_id: str) -> Path:
    """Write the task frame to <output_dir>/tasks_<evaluation_id>.csv"""
    output = Path(output_dir)
    output.mkdir(parents=True, exist_ok=True)
    path = output / f"tasks_{evaluation_id}.csv"
    df.to_csv(path, index=False)
    return path
