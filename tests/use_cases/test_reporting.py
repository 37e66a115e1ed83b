"""
Reporting tests: task frames, category summaries and CSV output
"""

import pandas as pd
import pytest

from webeval_core.domain.entities import Evaluation, EvaluationTask, TaskStatus
from webeval_core.use_cases.reporting import (
    TASK_COLUMNS,
    save_task_results,
    summarize_by_category,
    tasks_to_frame,
)


@pytest.fixture
def evaluation(clock):
    return Evaluation("e1", "model-a", "anthropic", "demo", created_at=clock(), total_tasks=3)


def _task(clock, order, category, success, steps, score):
    task = EvaluationTask(
        task_id=f"t{order}",
        evaluation_id="e1",
        task_name=f"task_{order}",
        prompt=f"prompt {order}",
        execution_order=order,
        created_at=clock(),
        category=category,
        max_score=1.0,
    )
    task.status = TaskStatus.COMPLETED if success else TaskStatus.FAILED
    task.success = success
    task.score = score
    task.steps_completed = steps
    return task


@pytest.fixture
def tasks(clock):
    return [
        _task(clock, 3, "", False, None, 0.0),
        _task(clock, 1, "lookup", True, 2, 1.0),
        _task(clock, 2, "lookup", False, 4, 0.0),
    ]


class TestTasksToFrame:
    def test_rows_ordered_by_execution_order(self, evaluation, tasks):
        df = tasks_to_frame(evaluation, tasks)

        assert list(df.columns) == TASK_COLUMNS
        assert df["execution_order"].tolist() == [1, 2, 3]
        assert df["task_name"].tolist() == ["task_1", "task_2", "task_3"]
        assert set(df["model_name"]) == {"model-a"}
        assert df["execution_mode"].iloc[0] == "MULTI_STEP"
        assert df["status"].tolist() == ["COMPLETED", "FAILED", "FAILED"]

    def test_empty(self, evaluation):
        df = tasks_to_frame(evaluation, [])
        assert df.empty
        assert list(df.columns) == TASK_COLUMNS


class TestSummarizeByCategory:
    def test_aggregates_per_category(self, evaluation, tasks):
        summary = summarize_by_category(tasks_to_frame(evaluation, tasks))

        assert summary["category"].tolist() == ["lookup", "uncategorized"]
        lookup = summary.iloc[0]
        assert lookup["tasks"] == 2
        assert lookup["successful"] == 1
        assert lookup["success_rate"] == pytest.approx(0.5)
        assert lookup["mean_score"] == pytest.approx(0.5)
        assert lookup["mean_steps"] == pytest.approx(3.0)
        assert summary.iloc[1]["tasks"] == 1

    def test_empty_frame(self):
        summary = summarize_by_category(pd.DataFrame(columns=TASK_COLUMNS))
        assert summary.empty
        assert "success_rate" in summary.columns


class TestSaveTaskResults:
    def test_writes_csv(self, evaluation, tasks, tmp_path):
        df = tasks_to_frame(evaluation, tasks)

        path = save_task_results(df, tmp_path / "out", "e1")

        assert path == tmp_path / "out" / "tasks_e1.csv"
        loaded = pd.read_csv(path)
        assert loaded["task_name"].tolist() == ["task_1", "task_2", "task_3"]
