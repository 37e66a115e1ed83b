"""
InMemoryEvaluationStore tests

Unit-of-work commit/rollback, optimistic versions, row locks, and the
conflict-then-retry race on a single evaluation row.
"""

import threading
from datetime import datetime

import pytest
from unittest.mock import patch

from webeval_core.domain.entities import Evaluation, EvaluationStatus, EvaluationTask
from webeval_core.infrastructure.store.base import (
    ConflictError,
    LockMode,
    LockTimeoutError,
    RecordNotFoundError,
    StoreError,
)
from webeval_core.infrastructure.store.memory import InMemoryEvaluationStore
from webeval_core.use_cases.conflict_retry import ConflictRetryExecutor

NOW = datetime(2026, 3, 14, 10, 0, 0)


def _evaluation(evaluation_id="eval-1", total_tasks=2, created_at=NOW):
    return Evaluation(
        evaluation_id=evaluation_id,
        model_name="m",
        model_provider="anthropic",
        benchmark_name="demo",
        created_at=created_at,
        total_tasks=total_tasks,
    )


def _task(order, evaluation_id="eval-1"):
    return EvaluationTask(
        task_id=f"{evaluation_id}-task-{order}",
        evaluation_id=evaluation_id,
        task_name=f"task {order}",
        prompt="p",
        execution_order=order,
        created_at=NOW,
    )


@pytest.fixture
def store():
    store = InMemoryEvaluationStore(lock_timeout_seconds=0.2)
    with store.unit_of_work() as uow:
        uow.add_evaluation(_evaluation())
        for order in (2, 1):
            uow.add_task(_task(order))
    return store


class TestUnitOfWork:
    def test_reads_are_copies(self, store):
        with store.unit_of_work() as uow:
            evaluation = uow.get_evaluation("eval-1")
            evaluation.model_name = "changed"

        with store.unit_of_work() as uow:
            assert uow.get_evaluation("eval-1").model_name == "m"

    def test_missing_records(self, store):
        with store.unit_of_work() as uow:
            assert uow.get_evaluation("nope") is None
            assert uow.get_task("nope") is None
            with pytest.raises(RecordNotFoundError, match="Evaluation not found: nope"):
                uow.require_evaluation("nope")

    def test_commit_increments_version(self, store):
        with store.unit_of_work() as uow:
            evaluation = uow.get_evaluation("eval-1")
            evaluation.completed_tasks = 1
            uow.save_evaluation(evaluation)
        assert evaluation.version == 1

        with store.unit_of_work() as uow:
            stored = uow.get_evaluation("eval-1")
        assert stored.version == 1
        assert stored.completed_tasks == 1

    def test_stale_write_raises_conflict(self, store):
        with store.unit_of_work() as uow:
            stale = uow.get_evaluation("eval-1")

        with store.unit_of_work() as uow:
            fresh = uow.get_evaluation("eval-1")
            uow.save_evaluation(fresh)

        with pytest.raises(ConflictError) as exc_info:
            with store.unit_of_work() as uow:
                uow.save_evaluation(stale)
        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1

    def test_exception_rolls_back(self, store):
        with pytest.raises(RuntimeError):
            with store.unit_of_work() as uow:
                evaluation = uow.get_evaluation("eval-1")
                evaluation.status = EvaluationStatus.RUNNING
                uow.save_evaluation(evaluation)
                raise RuntimeError("boom")

        with store.unit_of_work() as uow:
            assert uow.get_evaluation("eval-1").status == EvaluationStatus.QUEUED

    def test_read_your_writes(self, store):
        with store.unit_of_work() as uow:
            evaluation = uow.get_evaluation("eval-1")
            evaluation.progress_percent = 50
            uow.save_evaluation(evaluation)
            assert uow.get_evaluation("eval-1").progress_percent == 50
            uow.add_evaluation(_evaluation("eval-2"))
            assert [e.evaluation_id for e in uow.list_evaluations()] == ["eval-1", "eval-2"]

    def test_duplicate_insert_rejected(self, store):
        with pytest.raises(StoreError, match="already exists"):
            with store.unit_of_work() as uow:
                uow.add_evaluation(_evaluation())

    def test_update_of_missing_record(self, store):
        with pytest.raises(RecordNotFoundError):
            with store.unit_of_work() as uow:
                uow.save_evaluation(_evaluation("ghost"))

    def test_list_tasks_ordered_by_execution_order(self, store):
        with store.unit_of_work() as uow:
            orders = [t.execution_order for t in uow.list_tasks("eval-1")]
        assert orders == [1, 2]

    def test_find_by_status(self, store):
        with store.unit_of_work() as uow:
            uow.add_evaluation(_evaluation("eval-2", created_at=datetime(2026, 3, 14, 9, 0)))
        with store.unit_of_work() as uow:
            queued = uow.find_evaluations_by_status(EvaluationStatus.QUEUED)
            running = uow.find_evaluations_by_status(EvaluationStatus.RUNNING)
        assert [e.evaluation_id for e in queued] == ["eval-2", "eval-1"]
        assert running == []


class TestRowLocks:
    def _hold(self, store, mode, release: threading.Event, acquired: threading.Event):
        def target():
            with store.unit_of_work() as uow:
                uow.get_evaluation("eval-1", lock=mode)
                acquired.set()
                release.wait(5)
        thread = threading.Thread(target=target)
        thread.start()
        assert acquired.wait(5)
        return thread

    def test_exclusive_blocks_other_writers(self, store):
        release, acquired = threading.Event(), threading.Event()
        thread = self._hold(store, LockMode.EXCLUSIVE, release, acquired)
        try:
            with pytest.raises(LockTimeoutError):
                with store.unit_of_work() as uow:
                    uow.get_evaluation("eval-1", lock=LockMode.SHARED)
        finally:
            release.set()
            thread.join()

    def test_shared_locks_coexist(self, store):
        release, acquired = threading.Event(), threading.Event()
        thread = self._hold(store, LockMode.SHARED, release, acquired)
        try:
            with store.unit_of_work() as uow:
                assert uow.get_evaluation("eval-1", lock=LockMode.SHARED) is not None
            with pytest.raises(LockTimeoutError):
                with store.unit_of_work() as uow:
                    uow.get_evaluation("eval-1", lock=LockMode.EXCLUSIVE)
        finally:
            release.set()
            thread.join()

    def test_unlocked_reads_never_block(self, store):
        release, acquired = threading.Event(), threading.Event()
        thread = self._hold(store, LockMode.EXCLUSIVE, release, acquired)
        try:
            with store.unit_of_work() as uow:
                assert uow.get_evaluation("eval-1") is not None
        finally:
            release.set()
            thread.join()

    def test_locks_released_after_rollback(self, store):
        with pytest.raises(RuntimeError):
            with store.unit_of_work() as uow:
                uow.get_evaluation("eval-1", lock=LockMode.EXCLUSIVE)
                raise RuntimeError("boom")

        with store.unit_of_work() as uow:
            assert uow.get_evaluation("eval-1", lock=LockMode.EXCLUSIVE) is not None

    def test_reentrant_and_upgrade(self, store):
        with store.unit_of_work() as uow:
            uow.get_evaluation("eval-1", lock=LockMode.EXCLUSIVE)
            # already held exclusively: both modes are satisfied
            uow.get_evaluation("eval-1", lock=LockMode.SHARED)

        with pytest.raises(StoreError, match="Cannot upgrade"):
            with store.unit_of_work() as uow:
                uow.get_evaluation("eval-1", lock=LockMode.SHARED)
                uow.get_evaluation("eval-1", lock=LockMode.EXCLUSIVE)


class TestConcurrentProgressUpdates:
    @patch("webeval_core.infrastructure.retry.time.sleep")
    def test_racing_updates_conflict_once_and_both_land(self, mock_sleep, store):
        """Two updates read the same version; one conflicts, retries once, and no update is lost"""
        barrier = threading.Barrier(2, timeout=5)
        executor = ConflictRetryExecutor()
        errors = []

        def update(success):
            first_attempt = [True]

            def operation():
                with store.unit_of_work() as uow:
                    evaluation = uow.require_evaluation("eval-1")
                    if first_attempt[0]:
                        first_attempt[0] = False
                        barrier.wait()
                    evaluation.record_task_outcome(success)
                    uow.save_evaluation(evaluation)

            try:
                executor.run(operation, "record progress")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=update, args=(s,)) for s in (True, False)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        # exactly one conflict, retried after the first backoff delay
        mock_sleep.assert_called_once_with(0.1)
        with store.unit_of_work() as uow:
            evaluation = uow.get_evaluation("eval-1")
        assert evaluation.completed_tasks == 2
        assert evaluation.successful_tasks == 1
        assert evaluation.failed_tasks == 1
        assert evaluation.progress_percent == 100
        assert evaluation.version == 2
