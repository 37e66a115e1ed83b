"""
Persistent store interface

A unit of work groups reads and writes that commit together. Rows may be locked
SHARED or EXCLUSIVE for the lifetime of the unit of work; every saved record is
checked against the version it was loaded with when the unit of work commits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from enum import Enum

from webeval_core.domain.entities import Evaluation, EvaluationStatus, EvaluationTask


class LockMode(str, Enum):
    NONE = "none"
    SHARED = "shared"
    EXCLUSIVE = "exclusive"


class StoreError(Exception):
    """Base class for store errors"""
    pass


class RecordNotFoundError(StoreError):
    """A record required by an operation does not exist"""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class ConflictError(StoreError):
    """Optimistic version mismatch: another writer committed the same record first"""

    def __init__(self, kind: str, record_id: str, expected_version: int, actual_version: int | None):
        super().__init__(
            f"Concurrent modification of {kind} {record_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )
        self.kind = kind
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class LockTimeoutError(StoreError):
    """A row lock could not be acquired in time"""
    pass


class UnitOfWork(ABC):
    """Transactional view of the store"""

    @abstractmethod
    def get_evaluation(self, evaluation_id: str, lock: LockMode = LockMode.NONE) -> Evaluation | None:
        """Load an evaluation, optionally locking its row"""
        pass

    @abstractmethod
    def get_task(self, task_id: str, lock: LockMode = LockMode.NONE) -> EvaluationTask | None:
        """Load a task, optionally locking its row"""
        pass

    @abstractmethod
    def list_tasks(self, evaluation_id: str) -> list[EvaluationTask]:
        """Tasks of an evaluation ordered by execution order"""
        pass

    @abstractmethod
    def find_evaluations_by_status(self, status: EvaluationStatus) -> list[Evaluation]:
        """Evaluations currently in the given status, oldest first"""
        pass

    @abstractmethod
    def list_evaluations(self) -> list[Evaluation]:
        """All evaluations, oldest first"""
        pass

    @abstractmethod
    def add_evaluation(self, evaluation: Evaluation) -> None:
        pass

    @abstractmethod
    def add_task(self, task: EvaluationTask) -> None:
        pass

    @abstractmethod
    def save_evaluation(self, evaluation: Evaluation) -> None:
        """Stage an update; checked against the loaded version at commit"""
        pass

    @abstractmethod
    def save_task(self, task: EvaluationTask) -> None:
        """Stage an update; checked against the loaded version at commit"""
        pass

    def require_evaluation(self, evaluation_id: str, lock: LockMode = LockMode.NONE) -> Evaluation:
        evaluation = self.get_evaluation(evaluation_id, lock=lock)
        if evaluation is None:
            raise RecordNotFoundError("Evaluation", evaluation_id)
        return evaluation

    def require_task(self, task_id: str, lock: LockMode = LockMode.NONE) -> EvaluationTask:
        task = self.get_task(task_id, lock=lock)
        if task is None:
            raise RecordNotFoundError("Task", task_id)
        return task


class EvaluationStore(ABC):
    """Store of evaluations and their tasks"""

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[UnitOfWork]:
        """
        Open a unit of work

        Commits staged writes when the block exits normally (raising ConflictError
        on a version mismatch), discards them when it raises, and releases all
        row locks in both cases.
        """
        pass
