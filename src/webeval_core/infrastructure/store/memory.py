"""
In-memory evaluation store

Thread-safe reference implementation of EvaluationStore. Rows are protected by
readers/writer locks held for the lifetime of a unit of work; reads return deep
copies, and saved records are checked against their loaded version at commit.

Lock order: evaluation rows before task rows.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from webeval_core.domain.entities import Evaluation, EvaluationStatus, EvaluationTask
from webeval_core.infrastructure.store.base import (
    ConflictError,
    EvaluationStore,
    LockMode,
    LockTimeoutError,
    RecordNotFoundError,
    StoreError,
    UnitOfWork,
)

logger = logging.getLogger(__name__)

_EVALUATION = "Evaluation"
_TASK = "Task"


class _RowLock:
    """Readers/writer lock for a single row"""

    def __init__(self):
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False

    def acquire(self, mode: LockMode, timeout: float) -> bool:
        with self._cond:
            if mode is LockMode.SHARED:
                acquired = self._cond.wait_for(lambda: not self._writer, timeout)
                if acquired:
                    self._readers += 1
            else:
                acquired = self._cond.wait_for(lambda: not self._writer and self._readers == 0, timeout)
                if acquired:
                    self._writer = True
            return acquired

    def release(self, mode: LockMode) -> None:
        with self._cond:
            if mode is LockMode.SHARED:
                self._readers -= 1
            else:
                self._writer = False
            self._cond.notify_all()


class InMemoryEvaluationStore(EvaluationStore):
    """Evaluations and tasks kept in process memory"""

    def __init__(self, lock_timeout_seconds: float = 30.0):
        self.lock_timeout_seconds = lock_timeout_seconds
        self._lock = threading.Lock()
        self._rows: dict[tuple[str, str], Evaluation | EvaluationTask] = {}
        self._row_locks: dict[tuple[str, str], _RowLock] = {}

    @contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        uow = _InMemoryUnitOfWork(self)
        try:
            yield uow
            uow._commit()
        except BaseException:
            if uow._has_changes():
                logger.debug("Rolling back unit of work with %d staged writes", uow._change_count())
            raise
        finally:
            uow._release_locks()

    # Internal helpers used by the unit of work

    def _row_lock(self, key: tuple[str, str]) -> _RowLock:
        with self._lock:
            row_lock = self._row_locks.get(key)
            if row_lock is None:
                row_lock = _RowLock()
                self._row_locks[key] = row_lock
            return row_lock

    def _snapshot(self, key: tuple[str, str]):
        with self._lock:
            record = self._rows.get(key)
            return copy.deepcopy(record) if record is not None else None

    def _snapshot_all(self, kind: str) -> list:
        with self._lock:
            return [copy.deepcopy(record) for (k, _), record in self._rows.items() if k == kind]


class _InMemoryUnitOfWork(UnitOfWork):

    def __init__(self, store: InMemoryEvaluationStore):
        self._store = store
        self._held: dict[tuple[str, str], LockMode] = {}
        # key -> (caller's object, staged copy)
        self._updates: dict[tuple[str, str], tuple] = {}
        self._inserts: dict[tuple[str, str], tuple] = {}

    # Locking

    def _acquire(self, key: tuple[str, str], lock: LockMode) -> None:
        if lock is LockMode.NONE:
            return
        held = self._held.get(key)
        if held is lock or held is LockMode.EXCLUSIVE:
            return
        if held is LockMode.SHARED:
            raise StoreError(f"Cannot upgrade shared lock on {key[0]} {key[1]} within one unit of work")
        if not self._store._row_lock(key).acquire(lock, self._store.lock_timeout_seconds):
            raise LockTimeoutError(
                f"Timed out after {self._store.lock_timeout_seconds}s waiting for "
                f"{lock.value} lock on {key[0]} {key[1]}"
            )
        self._held[key] = lock

    def _release_locks(self) -> None:
        for key, mode in self._held.items():
            self._store._row_lock(key).release(mode)
        self._held.clear()

    # Reads

    def _read(self, key: tuple[str, str], lock: LockMode):
        self._acquire(key, lock)
        staged = self._updates.get(key) or self._inserts.get(key)
        if staged is not None:
            return copy.deepcopy(staged[1])
        return self._store._snapshot(key)

    def _visible(self, kind: str) -> list:
        records = {self._key_of(r): r for r in self._store._snapshot_all(kind)}
        for staged in (self._inserts, self._updates):
            for key, (_, record) in staged.items():
                if key[0] == kind:
                    records[key] = copy.deepcopy(record)
        return list(records.values())

    def get_evaluation(self, evaluation_id: str, lock: LockMode = LockMode.NONE) -> Evaluation | None:
        return self._read((_EVALUATION, evaluation_id), lock)

    def get_task(self, task_id: str, lock: LockMode = LockMode.NONE) -> EvaluationTask | None:
        return self._read((_TASK, task_id), lock)

    def list_tasks(self, evaluation_id: str) -> list[EvaluationTask]:
        tasks = [t for t in self._visible(_TASK) if t.evaluation_id == evaluation_id]
        return sorted(tasks, key=lambda t: t.execution_order)

    def find_evaluations_by_status(self, status: EvaluationStatus) -> list[Evaluation]:
        return [e for e in self.list_evaluations() if e.status == status]

    def list_evaluations(self) -> list[Evaluation]:
        return sorted(self._visible(_EVALUATION), key=lambda e: e.created_at)

    # Writes

    @staticmethod
    def _key_of(record) -> tuple[str, str]:
        if isinstance(record, Evaluation):
            return (_EVALUATION, record.evaluation_id)
        return (_TASK, record.task_id)

    def add_evaluation(self, evaluation: Evaluation) -> None:
        self._stage_insert(evaluation)

    def add_task(self, task: EvaluationTask) -> None:
        self._stage_insert(task)

    def save_evaluation(self, evaluation: Evaluation) -> None:
        self._stage_update(evaluation)

    def save_task(self, task: EvaluationTask) -> None:
        self._stage_update(task)

    def _stage_insert(self, record) -> None:
        key = self._key_of(record)
        if key in self._inserts:
            raise StoreError(f"{key[0]} {key[1]} already added in this unit of work")
        self._inserts[key] = (record, copy.deepcopy(record))

    def _stage_update(self, record) -> None:
        key = self._key_of(record)
        if key in self._inserts:
            self._inserts[key] = (record, copy.deepcopy(record))
        else:
            self._updates[key] = (record, copy.deepcopy(record))

    def _has_changes(self) -> bool:
        return bool(self._updates or self._inserts)

    def _change_count(self) -> int:
        return len(self._updates) + len(self._inserts)

    def _commit(self) -> None:
        if not self._has_changes():
            return
        store = self._store
        with store._lock:
            for key in self._inserts:
                if key in store._rows:
                    raise StoreError(f"{key[0]} already exists: {key[1]}")
            for key, (_, staged) in self._updates.items():
                current = store._rows.get(key)
                if current is None:
                    raise RecordNotFoundError(key[0], key[1])
                if current.version != staged.version:
                    raise ConflictError(key[0], key[1], staged.version, current.version)

            for key, (_, staged) in self._inserts.items():
                store._rows[key] = staged
            for key, (original, staged) in self._updates.items():
                staged.version += 1
                original.version = staged.version
                store._rows[key] = staged

        self._inserts.clear()
        self._updates.clear()
