"""
Evaluation Scheduler

Two periodic sweeps around the EvaluationRunner:
- dispatch: submit QUEUED evaluations that have no tracked execution
- reap: fail RUNNING evaluations that exceeded the execution timeout and
  abandon their execution handles

Each sweep takes an explicit `now` and can be called directly; start() runs
both on independent daemon threads.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from webeval_core.domain.constants import EVALUATION_TIMEOUT_MESSAGE
from webeval_core.domain.entities import EvaluationStatus
from webeval_core.orchestrator_config import SchedulerConfig
from webeval_core.use_cases.evaluation import EvaluationRunner

logger = logging.getLogger(__name__)


class EvaluationScheduler:
    """Periodic dispatch of queued evaluations and reaping of runaway ones"""

    def __init__(
        self,
        runner: EvaluationRunner,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.runner = runner
        self.config = config or runner.config.scheduler
        self._clock = clock
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    def dispatch_queued(self, now: datetime) -> list[str]:
        """
        Submit every QUEUED evaluation without a tracked execution; returns submitted ids

        Dispatch does not depend on time; `now` only stamps the sweep in the log.
        """
        with self.runner.store.unit_of_work() as uow:
            queued = uow.find_evaluations_by_status(EvaluationStatus.QUEUED)
        logger.debug("Dispatch sweep at %s: %d queued evaluations", now.isoformat(), len(queued))

        dispatched = []
        for evaluation in queued:
            evaluation_id = evaluation.evaluation_id
            if self.runner.is_tracked(evaluation_id):
                continue
            try:
                if self.runner.submit(evaluation_id):
                    dispatched.append(evaluation_id)
            except Exception as e:
                logger.error("Failed to start evaluation %s: %s", evaluation_id, e)
                self.runner.fail(evaluation_id, f"Failed to start evaluation: {e}")

        if dispatched:
            logger.info("Dispatched %d queued evaluations", len(dispatched))
        return dispatched

    def reap_timed_out(self, now: datetime) -> list[str]:
        """Fail RUNNING evaluations started before now - timeout; returns reaped ids"""
        threshold = now - timedelta(seconds=self.config.evaluation_timeout_seconds)
        with self.runner.store.unit_of_work() as uow:
            running = uow.find_evaluations_by_status(EvaluationStatus.RUNNING)

        reaped = []
        for evaluation in running:
            if evaluation.started_at is None or evaluation.started_at >= threshold:
                continue
            evaluation_id = evaluation.evaluation_id
            logger.warning("Marking stuck evaluation as failed: %s", evaluation_id)
            if self.runner.fail(evaluation_id, EVALUATION_TIMEOUT_MESSAGE):
                reaped.append(evaluation_id)
            self.runner.abandon(evaluation_id)

        if reaped:
            logger.info("Cleaned up %d timed out evaluations", len(reaped))
        return reaped

    # Background loops

    def _loop(self, name: str, interval: float, sweep: Callable[[datetime], list[str]]) -> None:
        while not self._stop_event.wait(interval):
            try:
                sweep(self._clock())
            except Exception:
                logger.exception("Error during %s sweep", name)

    def start(self) -> None:
        """Start the dispatch and reap threads"""
        if self._threads:
            return
        self._stop_event.clear()
        self._threads = [
            threading.Thread(
                target=self._loop,
                args=("dispatch", self.config.dispatch_interval_seconds, self.dispatch_queued),
                name="evaluation-dispatch",
                daemon=True,
            ),
            threading.Thread(
                target=self._loop,
                args=("reap", self.config.reap_interval_seconds, self.reap_timed_out),
                name="evaluation-reap",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()
        logger.info(
            "Scheduler started (dispatch every %ss, reap every %ss)",
            self.config.dispatch_interval_seconds, self.config.reap_interval_seconds,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return bool(self._threads)
