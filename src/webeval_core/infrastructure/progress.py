"""
Progress sinks

Receive evaluation status snapshots as execution advances. Publishing is best
effort: the runner logs and discards sink failures.
"""

import logging
from abc import ABC, abstractmethod

from webeval_core.domain.value_objects import EvaluationStatusSnapshot

logger = logging.getLogger(__name__)


class ProgressSink(ABC):
    """Destination for evaluation progress notifications"""

    @abstractmethod
    def publish(self, evaluation_id: str, snapshot: EvaluationStatusSnapshot) -> None:
        pass


class LoggingProgressSink(ProgressSink):
    """Writes each snapshot to the log"""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def publish(self, evaluation_id: str, snapshot: EvaluationStatusSnapshot) -> None:
        logger.log(
            self.level,
            "[%s] %s %d%% (%d/%d tasks) %s",
            evaluation_id, snapshot.status, snapshot.progress_percent,
            snapshot.completed_tasks, snapshot.total_tasks, snapshot.message,
        )


class NullProgressSink(ProgressSink):
    def publish(self, evaluation_id: str, snapshot: EvaluationStatusSnapshot) -> None:
        pass
