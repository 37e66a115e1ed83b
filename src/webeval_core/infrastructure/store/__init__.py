"""
Store sub-package

Provides the unit-of-work store interface and the in-memory implementation.
"""

from webeval_core.infrastructure.store.base import (
    ConflictError,
    EvaluationStore,
    LockMode,
    LockTimeoutError,
    RecordNotFoundError,
    StoreError,
    UnitOfWork,
)
from webeval_core.infrastructure.store.memory import InMemoryEvaluationStore

__all__ = [
    "ConflictError",
    "EvaluationStore",
    "InMemoryEvaluationStore",
    "LockMode",
    "LockTimeoutError",
    "RecordNotFoundError",
    "StoreError",
    "UnitOfWork",
]
