"""
Domain Value Objects

Defines immutable data structures representing execution parameters, step
control results, automation results and status snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum

from webeval_core.domain.constants import (
    DEFAULT_EARLY_COMPLETION_THRESHOLD,
    DEFAULT_MAX_STEPS,
    DEFAULT_STEP_TIMEOUT_SECONDS,
    MIN_STEP_TIMEOUT_SECONDS,
    TOTAL_TIMEOUT_BUFFER_SECONDS,
)


class ExecutionMode(str, Enum):
    ONE_SHOT = "ONE_SHOT"      # single step, then stop
    MULTI_STEP = "MULTI_STEP"  # up to max_steps
    AUTO = "AUTO"              # confidence-driven early stop, max_steps as safety limit


@dataclass(frozen=True)
class ExecutionParameters:
    """User-controlled execution parameters for one task execution"""
    max_steps: int = DEFAULT_MAX_STEPS
    execution_mode: ExecutionMode = ExecutionMode.MULTI_STEP
    allow_early_completion: bool = True
    early_completion_threshold: float = DEFAULT_EARLY_COMPLETION_THRESHOLD
    step_timeout_seconds: int = DEFAULT_STEP_TIMEOUT_SECONDS
    capture_step_screenshots: bool = True

    @classmethod
    def one_shot(cls) -> "ExecutionParameters":
        return cls(max_steps=1, execution_mode=ExecutionMode.ONE_SHOT, allow_early_completion=False)

    @classmethod
    def multi_step(cls, max_steps: int) -> "ExecutionParameters":
        return cls(max_steps=max_steps, execution_mode=ExecutionMode.MULTI_STEP)

    @classmethod
    def auto(cls, max_steps: int, threshold: float = DEFAULT_EARLY_COMPLETION_THRESHOLD) -> "ExecutionParameters":
        return cls(
            max_steps=max_steps,
            execution_mode=ExecutionMode.AUTO,
            early_completion_threshold=threshold,
        )

    def validate(self) -> None:
        """
        Validate parameter consistency

        Raises:
            ValueError: If any parameter is out of range
        """
        if self.max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        if not 0.0 <= self.early_completion_threshold <= 1.0:
            raise ValueError("early_completion_threshold must be between 0.0 and 1.0")
        if self.step_timeout_seconds < MIN_STEP_TIMEOUT_SECONDS:
            raise ValueError(f"step_timeout_seconds must be at least {MIN_STEP_TIMEOUT_SECONDS}")

    @property
    def total_timeout_seconds(self) -> int:
        """Total execution timeout derived from the step parameters"""
        return self.max_steps * self.step_timeout_seconds + TOTAL_TIMEOUT_BUFFER_SECONDS

    def to_dict(self) -> dict:
        data = asdict(self)
        data["execution_mode"] = self.execution_mode.value
        return data

    @classmethod
    def from_dict(cls, data: dict | None, defaults: "ExecutionParameters | None" = None) -> "ExecutionParameters":
        """Create from a dictionary, falling back to `defaults` for missing keys"""
        base = (defaults or cls()).to_dict()
        base.update({k: v for k, v in (data or {}).items() if k in base and v is not None})
        base["execution_mode"] = ExecutionMode(str(base["execution_mode"]).upper())
        return cls(**base)


@dataclass(frozen=True)
class StepInfo:
    """One recorded step"""
    step_number: int
    description: str
    confidence_score: float
    timestamp: datetime


@dataclass(frozen=True)
class StepResult:
    """Decision returned after each reported step"""
    current_step: int
    max_steps: int
    should_continue: bool
    reached_limit: bool
    early_completion: bool
    confidence_score: float
    step_description: str = ""
    error_message: str | None = None

    @classmethod
    def error(cls, message: str) -> "StepResult":
        return cls(0, 0, False, False, False, 0.0, "", message)

    @property
    def is_error(self) -> bool:
        return self.error_message is not None


@dataclass(frozen=True)
class StepStatus:
    """Current step information for a task in flight"""
    current_step: int
    max_steps: int
    execution_mode: ExecutionMode
    step_history: list[StepInfo]
    early_completion_allowed: bool

    @property
    def progress(self) -> float:
        return self.current_step / self.max_steps if self.max_steps > 0 else 0.0

    def progress_formatted(self) -> str:
        return f"{self.current_step}/{self.max_steps} ({self.progress * 100:.1f}%)"


@dataclass(frozen=True)
class ExecutionSummary:
    """Summary produced when step control for a task ends"""
    steps_completed: int
    max_steps: int
    early_completion: bool
    step_history: list[StepInfo] = field(default_factory=list)

    @property
    def efficiency(self) -> float:
        return self.steps_completed / self.max_steps if self.max_steps > 0 else 0.0

    def __str__(self) -> str:
        return (
            f"ExecutionSummary(steps={self.steps_completed}/{self.max_steps}, "
            f"efficiency={self.efficiency * 100:.1f}%, earlyCompletion={self.early_completion})"
        )


@dataclass(frozen=True)
class ExecutionStatistics:
    """Active step-control contexts by execution mode"""
    total_active_tasks: int
    one_shot_tasks: int
    multi_step_tasks: int
    auto_tasks: int


@dataclass(frozen=True)
class ExecutionContext:
    """
    Correlation identifiers passed explicitly through the automation call chain

    session_id groups all automation work of one evaluation; user_id is the
    evaluation's initiator.
    """
    evaluation_id: str
    task_id: str
    session_id: str
    user_id: str | None = None
    model_name: str = ""
    model_provider: str = ""


@dataclass(frozen=True)
class AutomationResult:
    """Result returned by the automation executor"""
    text_result: str
    screenshot_refs: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EvaluationStatusSnapshot:
    """Point-in-time view of an evaluation, returned by get_status and published to the progress sink"""
    evaluation_id: str
    status: str
    progress_percent: int
    completed_tasks: int
    total_tasks: int
    successful_tasks: int = 0
    model_name: str = ""
    benchmark_name: str = ""
    message: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EvaluationStatistics:
    """Aggregate figures across all evaluations"""
    running_count: int
    queued_count: int
    completed_today: int
    failed_today: int
    average_score: float
    total_evaluations: int = 0
