"""
Evaluation Engine Configuration

Manages loading from environment variables and default values.
"""

import os
from dataclasses import dataclass, field, asdict

from webeval_core.domain.constants import (
    CONFLICT_BASE_DELAY_SECONDS,
    CONFLICT_MAX_ATTEMPTS,
    DEFAULT_EARLY_COMPLETION_THRESHOLD,
    DEFAULT_MAX_STEPS,
    DISPATCH_INTERVAL_SECONDS,
    EVALUATION_TIMEOUT_SECONDS,
    REAP_INTERVAL_SECONDS,
)


def _env_bool(key: str, default: bool) -> bool:
    """Convert an environment variable to bool"""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_str(key: str, default: str) -> str:
    """Get an environment variable as a string"""
    return os.environ.get(key, default)


@dataclass
class ExecutionConfig:
    """Worker pool and default step-control configuration"""
    max_workers: int = 4
    default_max_steps: int = DEFAULT_MAX_STEPS
    default_execution_mode: str = "MULTI_STEP"  # ONE_SHOT / MULTI_STEP / AUTO
    allow_early_completion: bool = True
    early_completion_threshold: float = DEFAULT_EARLY_COMPLETION_THRESHOLD


@dataclass
class ConflictRetryConfig:
    """Optimistic-conflict retry configuration"""
    max_attempts: int = CONFLICT_MAX_ATTEMPTS
    base_delay_seconds: float = CONFLICT_BASE_DELAY_SECONDS


@dataclass
class SchedulerConfig:
    """Periodic dispatch / reap configuration"""
    dispatch_interval_seconds: float = DISPATCH_INTERVAL_SECONDS
    reap_interval_seconds: float = REAP_INTERVAL_SECONDS
    evaluation_timeout_seconds: int = EVALUATION_TIMEOUT_SECONDS


@dataclass
class StoreConfig:
    """Reference store configuration"""
    lock_timeout_seconds: float = 30.0


@dataclass
class AgentConfig:
    """LLM-driven automation backend configuration"""
    max_tokens: int = 1024
    timeout_seconds: int = 120
    max_retries: int = 3
    lmstudio_base_url: str = "http://localhost:1234/v1"
    lmstudio_api_key: str = "lm-studio"


@dataclass
class OrchestratorConfig:
    """Overall evaluation engine configuration"""
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    conflict_retry: ConflictRetryConfig = field(default_factory=ConflictRetryConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"orchestrator_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "OrchestratorConfig":
        """Create from dictionary (handles presence/absence of orchestrator_config key)"""
        config_data = data.get("orchestrator_config", data)
        return cls(
            execution=ExecutionConfig(**config_data.get("execution", {})),
            conflict_retry=ConflictRetryConfig(**config_data.get("conflict_retry", {})),
            scheduler=SchedulerConfig(**config_data.get("scheduler", {})),
            store=StoreConfig(**config_data.get("store", {})),
            agent=AgentConfig(**config_data.get("agent", {})),
        )


def load_config() -> OrchestratorConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        OrchestratorConfig
    """
    execution = ExecutionConfig(
        max_workers=_env_int("WEBEVAL_MAX_WORKERS", 4),
        default_max_steps=_env_int("WEBEVAL_DEFAULT_MAX_STEPS", DEFAULT_MAX_STEPS),
        default_execution_mode=_env_str("WEBEVAL_DEFAULT_EXECUTION_MODE", "MULTI_STEP").upper(),
        allow_early_completion=_env_bool("WEBEVAL_ALLOW_EARLY_COMPLETION", True),
        early_completion_threshold=_env_float(
            "WEBEVAL_EARLY_COMPLETION_THRESHOLD", DEFAULT_EARLY_COMPLETION_THRESHOLD
        ),
    )
    conflict_retry = ConflictRetryConfig(
        max_attempts=_env_int("WEBEVAL_CONFLICT_MAX_ATTEMPTS", CONFLICT_MAX_ATTEMPTS),
        base_delay_seconds=_env_float("WEBEVAL_CONFLICT_BASE_DELAY_SECONDS", CONFLICT_BASE_DELAY_SECONDS),
    )
    scheduler = SchedulerConfig(
        dispatch_interval_seconds=_env_float("WEBEVAL_DISPATCH_INTERVAL_SECONDS", DISPATCH_INTERVAL_SECONDS),
        reap_interval_seconds=_env_float("WEBEVAL_REAP_INTERVAL_SECONDS", REAP_INTERVAL_SECONDS),
        evaluation_timeout_seconds=_env_int("WEBEVAL_EVALUATION_TIMEOUT_SECONDS", EVALUATION_TIMEOUT_SECONDS),
    )
    store = StoreConfig(
        lock_timeout_seconds=_env_float("WEBEVAL_LOCK_TIMEOUT_SECONDS", 30.0),
    )
    agent = AgentConfig(
        max_tokens=_env_int("WEBEVAL_AGENT_MAX_TOKENS", 1024),
        timeout_seconds=_env_int("WEBEVAL_AGENT_TIMEOUT_SECONDS", 120),
        max_retries=_env_int("WEBEVAL_AGENT_MAX_RETRIES", 3),
        lmstudio_base_url=_env_str("LMSTUDIO_BASE_URL", "http://localhost:1234/v1"),
        lmstudio_api_key=_env_str("LMSTUDIO_API_KEY", "lm-studio"),
    )
    return OrchestratorConfig(
        execution=execution,
        conflict_retry=conflict_retry,
        scheduler=scheduler,
        store=store,
        agent=agent,
    )
