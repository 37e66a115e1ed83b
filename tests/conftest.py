"""Shared fixtures: in-memory store, fixed clock, small benchmark catalog, scripted executor"""

import threading
from datetime import datetime, timedelta

import pytest

from webeval_core.benchmark_loader import BenchmarkCatalog, BenchmarkDefinition, BenchmarkTaskTemplate
from webeval_core.domain.value_objects import AutomationResult
from webeval_core.infrastructure.automation.base import AutomationExecutor
from webeval_core.infrastructure.progress import ProgressSink
from webeval_core.infrastructure.store.memory import InMemoryEvaluationStore
from webeval_core.orchestrator_config import OrchestratorConfig


class FakeClock:
    """Callable clock that advances only when told to"""

    def __init__(self, start: datetime = datetime(2026, 3, 14, 10, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ScriptedExecutor(AutomationExecutor):
    """
    Executor whose behaviour is scripted per prompt

    script[prompt] is either an exception to raise, or a tuple
    (text_result, confidences, screenshot_refs). Every confidence is reported as
    a step until the step controller says stop.
    """

    def __init__(self, script: dict | None = None, default_text: str = "done"):
        self.script = script or {}
        self.default_text = default_text
        self.calls = []
        self.gates: dict[str, threading.Event] = {}
        self.entered: dict[str, threading.Event] = {}

    def gate(self, prompt: str) -> tuple[threading.Event, threading.Event]:
        """Block execution of `prompt` until the returned release event is set"""
        self.gates[prompt] = threading.Event()
        self.entered[prompt] = threading.Event()
        return self.entered[prompt], self.gates[prompt]

    def execute(self, instruction, parameters, context, steps):
        self.calls.append((instruction, parameters, context))
        if instruction in self.entered:
            self.entered[instruction].set()
            self.gates[instruction].wait(5)

        entry = self.script.get(instruction, (self.default_text, [1.0], []))
        if isinstance(entry, Exception):
            raise entry
        text, confidences, screenshots = entry
        for i, confidence in enumerate(confidences, 1):
            decision = steps.advance(f"step {i}", confidence)
            if not decision.should_continue:
                break
        return AutomationResult(text_result=text, screenshot_refs=list(screenshots))


class RecordingSink(ProgressSink):
    def __init__(self):
        self.published = []

    def publish(self, evaluation_id, snapshot):
        self.published.append((evaluation_id, snapshot))


def make_catalog(task_count: int = 3, name: str = "demo") -> BenchmarkCatalog:
    templates = [
        BenchmarkTaskTemplate(
            name=f"task_{i}",
            prompt=f"prompt {i}",
            expected_result="done",
            max_score=1.0,
            category="lookup" if i % 2 else "navigation",
        )
        for i in range(1, task_count + 1)
    ]
    return BenchmarkCatalog([BenchmarkDefinition(name, "1.0", "demo benchmark", templates)])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryEvaluationStore(lock_timeout_seconds=2.0)


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def config():
    config = OrchestratorConfig()
    config.execution.max_workers = 2
    config.conflict_retry.base_delay_seconds = 0.0
    return config


@pytest.fixture
def sink():
    return RecordingSink()
