"""
Benchmark Loader

Loads benchmark definitions (ordered task templates) from JSON files and
exposes them through BenchmarkCatalog.
Supports both a single-benchmark file and a catalog file with several benchmarks.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

from webeval_core.domain.constants import DEFAULT_TASK_TIMEOUT_SECONDS
from webeval_core.domain.errors import UnknownBenchmarkError
from webeval_core.domain.value_objects import ExecutionMode


@dataclass
class BenchmarkTaskTemplate:
    """Template from which one evaluation task is materialized"""
    name: str
    prompt: str
    description: str = ""
    expected_result: str | None = None
    evaluation_criteria: str | None = None
    max_score: float | None = None
    category: str = ""
    difficulty: int | None = None  # 1-5 scale
    tags: list[str] = field(default_factory=list)
    timeout_seconds: int = DEFAULT_TASK_TIMEOUT_SECONDS
    execution_parameters: dict | None = None  # Overrides for ExecutionParameters

    def __post_init__(self):
        """Post-initialization validation"""
        if not self.name:
            raise ValueError("Benchmark task name must not be empty")
        if not self.prompt:
            raise ValueError(f"Benchmark task '{self.name}' has an empty prompt")
        if self.timeout_seconds <= 0:
            raise ValueError(f"Benchmark task '{self.name}' has a non-positive timeout: {self.timeout_seconds}")
        if self.difficulty is not None and not 1 <= self.difficulty <= 5:
            raise ValueError(f"Benchmark task '{self.name}' difficulty must be between 1 and 5")
        mode = (self.execution_parameters or {}).get("execution_mode")
        if mode is not None and str(mode).upper() not in ExecutionMode.__members__:
            raise ValueError(f"Benchmark task '{self.name}' has an unknown execution mode: {mode}")


@dataclass
class BenchmarkDefinition:
    """Benchmark definition"""
    name: str
    version: str
    description: str
    tasks: list[BenchmarkTaskTemplate]


def _parse_template(data: dict) -> BenchmarkTaskTemplate:
    """
    Create a BenchmarkTaskTemplate from dictionary data

    Args:
        data: Task template dictionary

    Returns:
        BenchmarkTaskTemplate
    """
    tags = data.get("tags") or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]

    return BenchmarkTaskTemplate(
        name=data["name"],
        prompt=data["prompt"],
        description=data.get("description", ""),
        expected_result=data.get("expected_result"),
        evaluation_criteria=data.get("evaluation_criteria"),
        max_score=data.get("max_score"),
        category=data.get("category", ""),
        difficulty=data.get("difficulty"),
        tags=list(tags),
        timeout_seconds=data.get("timeout_seconds", DEFAULT_TASK_TIMEOUT_SECONDS),
        execution_parameters=data.get("execution_parameters"),
    )


def _parse_benchmark(data: dict, source: str) -> BenchmarkDefinition:
    required_fields = ["name", "version", "tasks"]
    for required in required_fields:
        if required not in data:
            raise KeyError(f"Required field '{required}' is missing: {source}")

    return BenchmarkDefinition(
        name=data["name"],
        version=str(data["version"]),
        description=data.get("description", ""),
        tasks=[_parse_template(t) for t in data["tasks"]],
    )


class BenchmarkCatalog:
    """Read-only catalog of benchmark definitions, keyed by name"""

    def __init__(self, benchmarks: list[BenchmarkDefinition] | None = None):
        self._benchmarks: dict[str, BenchmarkDefinition] = {}
        for benchmark in benchmarks or []:
            self.register(benchmark)

    def register(self, benchmark: BenchmarkDefinition) -> None:
        if benchmark.name in self._benchmarks:
            raise ValueError(f"Duplicate benchmark name: {benchmark.name}")
        self._benchmarks[benchmark.name] = benchmark

    def names(self) -> list[str]:
        return sorted(self._benchmarks)

    def get(self, benchmark_name: str) -> BenchmarkDefinition:
        try:
            return self._benchmarks[benchmark_name]
        except KeyError:
            raise UnknownBenchmarkError(benchmark_name) from None

    def tasks_for(self, benchmark_name: str) -> list[BenchmarkTaskTemplate]:
        """Ordered task templates for a benchmark"""
        return list(self.get(benchmark_name).tasks)

    def version_of(self, benchmark_name: str) -> str:
        return self.get(benchmark_name).version


def load_benchmark_file(file_path: str | Path) -> list[BenchmarkDefinition]:
    """
    Load a benchmark JSON file

    Accepts either a single benchmark object or {"benchmarks": [...]}.

    Args:
        file_path: Path to the JSON file

    Returns:
        list[BenchmarkDefinition]

    Raises:
        FileNotFoundError: If the file does not exist
        KeyError: If a required field is missing
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if "benchmarks" in data:
        return [_parse_benchmark(b, str(file_path)) for b in data["benchmarks"]]
    return [_parse_benchmark(data, str(file_path))]


def load_benchmark_catalog(path: str | Path) -> BenchmarkCatalog:
    """
    Load a catalog from a JSON file or from every *.json file in a directory

    Args:
        path: File or directory path

    Returns:
        BenchmarkCatalog
    """
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Benchmark source does not exist: {path}")

    files = sorted(source.glob("*.json")) if source.is_dir() else [source]
    catalog = BenchmarkCatalog()
    for json_file in files:
        for benchmark in load_benchmark_file(json_file):
            catalog.register(benchmark)
    return catalog
