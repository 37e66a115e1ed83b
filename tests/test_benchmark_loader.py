"""
Unit tests for benchmark_loader.py
"""

import json
from pathlib import Path

import pytest

from webeval_core.benchmark_loader import (
    BenchmarkCatalog,
    BenchmarkDefinition,
    BenchmarkTaskTemplate,
    load_benchmark_catalog,
    load_benchmark_file,
)
from webeval_core.domain.errors import UnknownBenchmarkError

BENCHMARK_DIR = Path(__file__).parent.parent / "benchmarks"


def _write(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _benchmark(name="b1", tasks=None):
    return {
        "name": name,
        "version": 1,
        "tasks": tasks if tasks is not None else [{"name": "t1", "prompt": "do it"}],
    }


class TestBenchmarkTaskTemplate:
    """Validation of BenchmarkTaskTemplate"""

    def test_defaults(self):
        template = BenchmarkTaskTemplate(name="t", prompt="p")
        assert template.timeout_seconds == 300
        assert template.tags == []
        assert template.execution_parameters is None

    @pytest.mark.parametrize("kwargs", [
        {"name": "", "prompt": "p"},
        {"name": "t", "prompt": ""},
        {"name": "t", "prompt": "p", "timeout_seconds": 0},
        {"name": "t", "prompt": "p", "difficulty": 6},
        {"name": "t", "prompt": "p", "execution_parameters": {"execution_mode": "SOMETIMES"}},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            BenchmarkTaskTemplate(**kwargs)


class TestLoadBenchmarkFile:
    def test_bundled_benchmark(self):
        benchmarks = load_benchmark_file(BENCHMARK_DIR / "web_basics.json")

        assert [b.name for b in benchmarks] == ["web-basics"]
        tasks = benchmarks[0].tasks
        assert len(tasks) == 4
        assert tasks[1].tags == ["docs", "heading"]
        assert tasks[2].execution_parameters["execution_mode"] == "AUTO"

    def test_single_benchmark_object(self, tmp_path):
        benchmarks = load_benchmark_file(_write(tmp_path / "b.json", _benchmark()))
        assert len(benchmarks) == 1
        assert benchmarks[0].version == "1"
        assert benchmarks[0].description == ""

    def test_missing_required_field(self, tmp_path):
        data = _benchmark()
        del data["version"]
        with pytest.raises(KeyError, match="version"):
            load_benchmark_file(_write(tmp_path / "b.json", data))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_benchmark_file(tmp_path / "missing.json")


class TestBenchmarkCatalog:
    def test_lookup(self):
        template = BenchmarkTaskTemplate(name="t", prompt="p")
        catalog = BenchmarkCatalog([BenchmarkDefinition("b1", "2.0", "", [template])])

        assert catalog.names() == ["b1"]
        assert catalog.version_of("b1") == "2.0"
        assert catalog.tasks_for("b1") == [template]

    def test_tasks_for_returns_copy(self):
        catalog = BenchmarkCatalog([BenchmarkDefinition("b1", "1", "", [BenchmarkTaskTemplate("t", "p")])])
        catalog.tasks_for("b1").clear()
        assert len(catalog.tasks_for("b1")) == 1

    def test_unknown_benchmark(self):
        with pytest.raises(UnknownBenchmarkError, match="Unknown benchmark: nope"):
            BenchmarkCatalog().get("nope")

    def test_unknown_benchmark_is_key_error(self):
        with pytest.raises(KeyError):
            BenchmarkCatalog().tasks_for("nope")

    def test_duplicate_name(self):
        definition = BenchmarkDefinition("b1", "1", "", [])
        with pytest.raises(ValueError, match="Duplicate"):
            BenchmarkCatalog([definition, definition])


class TestLoadBenchmarkCatalog:
    def test_directory(self, tmp_path):
        _write(tmp_path / "a.json", _benchmark("alpha"))
        _write(tmp_path / "b.json", {"benchmarks": [_benchmark("beta"), _benchmark("gamma")]})
        (tmp_path / "notes.txt").write_text("ignored")

        catalog = load_benchmark_catalog(tmp_path)

        assert catalog.names() == ["alpha", "beta", "gamma"]

    def test_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_benchmark_catalog(tmp_path / "nowhere")
