"""
webeval-core CLI Runner

Runs one benchmark evaluation of a model end to end and writes per-task results.

Usage:
    python -m webeval_core.runner --benchmark-file benchmarks/web_basics.json --benchmark web-basics \
        --model claude-haiku-4-5-20251001 --provider anthropic
    python -m webeval_core.runner --benchmark-file benchmarks/ --benchmark web-basics \
        --model lmstudio/qwen2.5-7b --provider lmstudio --mode AUTO --max-steps 5
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from webeval_core.benchmark_loader import load_benchmark_catalog
from webeval_core.domain.constants import SUPPORTED_PROVIDERS
from webeval_core.domain.entities import EvaluationStatus
from webeval_core.domain.value_objects import ExecutionMode
from webeval_core.infrastructure.automation.factory import create_executor
from webeval_core.infrastructure.store.memory import InMemoryEvaluationStore
from webeval_core.orchestrator_config import load_config
from webeval_core.use_cases.evaluation import EvaluationRunner
from webeval_core.use_cases.reporting import save_task_results, summarize_by_category, tasks_to_frame
from webeval_core.use_cases.scheduler import EvaluationScheduler

POLL_INTERVAL_SECONDS = 1.0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="webeval-core: Run a step-controlled benchmark evaluation",
    )
    parser.add_argument(
        "--benchmark-file",
        required=True,
        help="Benchmark JSON file, or a directory of benchmark JSON files",
    )
    parser.add_argument(
        "--benchmark",
        default=None,
        help="Benchmark name (default: the only benchmark in the catalog)",
    )
    parser.add_argument("--model", required=True, help="Model name")
    parser.add_argument(
        "--provider",
        required=True,
        choices=SUPPORTED_PROVIDERS,
        help="Model provider",
    )
    parser.add_argument(
        "--mode",
        default=None,
        choices=[m.value for m in ExecutionMode],
        help="Execution mode for every task (default: per task / WEBEVAL_DEFAULT_EXECUTION_MODE)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Step limit for every task (default: per task / WEBEVAL_DEFAULT_MAX_STEPS)",
    )
    parser.add_argument(
        "--initiated-by",
        default=None,
        help="User recorded as the evaluation's initiator",
    )
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output CSV files (default: results)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    return parser.parse_args(argv)


def _execution_overrides(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.mode:
        overrides["execution_mode"] = args.mode
    if args.max_steps is not None:
        overrides["max_steps"] = args.max_steps
    return overrides


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()

    # Load benchmarks
    print(f"\n=== Loading benchmarks: {args.benchmark_file} ===\n")
    catalog = load_benchmark_catalog(args.benchmark_file)
    names = catalog.names()
    if args.benchmark:
        benchmark_name = args.benchmark
    elif len(names) == 1:
        benchmark_name = names[0]
    else:
        print(f"ERROR: --benchmark is required (available: {', '.join(names)})")
        return 1
    templates = catalog.tasks_for(benchmark_name)
    print(f"  Benchmark: {benchmark_name} (version {catalog.version_of(benchmark_name)})")
    print(f"  Tasks:     {len(templates)}")
    print(f"  Model:     {args.model} ({args.provider})")
    print()

    executor = create_executor(args.provider, args.model, config)
    store = InMemoryEvaluationStore(lock_timeout_seconds=config.store.lock_timeout_seconds)
    runner = EvaluationRunner(store, catalog, executor, config=config)
    scheduler = EvaluationScheduler(runner)
    scheduler.start()

    configuration = {}
    overrides = _execution_overrides(args)
    if overrides:
        configuration["execution_parameters"] = overrides

    evaluation_id = None
    try:
        evaluation_id = runner.start(
            args.model,
            args.provider,
            benchmark_name,
            initiated_by=args.initiated_by,
            configuration=configuration,
        )
        print(f"=== Running evaluation {evaluation_id} ===\n")

        last_completed = -1
        while True:
            status = runner.get_status(evaluation_id)
            if status.completed_tasks != last_completed:
                last_completed = status.completed_tasks
                print(
                    f"  [{status.status}] {status.progress_percent:>3}% "
                    f"({status.completed_tasks}/{status.total_tasks} tasks, "
                    f"{status.successful_tasks} successful)"
                )
            if EvaluationStatus(status.status).is_terminal and not runner.is_tracked(evaluation_id):
                break
            time.sleep(POLL_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        if evaluation_id is not None:
            print("\n  Cancelling...")
            runner.cancel(evaluation_id)
    finally:
        scheduler.stop()
        runner.shutdown(wait=True)

    if evaluation_id is None:
        return 1

    with store.unit_of_work() as uow:
        evaluation = uow.require_evaluation(evaluation_id)
        tasks = uow.list_tasks(evaluation_id)

    print(f"\n=== Result: {evaluation.status.value} ===\n")
    if evaluation.error_message:
        print(f"  Error: {evaluation.error_message}")
    if evaluation.overall_score is not None:
        print(f"  Score: {evaluation.overall_score:.2f} / {evaluation.max_possible_score:.2f}")
    print(f"  Success rate: {evaluation.success_rate:.1f}%")
    if evaluation.duration_seconds is not None:
        print(f"  Duration: {evaluation.duration_seconds}s")
    print()

    task_df = tasks_to_frame(evaluation, tasks)
    summary_df = summarize_by_category(task_df)
    if not summary_df.empty:
        print("=== Category Summary ===\n")
        print(f"  {'Category':<24} {'tasks':>6} {'success_rate':>13} {'mean_score':>11} {'mean_steps':>11}")
        print(f"  {'-'*24} {'-'*6} {'-'*13} {'-'*11} {'-'*11}")
        for _, row in summary_df.iterrows():
            print(
                f"  {row['category']:<24} "
                f"{row['tasks']:>6} "
                f"{row['success_rate']:>13.2%} "
                f"{row['mean_score']:>11.2f} "
                f"{row['mean_steps']:>11.1f}"
            )
        print()

    output_path = save_task_results(task_df, Path(args.output_dir), evaluation_id)
    print("=== Output ===\n")
    print(f"  Task results: {output_path}")
    print()
    return 0 if evaluation.status == EvaluationStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
