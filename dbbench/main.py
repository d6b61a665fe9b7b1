from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Sequence

from .adapters import AdapterType, create_store
from .config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_LOGGED_FAILURES,
    DEFAULT_REQUESTS,
    RunConfig,
    validate_batch_size,
)
from .engine import (
    Report,
    RunAccumulator,
    RunOrchestrator,
    ScenarioSetupError,
    resolve_output_name,
    write_reports,
)
from .scenarios import available_adapters, available_scenarios, create_scenario

LOGGER = logging.getLogger("dbbench")


@dataclass
class CompletedRun:
    report: Report
    accumulator: RunAccumulator
    validated: bool | None = None


@dataclass
class SuiteResult:
    runs: list[CompletedRun] = field(default_factory=list)
    failed_adapters: list[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def reports(self) -> list[Report]:
        return [run.report for run in self.runs]

    @property
    def validation_failed(self) -> bool:
        return any(run.validated is False for run in self.runs)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"invalid {name} value {value!r}; defaulting to {default}", file=sys.stderr)
        return default


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Document store micro-benchmark runner")
    parser.add_argument(
        "-s",
        "--scenario",
        help=f"Scenario to run ({', '.join(available_scenarios())})",
    )
    parser.add_argument(
        "-a",
        "--adapter",
        help="Comma-separated adapters to run; defaults to every adapter of the scenario",
    )
    parser.add_argument(
        "-r", "--requests", type=int, default=_env_int("BENCH_REQUESTS", DEFAULT_REQUESTS)
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        default=_env_int("BENCH_CONCURRENCY", DEFAULT_CONCURRENCY),
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        default=_env_int("BENCH_BATCH_SIZE", DEFAULT_BATCH_SIZE),
    )
    parser.add_argument("-o", "--out", default="report.json", help="Report file name")
    parser.add_argument(
        "--results-dir",
        default=os.environ.get("BENCH_RESULTS_DIR", "results"),
        help="Directory to store reports, sample CSV files and charts",
    )
    parser.add_argument("--seed", type=int, help="Seed for the workload random generator")
    parser.add_argument(
        "--attempt-timeout",
        type=float,
        help="Seconds after which a single attempt is cancelled and counted as failed",
    )
    parser.add_argument(
        "--max-logged-failures",
        type=int,
        default=DEFAULT_MAX_LOGGED_FAILURES,
        help="Number of failed attempts per run logged with details",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Run the scenario's validation before teardown; a mismatch fails the invocation",
    )
    parser.add_argument(
        "--save-samples",
        action="store_true",
        help="Write the raw samples of each run as CSV next to the report",
    )
    parser.add_argument("--charts", action="store_true", help="Render charts for the reports")
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Keep running remaining adapters after a fatal setup error",
    )
    parser.add_argument(
        "--provision",
        action="store_true",
        help="Start backend containers through Docker for the duration of the run",
    )
    parser.add_argument(
        "--backend-image",
        default=os.environ.get("BENCH_BACKEND_IMAGE"),
        help="Docker image for the provisioned backend",
    )
    parser.add_argument(
        "--rethinkdb-host", default=os.environ.get("RETHINKDB_HOST", "127.0.0.1")
    )
    parser.add_argument(
        "--rethinkdb-port", type=int, default=_env_int("RETHINKDB_PORT", 28015)
    )
    parser.add_argument(
        "--memory-latency-ms",
        type=float,
        default=0.0,
        help="Simulated per-operation latency of the memory adapter",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("BENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def resolve_adapters(scenario: str, adapter_arg: str | None) -> list[str]:
    supported = available_adapters(scenario)
    if not adapter_arg:
        return supported
    adapters = [item.strip() for item in adapter_arg.split(",") if item.strip()]
    for adapter in adapters:
        if adapter not in supported:
            raise ValueError(f"Scenario '{scenario}' not available for adapter '{adapter}'")
    return adapters


def build_run_configs(args: argparse.Namespace, adapters: Sequence[str]) -> list[RunConfig]:
    return [
        RunConfig(
            scenario=args.scenario,
            adapter=adapter,
            requests=args.requests,
            concurrency=args.concurrency,
            batch_size=args.batch_size,
            output=args.out,
            attempt_timeout=args.attempt_timeout,
            max_logged_failures=args.max_logged_failures,
            seed=args.seed,
        )
        for adapter in adapters
    ]


def store_options(args: argparse.Namespace) -> dict[str, dict[str, Any]]:
    return {
        AdapterType.MEMORY.value: {"latency_ms": args.memory_latency_ms},
        AdapterType.RETHINKDB.value: {
            "host": args.rethinkdb_host,
            "port": args.rethinkdb_port,
        },
    }


async def run_suite(
    configs: Sequence[RunConfig],
    options: dict[str, dict[str, Any]] | None = None,
    validate: bool = False,
    continue_on_error: bool = False,
) -> SuiteResult:
    """Run the configured adapters back-to-back for one scenario."""
    options = options or {}
    result = SuiteResult()
    for config in configs:
        LOGGER.info("--- Starting %s ---", config.adapter)
        store = create_store(config.adapter, **options.get(config.adapter, {}))
        scenario = create_scenario(config.scenario, store, config.batch_size, config.seed)
        orchestrator = RunOrchestrator(scenario, config, validate=validate)
        try:
            report = await orchestrator.run()
        except ScenarioSetupError as exc:
            LOGGER.error("%s", exc)
            result.failed_adapters.append(config.adapter)
            if not continue_on_error:
                result.aborted = True
                return result
            continue

        stats = report.statistics
        LOGGER.info(
            "Completed %s: QPS=%.2f, DPS=%.2f, Docs=%d, Errors=%d, Duration=%.2fs",
            config.adapter,
            report.qps,
            stats.documents_per_second,
            stats.documents_affected,
            stats.errors,
            report.duration,
        )
        result.runs.append(
            CompletedRun(
                report=report,
                accumulator=orchestrator.accumulator,
                validated=orchestrator.validated,
            )
        )
    return result


@contextlib.contextmanager
def provision_backends(
    adapters: Sequence[str], image: str | None = None
) -> Iterator[None]:
    from .docker_control import DEFAULT_BACKEND_PORTS, BackendConfig, BackendContainerManager

    containerised = [adapter for adapter in adapters if adapter in DEFAULT_BACKEND_PORTS]
    if not containerised:
        yield
        return

    manager = BackendContainerManager()
    with contextlib.ExitStack() as stack:
        for adapter in containerised:
            stack.enter_context(manager.run(BackendConfig.for_adapter(adapter, image)))
        yield


def persist_results(
    result: SuiteResult,
    args: argparse.Namespace,
    adapters: Sequence[str],
) -> Path:
    results_dir = Path(args.results_dir)
    output_name = resolve_output_name(args.out, args.scenario, adapters)
    report_path = write_reports(result.reports, results_dir / output_name)
    stem = Path(output_name).stem

    if args.save_samples:
        for run in result.runs:
            samples_path = results_dir / f"{stem}-{run.report.adapter}-samples.csv"
            df = run.accumulator.build_dataframe()
            df.to_csv(samples_path, index=False)
            LOGGER.info("Saved %d samples to %s", len(df), samples_path)

    if args.charts:
        from .charts import render_comparison_charts, render_report_charts

        for report in result.reports:
            render_report_charts(report, results_dir)
        render_comparison_charts(result.reports, results_dir, stem)
    return report_path


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    if not args.scenario:
        LOGGER.error("--scenario is required")
        return 1

    try:
        adapters = resolve_adapters(args.scenario, args.adapter)
        configs = build_run_configs(args, adapters)
    except ValueError as exc:
        LOGGER.error("Error: %s", exc)
        return 1

    validate_batch_size(args.batch_size, args.scenario)
    LOGGER.info("Benchmark output directory: %s", args.results_dir)
    LOGGER.info("Adapters: %s", ", ".join(adapters))

    provisioning = (
        provision_backends(adapters, args.backend_image)
        if args.provision
        else contextlib.nullcontext()
    )
    with provisioning:
        result = asyncio.run(
            run_suite(
                configs,
                options=store_options(args),
                validate=args.validate,
                continue_on_error=args.continue_on_error,
            )
        )

    if result.aborted:
        return 1
    if result.runs:
        persist_results(result, args, adapters)
    else:
        LOGGER.error("No adapter completed; nothing to save")

    if result.failed_adapters:
        LOGGER.error("Setup failed for adapter(s): %s", ", ".join(result.failed_adapters))
        return 1
    if result.validation_failed:
        return 1
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
