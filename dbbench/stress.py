from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .config import (
    STRESS_TEST_CONFIGS,
    estimate_memory_usage,
    generate_runner_command,
    get_recommended_progression,
    get_stress_config,
)
from .main import main as run_benchmark
from .main import setup_logging

LOGGER = logging.getLogger("dbbench.stress")

EPILOG = """\
examples:
  dbbench-stress --list
  dbbench-stress --config light-bulk
  dbbench-stress --config balanced-medium --adapter memory
  dbbench-stress --compare light-bulk,medium-bulk,heavy-bulk
  dbbench-stress --recommended
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stress test runner for named benchmark presets",
        epilog=EPILOG + f"\navailable configurations:\n  {', '.join(STRESS_TEST_CONFIGS)}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", help="Run a specific stress test configuration")
    parser.add_argument(
        "-l", "--list", action="store_true", help="List all available stress test configurations"
    )
    parser.add_argument(
        "-r",
        "--recommended",
        action="store_true",
        help="Show recommended stress test progression",
    )
    parser.add_argument("--compare", help="Compare multiple configurations (comma-separated)")
    parser.add_argument(
        "-a", "--adapter", help="Override the preset's adapters (comma-separated)"
    )
    parser.add_argument("--results-dir", help="Directory to store the preset report")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


def format_config_listing() -> str:
    lines = ["", "Available stress test configurations:", ""]
    for name, config in STRESS_TEST_CONFIGS.items():
        lines.extend(
            [
                f"{name}:",
                f"  {config.description}",
                f"  Scenario: {config.scenario}",
                f"  Batch Size: {config.batch_size:,}",
                f"  Requests: {config.requests:,}",
                f"  Concurrency: {config.concurrency}",
                f"  Total Documents: {config.total_documents:,}",
                f"  Estimated Memory: {estimate_memory_usage(config.batch_size, config.concurrency)}",
                f"  Command: {generate_runner_command(name)}",
                "",
            ]
        )
    return "\n".join(lines)


def format_recommended() -> str:
    lines = ["", "Recommended stress test progression:", ""]
    for index, name in enumerate(get_recommended_progression(), start=1):
        config = STRESS_TEST_CONFIGS[name]
        lines.extend(
            [
                f"{index}. {name}",
                f"   {config.description}",
                f"   Command: dbbench-stress --config {name}",
                "",
            ]
        )
    return "\n".join(lines)


def format_comparison(names: Sequence[str]) -> str:
    configs = [(name, get_stress_config(name)) for name in names]
    lines = [
        "",
        "Stress Test Configuration Comparison:",
        "",
        "Config Name".ljust(20)
        + "Batch Size".ljust(12)
        + "Requests".ljust(10)
        + "Concurrency".ljust(12)
        + "Total Docs".ljust(12)
        + "Est. Duration",
        "-" * 80,
    ]
    for name, config in configs:
        lines.append(
            name.ljust(20)
            + f"{config.batch_size:,}".ljust(12)
            + f"{config.requests:,}".ljust(10)
            + str(config.concurrency).ljust(12)
            + f"{config.total_documents:,}".ljust(12)
            + f"~{config.estimated_duration_s()}s"
        )
    lines.append("")
    return "\n".join(lines)


def runner_argv(name: str, adapters: Sequence[str] | None = None) -> list[str]:
    """Arguments for :func:`dbbench.main.main` equivalent to the preset."""
    config = get_stress_config(name)
    return [
        "--scenario",
        config.scenario,
        "--adapter",
        ",".join(adapters or config.adapters),
        "--batch-size",
        str(config.batch_size),
        "--requests",
        str(config.requests),
        "--concurrency",
        str(config.concurrency),
        "--out",
        f"{name}-report.json",
    ]


def run_preset(
    name: str,
    adapters: Sequence[str] | None = None,
    extra_args: Sequence[str] = (),
) -> int:
    config = get_stress_config(name)
    LOGGER.info("Running stress test: %s", name)
    LOGGER.info("Description: %s", config.description)
    argv = runner_argv(name, adapters) + list(extra_args)
    LOGGER.info("Executing: dbbench %s", " ".join(argv))

    exit_code = run_benchmark(argv)
    if exit_code != 0:
        LOGGER.error("Stress test failed with exit code %d", exit_code)
        return exit_code
    LOGGER.info("Stress test '%s' completed successfully!", name)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.list:
        print(format_config_listing())
        return 0

    if args.recommended:
        print(format_recommended())
        return 0

    if args.compare:
        names = [name.strip() for name in args.compare.split(",") if name.strip()]
        try:
            print(format_comparison(names))
        except ValueError as exc:
            LOGGER.error("Error comparing configs: %s", exc)
            return 1
        return 0

    if args.config:
        if args.config not in STRESS_TEST_CONFIGS:
            LOGGER.error("Unknown stress test configuration: %s", args.config)
            LOGGER.error("Available configurations: %s", ", ".join(STRESS_TEST_CONFIGS))
            return 1
        adapters = (
            [item.strip() for item in args.adapter.split(",") if item.strip()]
            if args.adapter
            else None
        )
        extra_args = ["--log-level", args.log_level]
        if args.results_dir:
            extra_args += ["--results-dir", args.results_dir]
        return run_preset(args.config, adapters, extra_args)

    print("No action specified. Use --help for usage information.")
    parser.print_help()
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
