from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Sequence

from .adapters import AdapterType

LOGGER = logging.getLogger("dbbench.config")

DEFAULT_REQUESTS = 1000
DEFAULT_CONCURRENCY = 20
DEFAULT_BATCH_SIZE = 250
DEFAULT_MAX_LOGGED_FAILURES = 5

BULK_SCENARIO = "bulk-insert"
SINGLE_BATCH_SCENARIOS = ("balanced-read-write", "read-heavy", "write-heavy")
ESTIMATED_DOCUMENT_BYTES = 250


@dataclass(frozen=True)
class RunConfig:
    """Parameters of one scenario/adapter run."""

    scenario: str
    adapter: str
    requests: int = DEFAULT_REQUESTS
    concurrency: int = DEFAULT_CONCURRENCY
    batch_size: int = DEFAULT_BATCH_SIZE
    output: str = "report.json"
    attempt_timeout: float | None = None
    max_logged_failures: int = DEFAULT_MAX_LOGGED_FAILURES
    seed: int | None = None

    def __post_init__(self) -> None:
        for name in ("requests", "concurrency", "batch_size"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError(f"attempt_timeout must be > 0, got {self.attempt_timeout}")
        if self.max_logged_failures < 0:
            raise ValueError(
                f"max_logged_failures must be >= 0, got {self.max_logged_failures}"
            )

    @property
    def total_documents(self) -> int:
        return self.batch_size * self.requests


@dataclass(frozen=True)
class StressConfig:
    """Named preset selecting a scenario and its load parameters."""

    scenario: str
    adapters: tuple[str, ...]
    batch_size: int
    requests: int
    concurrency: int
    description: str

    @property
    def total_documents(self) -> int:
        return self.batch_size * self.requests

    def estimated_duration_s(self) -> int:
        return math.ceil((self.requests / self.concurrency) * 0.1)

    def run_config(self, adapter: str, output: str) -> RunConfig:
        return RunConfig(
            scenario=self.scenario,
            adapter=adapter,
            requests=self.requests,
            concurrency=self.concurrency,
            batch_size=self.batch_size,
            output=output,
        )


ALL_ADAPTERS: tuple[str, ...] = (AdapterType.RETHINKDB.value, AdapterType.MEMORY.value)

_light_bulk = StressConfig(
    scenario=BULK_SCENARIO,
    adapters=ALL_ADAPTERS,
    batch_size=50,
    requests=100,
    concurrency=5,
    description="Light bulk insert test - 5,000 documents total",
)
_balanced_light = StressConfig(
    scenario="balanced-read-write",
    adapters=ALL_ADAPTERS,
    batch_size=1,
    requests=1000,
    concurrency=10,
    description="Light balanced read-write test - 70% reads, 30% writes",
)
_read_heavy = StressConfig(
    scenario="read-heavy",
    adapters=ALL_ADAPTERS,
    batch_size=1,
    requests=2000,
    concurrency=15,
    description="Pure read-heavy workload test - 90% reads, 10% writes with complex queries",
)
_write_heavy = StressConfig(
    scenario="write-heavy",
    adapters=ALL_ADAPTERS,
    batch_size=1,
    requests=2000,
    concurrency=15,
    description="Pure write-heavy workload test - 90% writes, 10% reads with mixed operations",
)

STRESS_TEST_CONFIGS: dict[str, StressConfig] = {
    "light-bulk": _light_bulk,
    "medium-bulk": dataclasses.replace(
        _light_bulk,
        batch_size=250,
        requests=200,
        concurrency=10,
        description="Medium bulk insert test - 50,000 documents total",
    ),
    "heavy-bulk": dataclasses.replace(
        _light_bulk,
        batch_size=500,
        requests=500,
        concurrency=20,
        description="Heavy bulk insert test - 250,000 documents total",
    ),
    "extreme-bulk": dataclasses.replace(
        _light_bulk,
        batch_size=1000,
        requests=1000,
        concurrency=50,
        description="Extreme bulk insert test - 1,000,000 documents total",
    ),
    "single-vs-bulk": StressConfig(
        scenario="basic-insert",
        adapters=ALL_ADAPTERS,
        batch_size=1,
        requests=10000,
        concurrency=20,
        description="Single insert comparison test - 10,000 individual inserts",
    ),
    "memory-stress": dataclasses.replace(
        _light_bulk,
        batch_size=2000,
        requests=100,
        concurrency=5,
        description="Memory stress test - Large batches with low concurrency",
    ),
    "concurrency-stress": dataclasses.replace(
        _light_bulk,
        batch_size=100,
        requests=500,
        concurrency=100,
        description="Concurrency stress test - High parallel load",
    ),
    "balanced-light": _balanced_light,
    "balanced-medium": dataclasses.replace(
        _balanced_light,
        requests=5000,
        concurrency=20,
        description="Medium balanced read-write test - Mixed workload",
    ),
    "balanced-heavy": dataclasses.replace(
        _balanced_light,
        requests=10000,
        concurrency=50,
        description="Heavy balanced read-write test - High concurrency mixed workload",
    ),
    "read-heavy-balanced": dataclasses.replace(
        _balanced_light,
        requests=8000,
        concurrency=30,
        description="Read-heavy workload test using balanced scenario - 70% reads, 30% writes",
    ),
    "read-heavy": _read_heavy,
    "read-intensive": dataclasses.replace(
        _read_heavy,
        requests=5000,
        concurrency=25,
        description="Intensive read workload test - High-volume read operations",
    ),
    "read-extreme": dataclasses.replace(
        _read_heavy,
        requests=10000,
        concurrency=40,
        description="Extreme read workload test - Maximum read throughput testing",
    ),
    "write-heavy": _write_heavy,
    "write-intensive": dataclasses.replace(
        _write_heavy,
        requests=5000,
        concurrency=25,
        description="Intensive write workload test - High-volume write operations",
    ),
    "write-extreme": dataclasses.replace(
        _write_heavy,
        requests=8000,
        concurrency=35,
        description="Extreme write workload test - Maximum write throughput testing",
    ),
}

RECOMMENDED_PROGRESSION: tuple[str, ...] = (
    "light-bulk",
    "medium-bulk",
    "single-vs-bulk",
    "balanced-light",
    "read-heavy",
    "write-heavy",
    "balanced-medium",
    "heavy-bulk",
    "read-intensive",
    "write-intensive",
    "read-heavy-balanced",
    "memory-stress",
    "concurrency-stress",
    "balanced-heavy",
    "read-extreme",
    "write-extreme",
    "extreme-bulk",
)


def get_stress_config(name: str) -> StressConfig:
    try:
        return STRESS_TEST_CONFIGS[name]
    except KeyError:
        raise ValueError(
            f"Unknown stress test config: {name}. "
            f"Available configs: {', '.join(STRESS_TEST_CONFIGS)}"
        ) from None


def get_recommended_progression() -> list[str]:
    return list(RECOMMENDED_PROGRESSION)


def generate_runner_command(name: str, adapters: Sequence[str] | None = None) -> str:
    """Equivalent ``dbbench`` command line for a preset."""
    config = get_stress_config(name)
    adapter_list = ",".join(adapters or config.adapters)
    return (
        f"dbbench --scenario {config.scenario} --adapter {adapter_list} "
        f"--batch-size {config.batch_size} --requests {config.requests} "
        f"--concurrency {config.concurrency} --out {name}-report.json"
    )


def validate_batch_size(batch_size: int, scenario: str) -> bool:
    if scenario in SINGLE_BATCH_SCENARIOS and batch_size != 1:
        LOGGER.warning("%s scenarios should use batch size 1, got %d", scenario, batch_size)
        return False

    if scenario == BULK_SCENARIO:
        min_recommended, max_recommended = 10, 5000
    else:
        min_recommended, max_recommended = 1, 1

    if batch_size < min_recommended or batch_size > max_recommended:
        LOGGER.warning(
            "Batch size %d is outside recommended range for %s (%d-%d)",
            batch_size,
            scenario,
            min_recommended,
            max_recommended,
        )
        return False
    return True


def estimate_memory_usage(batch_size: int, concurrency: int) -> str:
    total_bytes = batch_size * ESTIMATED_DOCUMENT_BYTES * concurrency
    if total_bytes < 1024 * 1024:
        return f"~{math.ceil(total_bytes / 1024)}KB"
    return f"~{math.ceil(total_bytes / (1024 * 1024))}MB"
