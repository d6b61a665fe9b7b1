from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .stats import RunStatistics

LOGGER = logging.getLogger("dbbench.engine.report")

DEFAULT_OUTPUT_NAME = "report.json"

# Persisted key -> RunStatistics attribute. The key order is the wire order.
STATISTIC_KEYS: dict[str, str] = {
    "total": "total",
    "min": "min",
    "average": "average",
    "max": "max",
    "p50": "p50",
    "p95": "p95",
    "p99": "p99",
    "throughput": "throughput",
    "histogram": "histogram",
    "errors": "errors",
    "documentsAffected": "documents_affected",
    "operationsCount": "operations_count",
    "bytesProcessed": "bytes_processed",
    "documentsPerSecond": "documents_per_second",
    "averageDocumentsPerOperation": "average_documents_per_operation",
    "averageBytesPerOperation": "average_bytes_per_operation",
}


@dataclass(frozen=True)
class Report:
    """Immutable result of one scenario/adapter run."""

    adapter: str
    scenario: str
    requests: int
    concurrency: int
    batch_size: int
    duration: float
    statistics: RunStatistics
    qps: float
    tags: dict[str, int] = field(default_factory=dict)

    @property
    def sample_count(self) -> int:
        return self.statistics.total

    @property
    def errors(self) -> int:
        return self.statistics.errors

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "adapter": self.adapter,
            "scenario": self.scenario,
            "requests": self.requests,
            "concurrency": self.concurrency,
            "batchSize": self.batch_size,
            "duration": self.duration,
        }
        for key, attribute in STATISTIC_KEYS.items():
            value = getattr(self.statistics, attribute)
            payload[key] = dict(value) if isinstance(value, dict) else value
        payload["qps"] = self.qps
        payload["tags"] = dict(self.tags)
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Report:
        statistics = RunStatistics(
            **{attribute: payload[key] for key, attribute in STATISTIC_KEYS.items() if key in payload}
        )
        return cls(
            adapter=payload["adapter"],
            scenario=payload["scenario"],
            requests=payload["requests"],
            concurrency=payload["concurrency"],
            batch_size=payload["batchSize"],
            duration=payload["duration"],
            statistics=statistics,
            qps=payload["qps"],
            tags=dict(payload.get("tags") or {}),
        )


def resolve_output_name(output: str, scenario: str, adapters: Sequence[str]) -> str:
    """Derive the report file name when the default output name is in use."""
    if output != DEFAULT_OUTPUT_NAME:
        return output
    suffix = f"-{adapters[0]}" if len(adapters) == 1 else "-all"
    return f"{scenario}{suffix}-report.json"


def write_reports(reports: Sequence[Report], path: Path) -> Path:
    """Persist one report as an object, several as an array."""
    if not reports:
        raise ValueError("no reports to write")
    path.parent.mkdir(parents=True, exist_ok=True)
    payloads = [report.to_dict() for report in reports]
    output = payloads[0] if len(payloads) == 1 else payloads
    with open(path, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=2)
    LOGGER.info("Results saved to %s", path)
    return path


def load_reports(path: Path) -> list[Report]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    return [Report.from_dict(item) for item in data]
