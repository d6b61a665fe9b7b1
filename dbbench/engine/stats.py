from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from .collector import RunAccumulator, Sample

HISTOGRAM_BUCKET_MS = 10
PERCENTILES = {"p50": 0.5, "p95": 0.95, "p99": 0.99}


@dataclass(frozen=True)
class RunStatistics:
    """Latency distribution, throughput series and volume totals of one run."""

    total: int = 0
    min: float = 0.0
    average: float = 0.0
    max: float = 0.0
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    throughput: dict[str, int] = field(default_factory=dict)
    histogram: dict[str, int] = field(default_factory=dict)
    errors: int = 0
    documents_affected: int = 0
    operations_count: int = 0
    bytes_processed: int = 0
    documents_per_second: float = 0.0
    average_documents_per_operation: float = 0.0
    average_bytes_per_operation: float = 0.0


def percentile(sorted_latencies: Sequence[float], fraction: float) -> float:
    """Value at index ``floor(fraction * n)`` of an ascending sequence.

    No interpolation; the index is clamped into range and an empty sequence
    yields 0.
    """
    count = len(sorted_latencies)
    if count == 0:
        return 0.0
    index = min(max(math.floor(fraction * count), 0), count - 1)
    return float(sorted_latencies[index])


def histogram_label(latency_ms: float) -> str:
    bucket = math.floor(latency_ms / HISTOGRAM_BUCKET_MS) * HISTOGRAM_BUCKET_MS
    return f"{bucket}-{bucket + HISTOGRAM_BUCKET_MS - 1}"


def throughput_series(samples: Sequence[Sample]) -> dict[str, int]:
    """Count of samples started within each whole second of the run."""
    counts: dict[int, int] = {}
    for sample in samples:
        second = math.floor(sample.start_offset_ms / 1000.0)
        counts[second] = counts.get(second, 0) + 1
    return {str(second): counts[second] for second in sorted(counts)}


def latency_histogram(sorted_latencies: Sequence[float]) -> dict[str, int]:
    histogram: dict[str, int] = {}
    for latency in sorted_latencies:
        label = histogram_label(latency)
        histogram[label] = histogram.get(label, 0) + 1
    return histogram


def calculate_stats(
    samples: Sequence[Sample],
    errors: int = 0,
    duration_s: float = 0.0,
) -> RunStatistics:
    """Aggregate a settled sample set.

    ``samples`` must be in completion order; every sum is taken in that
    order so the result is reproducible for the same run.
    """
    latencies = [sample.latency_ms for sample in samples]
    total = len(latencies)
    latency_sum = sum(latencies)
    ordered = sorted(latencies)

    documents = sum(sample.documents_affected for sample in samples)
    operations = sum(sample.operations_count for sample in samples)
    bytes_processed = sum(sample.bytes_processed for sample in samples)

    return RunStatistics(
        total=total,
        min=float(ordered[0]) if total else 0.0,
        average=latency_sum / total if total else 0.0,
        max=float(ordered[-1]) if total else 0.0,
        p50=percentile(ordered, PERCENTILES["p50"]),
        p95=percentile(ordered, PERCENTILES["p95"]),
        p99=percentile(ordered, PERCENTILES["p99"]),
        throughput=throughput_series(samples),
        histogram=latency_histogram(ordered),
        errors=errors,
        documents_affected=documents,
        operations_count=operations,
        bytes_processed=bytes_processed,
        documents_per_second=documents / duration_s if duration_s > 0 else 0.0,
        average_documents_per_operation=documents / operations if operations > 0 else 0.0,
        average_bytes_per_operation=bytes_processed / operations if operations > 0 else 0.0,
    )


def aggregate(accumulator: RunAccumulator) -> RunStatistics:
    if not accumulator.frozen:
        raise RuntimeError("cannot aggregate a run that is still accepting samples")
    return calculate_stats(
        accumulator.samples,
        errors=accumulator.failures,
        duration_s=accumulator.duration_s,
    )
