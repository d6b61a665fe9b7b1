from __future__ import annotations

import collections
import threading
from dataclasses import asdict, dataclass

import pandas as pd

SAMPLE_COLUMNS = [
    "latency_ms",
    "start_offset_ms",
    "documents_affected",
    "operations_count",
    "bytes_processed",
    "tag",
]


@dataclass(frozen=True)
class Sample:
    """Outcome of one successful attempt."""

    latency_ms: float
    start_offset_ms: float
    documents_affected: int = 0
    operations_count: int = 0
    bytes_processed: int = 0
    tag: str | None = None

    def __post_init__(self) -> None:
        for name in SAMPLE_COLUMNS[:-1]:
            if getattr(self, name) < 0:
                raise ValueError(f"Sample.{name} must be non-negative")


class RunAccumulator:
    """Collects samples and failures for a single run.

    Samples are kept in completion order. Appends are serialised through a
    lock so the sample list and failure counter never lose updates, whatever
    the interleaving of the attempts feeding them.
    """

    def __init__(self) -> None:
        self._records_lock = threading.Lock()
        self._samples: list[Sample] = []
        self._failures = 0
        self._frozen = False
        self.started_at: float | None = None
        self.finished_at: float | None = None

    def mark_started(self, ts: float) -> None:
        with self._records_lock:
            self.started_at = ts

    def mark_finished(self, ts: float) -> None:
        with self._records_lock:
            self.finished_at = ts

    def add_sample(self, sample: Sample) -> None:
        with self._records_lock:
            self._ensure_mutable()
            self._samples.append(sample)

    def record_failure(self) -> int:
        """Count one failed attempt and return the running failure total."""
        with self._records_lock:
            self._ensure_mutable()
            self._failures += 1
            return self._failures

    def freeze(self) -> None:
        with self._records_lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def samples(self) -> tuple[Sample, ...]:
        with self._records_lock:
            return tuple(self._samples)

    @property
    def failures(self) -> int:
        with self._records_lock:
            return self._failures

    @property
    def duration_s(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return max(self.finished_at - self.started_at, 0.0)

    def summaries(self) -> dict[str, int]:
        with self._records_lock:
            counter = collections.Counter(
                sample.tag for sample in self._samples if sample.tag is not None
            )
        return dict(counter)

    def build_dataframe(self) -> pd.DataFrame:
        with self._records_lock:
            rows = [asdict(sample) for sample in self._samples]

        if not rows:
            return pd.DataFrame(columns=SAMPLE_COLUMNS)
        return pd.DataFrame(rows, columns=SAMPLE_COLUMNS)

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("RunAccumulator is frozen; the run has already settled")
