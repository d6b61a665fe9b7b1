"""Benchmark execution engine: admission control, sampling and aggregation."""

from .collector import RunAccumulator, Sample
from .limiter import ConcurrencyLimiter
from .orchestrator import RunOrchestrator, RunState, ScenarioSetupError
from .report import Report, load_reports, resolve_output_name, write_reports
from .stats import RunStatistics, aggregate, calculate_stats, percentile

__all__ = [
    "ConcurrencyLimiter",
    "Report",
    "RunAccumulator",
    "RunOrchestrator",
    "RunState",
    "RunStatistics",
    "Sample",
    "ScenarioSetupError",
    "aggregate",
    "calculate_stats",
    "load_reports",
    "percentile",
    "resolve_output_name",
    "write_reports",
]
