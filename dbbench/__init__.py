"""
Micro-benchmark driver for document stores.

This package applies a bounded-concurrency workload against a pluggable
backend, aggregates latency and throughput statistics per run, and renders
charts summarising the persisted reports.
"""

from .main import cli

__all__ = ["cli"]
