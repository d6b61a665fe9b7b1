from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .engine.report import Report

LOGGER = logging.getLogger("dbbench.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["xtick.labelsize"] = 10
plt.rcParams["ytick.labelsize"] = 10
plt.rcParams["legend.fontsize"] = 9
plt.rcParams["figure.titlesize"] = 14

ADAPTER_COLORS = {
    "rethinkdb": "#2E86AB",
    "memory": "#6A994E",
}
FALLBACK_COLOR = "#808080"
PERCENTILE_COLUMNS = ["min", "p50", "p95", "p99", "max"]


def summary_frame(reports: Sequence[Report]) -> pd.DataFrame:
    """One row per report with the headline metrics."""
    rows = []
    for report in reports:
        stats = report.statistics
        rows.append(
            {
                "adapter": report.adapter,
                "scenario": report.scenario,
                "qps": report.qps,
                "documents_per_second": stats.documents_per_second,
                "errors": stats.errors,
                "min": stats.min,
                "average": stats.average,
                "p50": stats.p50,
                "p95": stats.p95,
                "p99": stats.p99,
                "max": stats.max,
            }
        )
    return pd.DataFrame(rows)


def histogram_frame(report: Report) -> pd.DataFrame:
    rows = [
        {"bucket": label, "floor_ms": int(label.split("-")[0]), "count": count}
        for label, count in report.statistics.histogram.items()
    ]
    if not rows:
        return pd.DataFrame(columns=["bucket", "floor_ms", "count"])
    return pd.DataFrame(rows).sort_values("floor_ms", ignore_index=True)


def throughput_frame(report: Report) -> pd.DataFrame:
    rows = [
        {"second": int(second), "requests": count}
        for second, count in report.statistics.throughput.items()
    ]
    if not rows:
        return pd.DataFrame(columns=["second", "requests"])
    return pd.DataFrame(rows).sort_values("second", ignore_index=True)


def render_report_charts(report: Report, output_dir: Path) -> list[Path]:
    """Render the latency histogram and throughput series of one report."""
    output_dir.mkdir(parents=True, exist_ok=True)
    stem = f"{report.scenario}-{report.adapter}"
    paths = []

    histogram = histogram_frame(report)
    if histogram.empty:
        LOGGER.warning("No latency data available for %s", stem)
    else:
        path = output_dir / f"{stem}-latency.png"
        _render_histogram(report, histogram, path)
        paths.append(path)

    throughput = throughput_frame(report)
    if throughput.empty:
        LOGGER.warning("No throughput data available for %s", stem)
    else:
        path = output_dir / f"{stem}-throughput.png"
        _render_throughput(report, throughput, path)
        paths.append(path)
    return paths


def render_comparison_charts(reports: Sequence[Report], output_dir: Path, stem: str) -> list[Path]:
    """Render cross-adapter comparisons for reports of one scenario."""
    if len(reports) < 2:
        return []
    output_dir.mkdir(parents=True, exist_ok=True)
    frame = summary_frame(reports)

    rates_path = output_dir / f"{stem}-rates.png"
    _render_rates(frame, rates_path)

    heatmap_path = output_dir / f"{stem}-percentiles.png"
    _render_percentile_heatmap(frame, heatmap_path)
    return [rates_path, heatmap_path]


def _color(adapter: str) -> str:
    return ADAPTER_COLORS.get(adapter, FALLBACK_COLOR)


def _render_histogram(report: Report, frame: pd.DataFrame, chart_path: Path) -> None:
    """Render the latency bucket counts as a bar chart."""
    fig, ax = plt.subplots(figsize=(12, 6))

    ax.bar(
        frame["bucket"],
        frame["count"],
        color=_color(report.adapter),
        alpha=0.8,
        edgecolor="white",
        linewidth=1.5,
    )

    # Mark the percentiles on the bucket axis
    labels = list(frame["bucket"])
    floors = frame["floor_ms"].to_numpy()
    for name, value, style in (
        ("p50", report.statistics.p50, "-"),
        ("p95", report.statistics.p95, "--"),
        ("p99", report.statistics.p99, ":"),
    ):
        position = int(np.searchsorted(floors, value, side="right")) - 1
        position = min(max(position, 0), len(labels) - 1)
        ax.axvline(position, color="#C73E1D", linestyle=style, linewidth=1.5, label=f"{name} {value:.1f}ms")

    ax.set_xlabel("Latency bucket (ms)", fontweight="semibold")
    ax.set_ylabel("Requests", fontweight="semibold")
    ax.set_title(
        f"Latency Distribution: {report.scenario} on {report.adapter}", fontweight="bold", pad=15
    )
    ax.legend(loc="upper right", frameon=True, fancybox=True, shadow=True)
    ax.grid(True, alpha=0.3, axis="y", linestyle="--")
    if len(labels) > 20:
        ax.set_xticks(range(0, len(labels), max(len(labels) // 20, 1)))
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)


def _render_throughput(report: Report, frame: pd.DataFrame, chart_path: Path) -> None:
    """Render requests started per second of run time."""
    fig, ax = plt.subplots(figsize=(10, 6))

    ax.plot(
        frame["second"],
        frame["requests"],
        marker="o",
        linewidth=2.5,
        markersize=6,
        color=_color(report.adapter),
    )
    ax.axhline(report.qps, color="#F18F01", linestyle="--", linewidth=1.5, label=f"QPS {report.qps:.1f}")
    ax.set_xlabel("Run time (s)", fontweight="semibold")
    ax.set_ylabel("Requests started", fontweight="semibold")
    ax.set_title(f"Throughput: {report.scenario} on {report.adapter}", fontweight="bold", pad=15)
    ax.set_ylim(bottom=0)
    ax.legend(loc="lower right")
    ax.grid(True, alpha=0.3, linestyle="--")

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)


def _render_rates(frame: pd.DataFrame, chart_path: Path) -> None:
    """Render QPS and documents/second side by side per adapter."""
    fig, (qps_ax, dps_ax) = plt.subplots(1, 2, figsize=(12, 6))
    colors = [_color(adapter) for adapter in frame["adapter"]]

    for ax, column, label in (
        (qps_ax, "qps", "Queries per second"),
        (dps_ax, "documents_per_second", "Documents per second"),
    ):
        bars = ax.bar(
            frame["adapter"],
            frame[column],
            color=colors,
            alpha=0.8,
            edgecolor="white",
            linewidth=2,
        )
        ax.set_ylabel(label, fontweight="semibold")
        ax.grid(True, alpha=0.3, axis="y", linestyle="--")

        # Add value labels on bars
        for bar in bars:
            height = bar.get_height()
            ax.text(
                bar.get_x() + bar.get_width() / 2.0,
                height,
                f"{height:.1f}",
                ha="center",
                va="bottom",
                fontweight="semibold",
            )

    fig.suptitle(f"Adapter Comparison: {frame['scenario'].iloc[0]}", fontweight="bold")
    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)


def _render_percentile_heatmap(frame: pd.DataFrame, chart_path: Path) -> None:
    """Render a heatmap of latency percentiles per adapter."""
    fig, ax = plt.subplots(figsize=(10, 6))

    matrix_data = frame.set_index("adapter")[PERCENTILE_COLUMNS]
    sns.heatmap(
        matrix_data,
        annot=True,
        fmt=".1f",
        cmap="YlOrRd",
        cbar_kws={"label": "Latency (ms)"},
        ax=ax,
    )

    ax.set_xlabel("Statistic", fontweight="semibold")
    ax.set_ylabel("Adapter", fontweight="semibold")
    ax.set_title("Latency Percentiles by Adapter", fontweight="bold", pad=15)

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
