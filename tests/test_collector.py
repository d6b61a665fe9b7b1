"""Tests for the per-run sample accumulator."""

import asyncio

import pytest

from dbbench.engine.collector import SAMPLE_COLUMNS, RunAccumulator, Sample


class TestSample:
    def test_defaults(self):
        sample = Sample(latency_ms=1.5, start_offset_ms=0.0)
        assert sample.documents_affected == 0
        assert sample.operations_count == 0
        assert sample.bytes_processed == 0
        assert sample.tag is None

    @pytest.mark.parametrize(
        "field", ["latency_ms", "start_offset_ms", "documents_affected", "bytes_processed"]
    )
    def test_rejects_negative_values(self, field):
        values = {"latency_ms": 1.0, "start_offset_ms": 0.0, field: -1}
        with pytest.raises(ValueError, match=field):
            Sample(**values)


class TestRunAccumulator:
    def test_record_failure_returns_running_total(self):
        accumulator = RunAccumulator()
        assert [accumulator.record_failure() for _ in range(3)] == [1, 2, 3]
        assert accumulator.failures == 3

    def test_appends_after_freeze_are_rejected(self):
        accumulator = RunAccumulator()
        accumulator.freeze()

        with pytest.raises(RuntimeError, match="frozen"):
            accumulator.add_sample(Sample(latency_ms=1.0, start_offset_ms=0.0))
        with pytest.raises(RuntimeError, match="frozen"):
            accumulator.record_failure()
        assert accumulator.frozen

    def test_duration_requires_both_marks(self):
        accumulator = RunAccumulator()
        assert accumulator.duration_s == 0.0
        accumulator.mark_started(3.0)
        assert accumulator.duration_s == 0.0
        accumulator.mark_finished(4.5)
        assert accumulator.duration_s == pytest.approx(1.5)

    def test_samples_kept_in_completion_order(self):
        accumulator = RunAccumulator()
        for latency in (3.0, 1.0, 2.0):
            accumulator.add_sample(Sample(latency_ms=latency, start_offset_ms=0.0))
        assert [sample.latency_ms for sample in accumulator.samples] == [3.0, 1.0, 2.0]

    def test_summaries_count_tags(self):
        accumulator = RunAccumulator()
        for tag in ("read", "write", "read", None):
            accumulator.add_sample(Sample(latency_ms=1.0, start_offset_ms=0.0, tag=tag))
        assert accumulator.summaries() == {"read": 2, "write": 1}

    def test_build_dataframe(self):
        accumulator = RunAccumulator()
        accumulator.add_sample(
            Sample(latency_ms=2.0, start_offset_ms=5.0, documents_affected=3, tag="write")
        )
        accumulator.add_sample(Sample(latency_ms=4.0, start_offset_ms=6.0))

        df = accumulator.build_dataframe()

        assert list(df.columns) == SAMPLE_COLUMNS
        assert len(df) == 2
        assert df["latency_ms"].mean() == pytest.approx(3.0)
        assert df["documents_affected"].sum() == 3

    def test_empty_dataframe_keeps_columns(self):
        df = RunAccumulator().build_dataframe()
        assert df.empty
        assert list(df.columns) == SAMPLE_COLUMNS

    @pytest.mark.asyncio
    async def test_concurrent_appends_lose_nothing(self):
        accumulator = RunAccumulator()

        async def attempt(index):
            await asyncio.sleep(0)
            if index % 4 == 0:
                accumulator.record_failure()
            else:
                accumulator.add_sample(Sample(latency_ms=float(index), start_offset_ms=0.0))

        await asyncio.gather(*(attempt(index) for index in range(200)))

        assert accumulator.failures == 50
        assert len(accumulator.samples) == 150
