from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable

from ..config import RunConfig
from ..scenarios.base import OperationResult, Scenario
from .collector import RunAccumulator, Sample
from .limiter import ConcurrencyLimiter
from .report import Report
from .stats import aggregate

LOGGER = logging.getLogger("dbbench.engine.orchestrator")


class ScenarioSetupError(Exception):
    """Raised when a scenario cannot establish its preconditions."""


class RunState(str, enum.Enum):
    IDLE = "idle"
    SETTING_UP = "setting-up"
    RUNNING = "running"
    TEARING_DOWN = "tearing-down"
    DONE = "done"
    FAILED = "failed"


class RunOrchestrator:
    """Drives one scenario through setup, the measured attempts and teardown.

    A setup failure aborts the run before any attempt is issued and surfaces
    as :class:`ScenarioSetupError`. Attempt and teardown failures are recorded
    or logged and the run still yields a :class:`Report`. Instances are
    single-use.
    """

    def __init__(
        self,
        scenario: Scenario,
        config: RunConfig,
        validate: bool = False,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._scenario = scenario
        self._config = config
        self._validate = validate
        self._clock = clock
        self.accumulator = RunAccumulator()
        self.state = RunState.IDLE
        self.validated: bool | None = None
        self.peak_in_flight = 0

    @property
    def config(self) -> RunConfig:
        return self._config

    async def run(self) -> Report:
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"run already started (state={self.state.value})")

        config = self._config
        LOGGER.info(
            "Running scenario '%s' with adapter '%s' (requests=%d, concurrency=%d, batch=%d)",
            config.scenario,
            config.adapter,
            config.requests,
            config.concurrency,
            config.batch_size,
        )

        self.state = RunState.SETTING_UP
        try:
            await self._scenario.setup()
        except Exception as exc:
            self.state = RunState.FAILED
            raise ScenarioSetupError(
                f"setup of scenario '{config.scenario}' failed for adapter "
                f"'{config.adapter}': {exc}"
            ) from exc

        self.state = RunState.RUNNING
        await self._run_attempts()

        if self._validate:
            await self._run_validation()

        self.state = RunState.TEARING_DOWN
        try:
            await self._scenario.teardown()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Teardown warning for adapter '%s': %s", config.adapter, exc)

        report = self._build_report()
        self.state = RunState.DONE
        return report

    async def _run_attempts(self) -> None:
        limiter = ConcurrencyLimiter(self._config.concurrency)
        started_at = self._clock()
        self.accumulator.mark_started(started_at)
        for _ in range(self._config.requests):
            limiter.admit(lambda: self._attempt(started_at))
        await limiter.drain()
        self.accumulator.mark_finished(self._clock())
        self.accumulator.freeze()
        self.peak_in_flight = limiter.peak_in_flight

    async def _attempt(self, run_started_at: float) -> None:
        started = self._clock()
        try:
            result = await self._exercise()
            finished = self._clock()
            outcome = OperationResult.coerce(result)
            sample = Sample(
                latency_ms=max(finished - started, 0.0) * 1000.0,
                start_offset_ms=max(started - run_started_at, 0.0) * 1000.0,
                documents_affected=outcome.documents_affected,
                operations_count=outcome.operations_count,
                bytes_processed=outcome.bytes_processed,
                tag=outcome.tag,
            )
        except (Exception, asyncio.CancelledError) as exc:  # noqa: BLE001
            if isinstance(exc, asyncio.CancelledError) and asyncio.current_task().cancelling():
                raise
            failures = self.accumulator.record_failure()
            if failures <= self._config.max_logged_failures:
                LOGGER.error("Request failed: %r", exc, exc_info=exc)
            elif failures == self._config.max_logged_failures + 1:
                LOGGER.error("Further request failures will be counted but not logged")
            return
        self.accumulator.add_sample(sample)

    async def _exercise(self) -> object:
        timeout = self._config.attempt_timeout
        if timeout is None:
            return await self._scenario.exercise()
        return await asyncio.wait_for(self._scenario.exercise(), timeout=timeout)

    async def _run_validation(self) -> None:
        try:
            self.validated = bool(await self._scenario.validate())
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Validation raised for adapter '%s': %s", self._config.adapter, exc)
            self.validated = False
        if not self.validated:
            LOGGER.warning(
                "Validation failed for scenario '%s' on adapter '%s'",
                self._config.scenario,
                self._config.adapter,
            )

    def _build_report(self) -> Report:
        statistics = aggregate(self.accumulator)
        duration = self.accumulator.duration_s
        qps = self._config.requests / duration if duration > 0 else 0.0
        return Report(
            adapter=self._config.adapter,
            scenario=self._config.scenario,
            requests=self._config.requests,
            concurrency=self._config.concurrency,
            batch_size=self._config.batch_size,
            duration=duration,
            statistics=statistics,
            qps=qps,
            tags=self.accumulator.summaries(),
        )
