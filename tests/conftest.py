from __future__ import annotations

import asyncio
from typing import Any

import pytest

from dbbench.adapters import MemoryStore
from dbbench.config import RunConfig
from dbbench.scenarios.base import OperationResult, Scenario


class ScriptedScenario(Scenario):
    """Scenario whose lifecycle behaviour is driven by the test."""

    name = "scripted"
    table_name = "scripted"

    def __init__(
        self,
        delay_s: float = 0.001,
        fail_when=None,
        error: type[BaseException] = RuntimeError,
        setup_error: Exception | None = None,
        teardown_error: Exception | None = None,
        validate_result: Any = True,
        result: Any = None,
    ) -> None:
        super().__init__(MemoryStore())
        self.delay_s = delay_s
        self.fail_when = fail_when
        self.error = error
        self.setup_error = setup_error
        self.teardown_error = teardown_error
        self.validate_result = validate_result
        self.result = result
        self.calls = 0
        self.events: list[str] = []

    async def setup(self) -> None:
        self.events.append("setup")
        if self.setup_error is not None:
            raise self.setup_error

    async def exercise(self) -> Any:
        index = self.calls
        self.calls += 1
        await asyncio.sleep(self.delay_s)
        if self.fail_when is not None and self.fail_when(index):
            raise self.error(f"attempt {index} failed")
        return self.result

    async def teardown(self) -> None:
        self.events.append("teardown")
        if self.teardown_error is not None:
            raise self.teardown_error

    async def validate(self) -> Any:
        self.events.append("validate")
        if isinstance(self.validate_result, Exception):
            raise self.validate_result
        return self.validate_result


@pytest.fixture
def run_config() -> RunConfig:
    return RunConfig(
        scenario="scripted",
        adapter="memory",
        requests=10,
        concurrency=2,
        batch_size=1,
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def operation_result() -> OperationResult:
    return OperationResult(documents_affected=1, operations_count=1, bytes_processed=64, tag="write")


@pytest.fixture
def scripted_scenario() -> type[ScriptedScenario]:
    return ScriptedScenario
