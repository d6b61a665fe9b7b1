"""Workload scenarios and the registry the CLI selects them from."""

from __future__ import annotations

import random

from ..adapters import AdapterType, DocumentStore
from .base import OperationResult, RecordLedger, Scenario
from .inserts import BasicInsertScenario, BulkInsertScenario
from .mix import Operation, OperationKind, OperationMix
from .mixed import BalancedReadWriteScenario, ReadHeavyScenario, WriteHeavyScenario

SCENARIOS: dict[str, type[Scenario]] = {
    BasicInsertScenario.name: BasicInsertScenario,
    BulkInsertScenario.name: BulkInsertScenario,
    BalancedReadWriteScenario.name: BalancedReadWriteScenario,
    ReadHeavyScenario.name: ReadHeavyScenario,
    WriteHeavyScenario.name: WriteHeavyScenario,
}


def available_scenarios() -> list[str]:
    return list(SCENARIOS)


def available_adapters(scenario: str) -> list[str]:
    """Adapters the scenario can run against; every scenario supports them all."""
    get_scenario_class(scenario)
    return [adapter.value for adapter in AdapterType]


def get_scenario_class(scenario: str) -> type[Scenario]:
    try:
        return SCENARIOS[scenario]
    except KeyError:
        raise ValueError(f"Unknown scenario: {scenario}") from None


def create_scenario(
    scenario: str,
    store: DocumentStore,
    batch_size: int = 1,
    seed: int | None = None,
) -> Scenario:
    scenario_class = get_scenario_class(scenario)
    return scenario_class(store, batch_size=batch_size, rng=random.Random(seed))


__all__ = [
    "BalancedReadWriteScenario",
    "BasicInsertScenario",
    "BulkInsertScenario",
    "Operation",
    "OperationKind",
    "OperationMix",
    "OperationResult",
    "ReadHeavyScenario",
    "RecordLedger",
    "SCENARIOS",
    "Scenario",
    "WriteHeavyScenario",
    "available_adapters",
    "available_scenarios",
    "create_scenario",
    "get_scenario_class",
]
