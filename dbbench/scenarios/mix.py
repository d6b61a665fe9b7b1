from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field


class OperationKind(str, enum.Enum):
    READ = "read"
    WRITE = "write"


class Operation(str, enum.Enum):
    GET_BY_ID = "get-by-id"
    CATEGORY = "category"
    CATEGORY_ORDERED = "category-ordered"
    CATEGORY_COUNT = "category-count"
    RANGE = "range"
    RANGE_VERSIONED = "range-versioned"
    TAG_SEARCH = "tag-search"
    COUNT = "count"
    INSERT = "insert"
    BATCH_INSERT = "batch-insert"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"

    @property
    def kind(self) -> OperationKind:
        return OperationKind.WRITE if self in _WRITE_OPERATIONS else OperationKind.READ


_WRITE_OPERATIONS = frozenset(
    {
        Operation.INSERT,
        Operation.BATCH_INSERT,
        Operation.UPDATE,
        Operation.DELETE,
        Operation.UPSERT,
    }
)


def _normalise(weights: dict[Operation, float]) -> dict[Operation, float]:
    total = sum(value for value in weights.values() if value > 0)
    if total <= 0:
        raise ValueError("OperationMix weights must sum to > 0")
    return {key: max(value, 0.0) / total for key, value in weights.items()}


def _weighted_choice(weights: dict[Operation, float], rng: random.Random) -> Operation:
    total = sum(value for value in weights.values() if value > 0)
    if total <= 0:
        raise ValueError("Weights must sum to > 0")
    r = rng.random() * total
    upto = 0.0
    for key, weight in weights.items():
        if weight <= 0:
            continue
        upto += weight
        if upto >= r:
            return key
    # Float errors fallback
    return next(key for key, weight in weights.items() if weight > 0)


@dataclass(frozen=True)
class OperationMix:
    """Probability table for a read/write workload.

    A draw first picks reads with probability ``read_ratio``, then one
    operation from the matching weight table.
    """

    name: str
    read_ratio: float
    read_weights: dict[Operation, float] = field(default_factory=dict)
    write_weights: dict[Operation, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.read_ratio <= 1.0:
            raise ValueError(f"read_ratio must be within [0, 1], got {self.read_ratio}")
        for operation in self.read_weights:
            if operation.kind is not OperationKind.READ:
                raise ValueError(f"{operation.value} is not a read operation")
        for operation in self.write_weights:
            if operation.kind is not OperationKind.WRITE:
                raise ValueError(f"{operation.value} is not a write operation")
        if self.read_ratio > 0:
            _normalise(self.read_weights)
        if self.read_ratio < 1:
            _normalise(self.write_weights)

    def normalised_read_weights(self) -> dict[Operation, float]:
        return _normalise(self.read_weights)

    def normalised_write_weights(self) -> dict[Operation, float]:
        return _normalise(self.write_weights)

    def choose(self, rng: random.Random) -> Operation:
        if rng.random() < self.read_ratio:
            return _weighted_choice(self.read_weights, rng)
        return _weighted_choice(self.write_weights, rng)


BALANCED_MIX = OperationMix(
    name="balanced",
    read_ratio=0.7,
    read_weights={
        Operation.GET_BY_ID: 0.4,
        Operation.CATEGORY: 0.3,
        Operation.RANGE: 0.3,
    },
    write_weights={
        Operation.INSERT: 0.6,
        Operation.UPDATE: 0.3,
        Operation.DELETE: 0.1,
    },
)

READ_HEAVY_MIX = OperationMix(
    name="read-heavy",
    read_ratio=0.9,
    read_weights={
        Operation.GET_BY_ID: 0.25,
        Operation.CATEGORY_ORDERED: 0.20,
        Operation.RANGE_VERSIONED: 0.20,
        Operation.TAG_SEARCH: 0.15,
        Operation.COUNT: 0.20,
    },
    write_weights={
        Operation.INSERT: 0.7,
        Operation.UPDATE: 0.3,
    },
)

WRITE_HEAVY_MIX = OperationMix(
    name="write-heavy",
    read_ratio=0.1,
    read_weights={
        Operation.GET_BY_ID: 0.5,
        Operation.CATEGORY_COUNT: 0.5,
    },
    write_weights={
        Operation.INSERT: 0.40,
        Operation.UPDATE: 0.30,
        Operation.BATCH_INSERT: 0.15,
        Operation.DELETE: 0.10,
        Operation.UPSERT: 0.05,
    },
)