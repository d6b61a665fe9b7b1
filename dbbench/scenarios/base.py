from __future__ import annotations

import abc
import json
import random
import string
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from ..adapters import DocumentStore

_ID_ALPHABET = string.ascii_letters + string.digits

_RESULT_ALIASES = {
    "documents_affected": ("documents_affected", "documentsAffected"),
    "operations_count": ("operations_count", "operationsCount"),
    "bytes_processed": ("bytes_processed", "bytesProcessed"),
}


@dataclass(frozen=True)
class OperationResult:
    """Work volume reported by one ``exercise`` call."""

    documents_affected: int = 0
    operations_count: int = 0
    bytes_processed: int = 0
    tag: str | None = None

    @classmethod
    def coerce(cls, value: Any) -> OperationResult:
        """Normalise what a scenario returned; missing counters become 0."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            counters = {}
            for field_name, aliases in _RESULT_ALIASES.items():
                counters[field_name] = next(
                    (int(value[alias]) for alias in aliases if value.get(alias) is not None),
                    0,
                )
            tag = value.get("tag")
            if tag is None:
                tag = (value.get("metadata") or {}).get("operationType")
            return cls(tag=tag, **counters)
        raise TypeError(f"unsupported exercise result: {type(value).__name__}")


class RecordLedger:
    """Run-scoped list of record ids created by a scenario.

    Attempts share one ledger; every mutation takes the lock so concurrent
    appends and removals never lose updates.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: list[str] = []

    def add(self, record_id: str) -> None:
        with self._lock:
            self._ids.append(record_id)

    def extend(self, record_ids: Iterable[str]) -> None:
        with self._lock:
            self._ids.extend(record_ids)

    def discard(self, record_id: str) -> None:
        with self._lock:
            self._ids = [existing for existing in self._ids if existing != record_id]

    def choose(self, rng: random.Random) -> str | None:
        with self._lock:
            if not self._ids:
                return None
            return rng.choice(self._ids)

    def last(self, count: int) -> list[str]:
        with self._lock:
            return self._ids[-count:] if count > 0 else []

    def first(self, count: int) -> list[str]:
        with self._lock:
            return self._ids[:count]

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._ids)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


def generate_random_string(length: int, rng: random.Random | None = None) -> str:
    rng = rng or random
    return "".join(rng.choice(_ID_ALPHABET) for _ in range(length))


def json_size(payload: Any) -> int:
    """Length of the compact JSON encoding of ``payload``."""
    return len(json.dumps(payload, separators=(",", ":"), default=str))


class Scenario(abc.ABC):
    """Workload run by the engine: setup once, exercise N times, teardown once.

    Subclasses own their run-scoped state; the engine only calls the four
    lifecycle coroutines.
    """

    name: str = "abstract"
    table_name: str = "benchmark"

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = 1,
        rng: random.Random | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.store = store
        self.batch_size = batch_size
        self.rng = rng or random.Random()

    @abc.abstractmethod
    async def setup(self) -> None: ...

    @abc.abstractmethod
    async def exercise(self) -> OperationResult: ...

    @abc.abstractmethod
    async def teardown(self) -> None: ...

    @abc.abstractmethod
    async def validate(self) -> bool: ...

    def operation_multiplier(self) -> int:
        return self.batch_size

    def __repr__(self) -> str:
        return f"{type(self).__name__}(store={self.store.name!r}, batch_size={self.batch_size})"
