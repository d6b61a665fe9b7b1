"""Document-store backends the scenarios run against."""

from __future__ import annotations

import enum
from typing import Any

from .base import AdapterError, Document, DocumentStore, Query
from .memory import MemoryStore
from .rethink import RethinkDBStore


class AdapterType(str, enum.Enum):
    MEMORY = "memory"
    RETHINKDB = "rethinkdb"


def create_store(adapter: str, **options: Any) -> DocumentStore:
    """Build a store for ``adapter``; ``options`` go to its constructor."""
    try:
        adapter_type = AdapterType(adapter)
    except ValueError:
        raise ValueError(
            f"Unknown adapter: {adapter}. "
            f"Available adapters: {', '.join(a.value for a in AdapterType)}"
        ) from None

    if adapter_type is AdapterType.MEMORY:
        return MemoryStore(**options)

    return RethinkDBStore(**options)


__all__ = [
    "AdapterError",
    "AdapterType",
    "Document",
    "DocumentStore",
    "MemoryStore",
    "Query",
    "RethinkDBStore",
    "create_store",
]
