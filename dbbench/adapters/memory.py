from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Iterable, Mapping

from .base import AdapterError, Document, DocumentStore, Query

LOGGER = logging.getLogger("dbbench.adapters.memory")


def _merge(target: dict[str, Any], changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class MemoryStore(DocumentStore):
    """In-process document store with optional simulated I/O latency.

    Every operation yields to the event loop at least once, so concurrent
    attempts interleave the way they would against a networked backend.
    """

    name = "memory"

    def __init__(self, latency_ms: float = 0.0) -> None:
        if latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")
        self._latency_s = latency_ms / 1000.0
        self._tables: dict[str, dict[str, Document]] = {}
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        await self._io()
        self._connected = True
        LOGGER.debug("Memory store connected (latency=%.3fs)", self._latency_s)

    async def disconnect(self) -> None:
        self._connected = False

    async def ensure_table(self, table: str) -> None:
        await self._io()
        self._tables.setdefault(table, {})

    async def insert(
        self, table: str, documents: Iterable[Document], replace: bool = False
    ) -> int:
        rows = self._table(table)
        batch = [copy.deepcopy(document) for document in documents]
        if not replace:
            for document in batch:
                if document["id"] in rows:
                    raise AdapterError(f"Duplicate primary key `id`: {document['id']}")
        await self._io()
        for document in batch:
            rows[document["id"]] = document
        return len(batch)

    async def get(self, table: str, document_id: str) -> Document | None:
        rows = self._table(table)
        await self._io()
        document = rows.get(document_id)
        return copy.deepcopy(document) if document is not None else None

    async def update(self, table: str, document_id: str, changes: Mapping[str, Any]) -> int:
        rows = self._table(table)
        await self._io()
        document = rows.get(document_id)
        if document is None:
            return 0
        _merge(document, changes)
        return 1

    async def delete(self, table: str, document_id: str) -> int:
        rows = self._table(table)
        await self._io()
        return 1 if rows.pop(document_id, None) is not None else 0

    async def delete_many(self, table: str, document_ids: Iterable[str]) -> int:
        rows = self._table(table)
        await self._io()
        return sum(1 for document_id in set(document_ids) if rows.pop(document_id, None))

    async def clear(self, table: str) -> int:
        rows = self._table(table)
        await self._io()
        deleted = len(rows)
        rows.clear()
        return deleted

    async def find(self, table: str, query: Query) -> list[Document]:
        rows = self._table(table)
        await self._io()
        matches = [document for document in rows.values() if query.matches(document)]
        if query.order_by is not None:
            matches.sort(key=lambda document: document.get(query.order_by), reverse=query.descending)
        if query.limit is not None:
            matches = matches[: query.limit]
        return copy.deepcopy(matches)

    async def count(self, table: str, query: Query | None = None) -> int:
        rows = self._table(table)
        await self._io()
        if query is None:
            return len(rows)
        return sum(1 for document in rows.values() if query.matches(document))

    async def count_ids(self, table: str, document_ids: Iterable[str]) -> int:
        rows = self._table(table)
        await self._io()
        return sum(1 for document_id in document_ids if document_id in rows)

    def _table(self, table: str) -> dict[str, Document]:
        if not self._connected:
            raise AdapterError("memory store is not connected")
        try:
            return self._tables[table]
        except KeyError:
            raise AdapterError(f"Table `{table}` does not exist") from None

    async def _io(self) -> None:
        await asyncio.sleep(self._latency_s)
