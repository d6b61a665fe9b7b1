from __future__ import annotations

import logging
import random
from datetime import datetime, timezone

from ..adapters import AdapterError, Document, DocumentStore
from .base import OperationResult, RecordLedger, Scenario, generate_random_string, json_size

LOGGER = logging.getLogger("dbbench.scenarios.inserts")

ID_LENGTH = 16


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class InsertScenario(Scenario):
    """Shared lifecycle for the pure-insert workloads."""

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = 1,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(store, batch_size=batch_size, rng=rng)
        self.inserted = RecordLedger()

    async def setup(self) -> None:
        await self.store.connect()
        try:
            await self.store.ensure_table(self.table_name)
        except Exception:
            await self.store.disconnect()
            raise

    async def teardown(self) -> None:
        try:
            if len(self.inserted):
                await self.store.delete_many(self.table_name, self.inserted.snapshot())
        except AdapterError as exc:
            LOGGER.warning("Cleanup of %s failed: %s", self.table_name, exc)
        finally:
            await self.store.disconnect()

    def make_document(self) -> Document:
        document_id = generate_random_string(ID_LENGTH, self.rng)
        return {"id": document_id, "name": f"User-{document_id}", "timestamp": iso_now()}


class BasicInsertScenario(InsertScenario):
    """One single-document insert per attempt."""

    name = "basic-insert"
    table_name = "users"

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = 1,
        rng: random.Random | None = None,
    ) -> None:
        # Always single-document; the configured batch size does not apply.
        super().__init__(store, batch_size=1, rng=rng)

    async def exercise(self) -> OperationResult:
        document = self.make_document()
        await self.store.insert(self.table_name, [document])
        self.inserted.add(document["id"])
        return OperationResult(
            documents_affected=1,
            operations_count=1,
            bytes_processed=json_size(document),
            tag="write",
        )

    async def validate(self) -> bool:
        last = self.inserted.last(1)
        if not last:
            return False
        document = await self.store.get(self.table_name, last[0])
        return document is not None and document.get("id") == last[0]


class BulkInsertScenario(InsertScenario):
    """One ``batch_size``-document insert per attempt."""

    name = "bulk-insert"
    table_name = "users_bulk"

    async def exercise(self) -> OperationResult:
        documents = [self.make_document() for _ in range(self.batch_size)]
        await self.store.insert(self.table_name, documents)
        self.inserted.extend(document["id"] for document in documents)
        return OperationResult(
            documents_affected=self.batch_size,
            operations_count=1,
            bytes_processed=json_size(documents),
            tag="write",
        )

    async def validate(self) -> bool:
        last_batch = self.inserted.last(self.batch_size)
        if not last_batch:
            return False
        count = await self.store.count_ids(self.table_name, last_batch)
        return count == self.batch_size
