from __future__ import annotations

import logging
import random
from typing import Any, Awaitable, Callable

from ..adapters import AdapterError, Document, DocumentStore, Query
from .base import OperationResult, RecordLedger, Scenario, generate_random_string, json_size
from .inserts import ID_LENGTH, iso_now
from .mix import BALANCED_MIX, READ_HEAVY_MIX, WRITE_HEAVY_MIX, Operation, OperationMix

LOGGER = logging.getLogger("dbbench.scenarios.mixed")

CATEGORIES = ("A", "B", "C", "D", "E")
SEARCH_TAGS = ("important", "urgent", "archived", "featured", "public")
SEED_CHUNK_SIZE = 500
DELETE_ESTIMATED_BYTES = 50


class MixedWorkloadScenario(Scenario):
    """Randomised read/write workload over a seeded table.

    Each attempt draws one :class:`Operation` from ``mix`` and runs it. Seed
    documents are created during setup; documents inserted during the run are
    tracked in a :class:`RecordLedger` for later updates, deletes and
    validation.
    """

    mix: OperationMix = BALANCED_MIX
    seed_count: int = 1000
    seed_prefix: str = "seed-"
    name_prefix: str = "User-"
    tag_pool: tuple[str, ...] = ()
    insert_when_nothing_to_delete = False

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = 1,
        rng: random.Random | None = None,
        seed_count: int | None = None,
    ) -> None:
        super().__init__(store, batch_size=batch_size, rng=rng)
        if seed_count is not None:
            if seed_count < 1:
                raise ValueError(f"seed_count must be >= 1, got {seed_count}")
            self.seed_count = seed_count
        self.seed_data: list[Document] = []
        self.inserted = RecordLedger()
        self._handlers: dict[Operation, Callable[[], Awaitable[tuple[int, int]]]] = {
            Operation.GET_BY_ID: self._get_by_id,
            Operation.CATEGORY: self._category,
            Operation.CATEGORY_ORDERED: self._category_ordered,
            Operation.CATEGORY_COUNT: self._category_count,
            Operation.RANGE: self._range,
            Operation.RANGE_VERSIONED: self._range_versioned,
            Operation.TAG_SEARCH: self._tag_search,
            Operation.COUNT: self._count,
            Operation.INSERT: self._insert,
            Operation.BATCH_INSERT: self._batch_insert,
            Operation.UPDATE: self._update,
            Operation.DELETE: self._delete,
            Operation.UPSERT: self._upsert,
        }

    async def setup(self) -> None:
        await self.store.connect()
        try:
            await self.store.ensure_table(self.table_name)
            self.seed_data = self.generate_seed_data(self.seed_count)
            for start in range(0, len(self.seed_data), SEED_CHUNK_SIZE):
                chunk = self.seed_data[start : start + SEED_CHUNK_SIZE]
                await self.store.insert(self.table_name, chunk)
        except Exception:
            await self.store.disconnect()
            raise
        LOGGER.debug("Seeded %d documents into %s", len(self.seed_data), self.table_name)

    async def teardown(self) -> None:
        try:
            await self.store.clear(self.table_name)
        except AdapterError as exc:
            LOGGER.warning("Cleanup of %s failed: %s", self.table_name, exc)
        finally:
            await self.store.disconnect()

    async def exercise(self) -> OperationResult:
        operation = self.mix.choose(self.rng)
        documents_affected, bytes_processed = await self._handlers[operation]()
        return OperationResult(
            documents_affected=documents_affected,
            operations_count=1,
            bytes_processed=bytes_processed,
            tag=operation.kind.value,
        )

    def make_document(self, document_id: str, name: str | None = None) -> Document:
        return {
            "id": document_id,
            "name": name or f"{self.name_prefix}{document_id}",
            "value": self.rng.randrange(1000),
            "timestamp": iso_now(),
            "category": self.rng.choice(CATEGORIES),
        }

    def generate_seed_data(self, count: int) -> list[Document]:
        return [
            self.make_document(f"{self.seed_prefix}{generate_random_string(12, self.rng)}")
            for _ in range(count)
        ]

    def update_target(self) -> Document:
        return self.rng.choice(self.seed_data)

    def update_changes(self, target: Document) -> dict[str, Any]:
        return {"value": self.rng.randrange(1000), "timestamp": iso_now()}

    def _new_document(self) -> Document:
        return self.make_document(generate_random_string(ID_LENGTH, self.rng))

    async def _get_by_id(self) -> tuple[int, int]:
        target = self.rng.choice(self.seed_data)
        document = await self.store.get(self.table_name, target["id"])
        if document is None:
            return 0, 0
        return 1, json_size(document)

    async def _found(self, query: Query) -> tuple[int, int]:
        documents = await self.store.find(self.table_name, query)
        return len(documents), json_size(documents)

    async def _category(self) -> tuple[int, int]:
        return await self._found(Query(equals={"category": self.rng.choice(CATEGORIES)}, limit=10))

    async def _category_ordered(self) -> tuple[int, int]:
        return await self._found(
            Query(
                equals={"category": self.rng.choice(CATEGORIES)},
                order_by="value",
                descending=True,
                limit=20,
            )
        )

    async def _category_count(self) -> tuple[int, int]:
        query = Query(equals={"category": self.rng.choice(CATEGORIES)})
        count = await self.store.count(self.table_name, query)
        return 1, json_size({"count": count})

    async def _range(self) -> tuple[int, int]:
        low = self.rng.randrange(500)
        return await self._found(Query(value_range=(low, low + 100), limit=20))

    async def _range_versioned(self) -> tuple[int, int]:
        low = self.rng.randrange(500)
        return await self._found(
            Query(value_range=(low, low + 200), min_version=1, order_by="timestamp", limit=15)
        )

    async def _tag_search(self) -> tuple[int, int]:
        return await self._found(Query(tag=self.rng.choice(SEARCH_TAGS), limit=25))

    async def _count(self) -> tuple[int, int]:
        count = await self.store.count(self.table_name)
        return 1, json_size({"totalCount": count})

    async def _insert(self) -> tuple[int, int]:
        document = self._new_document()
        await self.store.insert(self.table_name, [document])
        self.inserted.add(document["id"])
        return 1, json_size(document)

    async def _batch_insert(self) -> tuple[int, int]:
        documents = [self._new_document() for _ in range(self.rng.randint(2, 6))]
        await self.store.insert(self.table_name, documents)
        self.inserted.extend(document["id"] for document in documents)
        return len(documents), json_size(documents)

    async def _update(self) -> tuple[int, int]:
        target = self.update_target()
        changes = self.update_changes(target)
        replaced = await self.store.update(self.table_name, target["id"], changes)
        return replaced, json_size(changes)

    async def _delete(self) -> tuple[int, int]:
        victim = self.inserted.choose(self.rng)
        if victim is None:
            if self.insert_when_nothing_to_delete:
                return await self._insert()
            return 0, 0
        deleted = await self.store.delete(self.table_name, victim)
        self.inserted.discard(victim)
        return deleted, DELETE_ESTIMATED_BYTES

    async def _upsert(self) -> tuple[int, int]:
        document = self._new_document()
        affected = await self.store.insert(self.table_name, [document], replace=True)
        if document["id"] not in self.inserted:
            self.inserted.add(document["id"])
        return affected, json_size(document)


class BalancedReadWriteScenario(MixedWorkloadScenario):
    name = "balanced-read-write"
    table_name = "balanced_test"

    def generate_seed_data(self, count: int) -> list[Document]:
        return [
            self.make_document(
                f"{self.seed_prefix}{generate_random_string(12, self.rng)}",
                name=f"SeedUser-{index}",
            )
            for index in range(count)
        ]

    async def validate(self) -> bool:
        seeds = await self.store.count(self.table_name, Query(id_prefix=self.seed_prefix))
        if not len(self.inserted):
            return seeds > 0
        present = await self.store.count_ids(self.table_name, self.inserted.first(10))
        return seeds > 0 and present > 0


class TaggedWorkloadScenario(MixedWorkloadScenario):
    """Mixed workload over documents carrying tags and version metadata."""

    def make_document(self, document_id: str, name: str | None = None) -> Document:
        document = super().make_document(document_id, name)
        tags = list(self.tag_pool)
        self.rng.shuffle(tags)
        now = iso_now()
        document["tags"] = tags[: self.rng.randint(1, 4)]
        document["metadata"] = {"created": now, "updated": now, "version": 1}
        return document


class ReadHeavyScenario(TaggedWorkloadScenario):
    name = "read-heavy"
    table_name = "read_heavy_test"
    mix = READ_HEAVY_MIX
    seed_count = 5000
    seed_prefix = "read-seed-"
    name_prefix = "ReadUser-"
    tag_pool = ("important", "urgent", "archived", "featured", "public", "draft", "reviewed")

    def update_changes(self, target: Document) -> dict[str, Any]:
        now = iso_now()
        metadata = dict(target.get("metadata") or {})
        metadata.update(updated=now, version=metadata.get("version", 1) + 1)
        return {"value": self.rng.randrange(1000), "timestamp": now, "metadata": metadata}

    async def validate(self) -> bool:
        seeds = await self.store.count(self.table_name, Query(id_prefix=self.seed_prefix))
        category = await self.store.count(self.table_name, Query(equals={"category": "A"}))
        tagged = await self.store.count(self.table_name, Query(tag="important"))
        return seeds >= int(self.seed_count * 0.8) and category > 0 and tagged > 0


class WriteHeavyScenario(TaggedWorkloadScenario):
    name = "write-heavy"
    table_name = "write_heavy_test"
    mix = WRITE_HEAVY_MIX
    seed_count = 2000
    seed_prefix = "write-seed-"
    name_prefix = "WriteUser-"
    tag_pool = (
        "important",
        "urgent",
        "archived",
        "featured",
        "public",
        "draft",
        "reviewed",
        "processed",
    )
    insert_when_nothing_to_delete = True

    def make_document(self, document_id: str, name: str | None = None) -> Document:
        document = super().make_document(document_id, name)
        document["metadata"]["operations"] = 1
        return document

    def update_target(self) -> Document:
        if self.rng.random() < 0.5:
            return self.rng.choice(self.seed_data)
        inserted_id = self.inserted.choose(self.rng)
        if inserted_id is None:
            return self.seed_data[0]
        return {"id": inserted_id}

    async def validate(self) -> bool:
        total = await self.store.count(self.table_name)
        seeds = await self.store.count(self.table_name, Query(id_prefix=self.seed_prefix))
        if len(self.inserted):
            present = await self.store.count_ids(self.table_name, self.inserted.first(10))
        else:
            present = 1
        return total >= seeds and seeds >= int(self.seed_count * 0.5) and present > 0
