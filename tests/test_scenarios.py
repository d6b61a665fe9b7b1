"""Tests for the workload scenarios against the memory store."""

import random

import pytest

from dbbench.adapters import AdapterError, MemoryStore, Query
from dbbench.scenarios import (
    BalancedReadWriteScenario,
    BasicInsertScenario,
    BulkInsertScenario,
    OperationResult,
    ReadHeavyScenario,
    RecordLedger,
    WriteHeavyScenario,
    available_adapters,
    available_scenarios,
    create_scenario,
)
from dbbench.scenarios.base import json_size


class TestOperationResult:
    def test_none_is_empty(self):
        assert OperationResult.coerce(None) == OperationResult()

    def test_instance_passes_through(self, operation_result):
        assert OperationResult.coerce(operation_result) is operation_result

    def test_mapping_accepts_both_spellings(self):
        result = OperationResult.coerce(
            {"documents_affected": 3, "operationsCount": 1, "tag": "write"}
        )
        assert result == OperationResult(documents_affected=3, operations_count=1, tag="write")

    def test_mapping_tag_from_metadata(self):
        result = OperationResult.coerce({"metadata": {"operationType": "read"}})
        assert result.tag == "read"
        assert result.bytes_processed == 0

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            OperationResult.coerce(12)


class TestRecordLedger:
    def test_tracks_ids(self):
        ledger = RecordLedger()
        ledger.add("a")
        ledger.extend(["b", "c", "d"])
        ledger.discard("b")

        assert len(ledger) == 3
        assert "b" not in ledger
        assert ledger.first(2) == ["a", "c"]
        assert ledger.last(2) == ["c", "d"]
        assert ledger.last(0) == []
        assert ledger.choose(random.Random(0)) in {"a", "c", "d"}

    def test_choose_from_empty(self):
        assert RecordLedger().choose(random.Random(0)) is None


class TestRegistry:
    def test_available_scenarios(self):
        assert available_scenarios() == [
            "basic-insert",
            "bulk-insert",
            "balanced-read-write",
            "read-heavy",
            "write-heavy",
        ]

    def test_every_scenario_supports_every_adapter(self):
        for scenario in available_scenarios():
            assert available_adapters(scenario) == ["memory", "rethinkdb"]

    def test_unknown_scenario(self):
        with pytest.raises(ValueError, match="Unknown scenario"):
            available_adapters("nope")
        with pytest.raises(ValueError, match="Unknown scenario"):
            create_scenario("nope", MemoryStore())

    def test_create_scenario(self):
        scenario = create_scenario("bulk-insert", MemoryStore(), batch_size=25, seed=1)
        assert isinstance(scenario, BulkInsertScenario)
        assert scenario.batch_size == 25
        assert scenario.operation_multiplier() == 25


class TestInsertScenarios:
    @pytest.mark.asyncio
    async def test_basic_insert_lifecycle(self):
        store = MemoryStore()
        scenario = BasicInsertScenario(store, batch_size=10, rng=random.Random(3))
        assert scenario.batch_size == 1

        await scenario.setup()
        results = [await scenario.exercise() for _ in range(5)]

        assert await store.count("users") == 5
        assert all(result.documents_affected == 1 for result in results)
        assert all(result.tag == "write" for result in results)
        assert all(result.bytes_processed > 0 for result in results)
        assert await scenario.validate() is True

        await scenario.teardown()
        assert not store.connected
        await store.connect()
        assert await store.count("users") == 0

    @pytest.mark.asyncio
    async def test_bulk_insert_reports_batch(self):
        store = MemoryStore()
        scenario = BulkInsertScenario(store, batch_size=50, rng=random.Random(4))

        await scenario.setup()
        result = await scenario.exercise()

        assert result.documents_affected == 50
        assert result.operations_count == 1
        assert await store.count("users_bulk") == 50
        assert await scenario.validate() is True
        await scenario.teardown()

    @pytest.mark.asyncio
    async def test_validate_without_inserts_fails(self):
        scenario = BulkInsertScenario(MemoryStore(), batch_size=5)
        await scenario.setup()
        assert await scenario.validate() is False
        await scenario.teardown()

    @pytest.mark.asyncio
    async def test_bulk_validate_detects_missing_documents(self):
        store = MemoryStore()
        scenario = BulkInsertScenario(store, batch_size=5, rng=random.Random(5))
        await scenario.setup()
        await scenario.exercise()
        await store.delete(scenario.table_name, scenario.inserted.last(1)[0])

        assert await scenario.validate() is False
        await scenario.teardown()


class TestMixedScenarios:
    @pytest.mark.asyncio
    async def test_balanced_run(self):
        store = MemoryStore()
        scenario = BalancedReadWriteScenario(store, rng=random.Random(11), seed_count=50)

        await scenario.setup()
        assert await store.count("balanced_test") == 50
        assert await store.count("balanced_test", Query(id_prefix="seed-")) == 50

        results = [await scenario.exercise() for _ in range(300)]
        tags = {result.tag for result in results}

        assert tags == {"read", "write"}
        assert all(result.operations_count == 1 for result in results)
        assert await scenario.validate() is True

        await scenario.teardown()
        await store.connect()
        assert await store.count("balanced_test") == 0

    @pytest.mark.asyncio
    async def test_read_heavy_run(self):
        store = MemoryStore()
        scenario = ReadHeavyScenario(store, rng=random.Random(12), seed_count=200)

        await scenario.setup()
        seeded = await store.find("read_heavy_test", Query(limit=1))
        assert set(seeded[0]) >= {"id", "value", "category", "tags", "metadata"}
        assert seeded[0]["id"].startswith("read-seed-")

        for _ in range(200):
            await scenario.exercise()
        assert await scenario.validate() is True
        await scenario.teardown()

    @pytest.mark.asyncio
    async def test_write_heavy_run(self):
        store = MemoryStore()
        scenario = WriteHeavyScenario(store, rng=random.Random(13), seed_count=200)

        await scenario.setup()
        results = [await scenario.exercise() for _ in range(300)]

        assert sum(result.tag == "write" for result in results) > 200
        assert len(scenario.inserted) > 0
        assert await store.count("write_heavy_test") >= 200
        assert await scenario.validate() is True
        await scenario.teardown()

    @pytest.mark.asyncio
    async def test_write_heavy_documents_track_operations(self):
        scenario = WriteHeavyScenario(MemoryStore(), rng=random.Random(1), seed_count=1)
        document = scenario.make_document("doc-1")
        assert document["metadata"]["operations"] == 1
        assert document["metadata"]["version"] == 1

    def test_same_seed_generates_same_data(self):
        first = BalancedReadWriteScenario(MemoryStore(), rng=random.Random(8), seed_count=5)
        second = BalancedReadWriteScenario(MemoryStore(), rng=random.Random(8), seed_count=5)
        assert [doc["id"] for doc in first.generate_seed_data(5)] == [
            doc["id"] for doc in second.generate_seed_data(5)
        ]

    def test_rejects_non_positive_seed_count(self):
        with pytest.raises(ValueError, match="seed_count"):
            ReadHeavyScenario(MemoryStore(), seed_count=0)


class BrokenTableStore(MemoryStore):
    async def ensure_table(self, table: str) -> None:
        raise AdapterError(f"cannot create {table}")


class TestSetupFailure:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("scenario_class", [BulkInsertScenario, BalancedReadWriteScenario])
    async def test_connection_closed_when_setup_fails(self, scenario_class):
        store = BrokenTableStore()
        scenario = scenario_class(store, rng=random.Random(2))

        with pytest.raises(AdapterError, match="cannot create"):
            await scenario.setup()

        assert not store.connected

def test_json_size_is_compact():
    assert json_size({"a": 1, "b": [1, 2]}) == len('{"a":1,"b":[1,2]}')
