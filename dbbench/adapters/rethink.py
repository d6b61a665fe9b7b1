from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping

from rethinkdb import RethinkDB
from rethinkdb.errors import ReqlDriverError, ReqlOpFailedError

from .base import AdapterError, Document, DocumentStore, Query

LOGGER = logging.getLogger("dbbench.adapters.rethinkdb")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 28015


class RethinkDBStore(DocumentStore):
    """RethinkDB backend over a single asyncio connection.

    The driver multiplexes concurrent queries over the connection; pooling is
    left to the driver and not attempted here.
    """

    name = "rethinkdb"

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        db: str = "test",
        connect_timeout: float = 20.0,
    ) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._connect_timeout = connect_timeout
        self._r = RethinkDB()
        self._conn = None

    async def connect(self) -> None:
        self._r.set_loop_type("asyncio")
        try:
            self._conn = await self._r.connect(
                host=self._host,
                port=self._port,
                db=self._db,
                timeout=self._connect_timeout,
            )
        except ReqlDriverError as exc:
            raise AdapterError(
                f"failed to connect to RethinkDB at {self._host}:{self._port}: {exc}"
            ) from exc
        LOGGER.debug("Connected to RethinkDB at %s:%d", self._host, self._port)

    async def disconnect(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        await conn.close()

    async def ensure_table(self, table: str) -> None:
        try:
            await self._run(self._r.table_create(table))
        except ReqlOpFailedError:
            LOGGER.debug("Table %s already exists", table)

    async def insert(
        self, table: str, documents: Iterable[Document], replace: bool = False
    ) -> int:
        result = await self._run(
            self._r.table(table).insert(
                list(documents), conflict="replace" if replace else "error"
            )
        )
        if result.get("errors"):
            raise AdapterError(result.get("first_error", "insert failed"))
        return result.get("inserted", 0) + result.get("replaced", 0)

    async def get(self, table: str, document_id: str) -> Document | None:
        return await self._run(self._r.table(table).get(document_id))

    async def update(self, table: str, document_id: str, changes: Mapping[str, Any]) -> int:
        result = await self._run(self._r.table(table).get(document_id).update(dict(changes)))
        return result.get("replaced", 0)

    async def delete(self, table: str, document_id: str) -> int:
        result = await self._run(self._r.table(table).get(document_id).delete())
        return result.get("deleted", 0)

    async def delete_many(self, table: str, document_ids: Iterable[str]) -> int:
        ids = list(document_ids)
        if not ids:
            return 0
        result = await self._run(self._r.table(table).get_all(*ids).delete())
        return result.get("deleted", 0)

    async def clear(self, table: str) -> int:
        result = await self._run(self._r.table(table).delete())
        return result.get("deleted", 0)

    async def find(self, table: str, query: Query) -> list[Document]:
        return await self._run(self._selection(table, query).coerce_to("array"))

    async def count(self, table: str, query: Query | None = None) -> int:
        if query is None:
            return await self._run(self._r.table(table).count())
        return await self._run(self._selection(table, query).count())

    async def count_ids(self, table: str, document_ids: Iterable[str]) -> int:
        ids = list(document_ids)
        if not ids:
            return 0
        return await self._run(self._r.table(table).get_all(*ids).count())

    def _selection(self, table: str, query: Query):
        sequence = self._r.table(table)
        predicate = self._predicate(query)
        if predicate is not None:
            sequence = sequence.filter(predicate)
        if query.order_by is not None:
            key = self._r.desc(query.order_by) if query.descending else query.order_by
            sequence = sequence.order_by(key)
        if query.limit is not None:
            sequence = sequence.limit(query.limit)
        return sequence

    @staticmethod
    def _predicate(query: Query):
        if not (
            query.equals
            or query.value_range is not None
            or query.min_version is not None
            or query.tag is not None
            or query.id_prefix is not None
        ):
            return None

        def predicate(doc):
            terms = [doc[key].eq(value) for key, value in query.equals.items()]
            if query.value_range is not None:
                low, high = query.value_range
                terms.append(doc["value"].ge(low).and_(doc["value"].le(high)))
            if query.min_version is not None:
                terms.append(doc["metadata"]["version"].gt(query.min_version))
            if query.tag is not None:
                terms.append(doc["tags"].contains(query.tag))
            if query.id_prefix is not None:
                terms.append(doc["id"].match("^" + re.escape(query.id_prefix)))
            combined = terms[0]
            for term in terms[1:]:
                combined = combined.and_(term)
            return combined

        return predicate

    async def _run(self, term):
        if self._conn is None:
            raise AdapterError("RethinkDB store is not connected")
        return await term.run(self._conn)
