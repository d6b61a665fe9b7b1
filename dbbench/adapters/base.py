from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

Document = dict[str, Any]


class AdapterError(Exception):
    """Raised when a backend cannot be reached or rejects an operation."""


@dataclass(frozen=True)
class Query:
    """Backend-neutral description of a filtered read.

    All set criteria must hold. ``value_range`` bounds the ``value`` field
    inclusively, ``min_version`` requires ``metadata.version`` to be strictly
    greater, ``tag`` requires membership in ``tags``.
    """

    equals: Mapping[str, Any] = field(default_factory=dict)
    value_range: tuple[int, int] | None = None
    min_version: int | None = None
    tag: str | None = None
    id_prefix: str | None = None
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None

    def matches(self, document: Mapping[str, Any]) -> bool:
        for key, expected in self.equals.items():
            if document.get(key) != expected:
                return False
        if self.value_range is not None:
            low, high = self.value_range
            value = document.get("value")
            if value is None or not low <= value <= high:
                return False
        if self.min_version is not None:
            version = (document.get("metadata") or {}).get("version")
            if version is None or version <= self.min_version:
                return False
        if self.tag is not None and self.tag not in (document.get("tags") or ()):
            return False
        if self.id_prefix is not None and not str(document.get("id", "")).startswith(
            self.id_prefix
        ):
            return False
        return True


class DocumentStore(abc.ABC):
    """Async interface the scenarios use to talk to a backend."""

    name: str = "abstract"

    @abc.abstractmethod
    async def connect(self) -> None: ...

    @abc.abstractmethod
    async def disconnect(self) -> None: ...

    @abc.abstractmethod
    async def ensure_table(self, table: str) -> None:
        """Create ``table`` unless it already exists."""

    @abc.abstractmethod
    async def insert(
        self, table: str, documents: Iterable[Document], replace: bool = False
    ) -> int:
        """Insert documents and return how many were inserted or replaced."""

    @abc.abstractmethod
    async def get(self, table: str, document_id: str) -> Document | None: ...

    @abc.abstractmethod
    async def update(self, table: str, document_id: str, changes: Mapping[str, Any]) -> int:
        """Merge ``changes`` into one document; return the number replaced."""

    @abc.abstractmethod
    async def delete(self, table: str, document_id: str) -> int: ...

    @abc.abstractmethod
    async def delete_many(self, table: str, document_ids: Iterable[str]) -> int: ...

    @abc.abstractmethod
    async def clear(self, table: str) -> int: ...

    @abc.abstractmethod
    async def find(self, table: str, query: Query) -> list[Document]: ...

    @abc.abstractmethod
    async def count(self, table: str, query: Query | None = None) -> int: ...

    @abc.abstractmethod
    async def count_ids(self, table: str, document_ids: Iterable[str]) -> int:
        """Number of the given ids present in ``table``."""
