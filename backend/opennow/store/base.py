from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from ..errors import OpenNowError, StoreError
from ..telemetry import timed_stage

logger = logging.getLogger(__name__)

Document = dict[str, Any]
T = TypeVar("T")

SUPPORTED_OPERATORS = frozenset({"==", "!=", "in"})


def get_path(document: Document, path: str) -> Any:
    current: Any = document
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    return current


def apply_updates(document: Document, updates: Document) -> Document:
    """Return a copy of ``document`` with ``updates`` merged in.

    Dotted keys (``"analytics.clicks"``) address nested fields; intermediate
    objects are created when missing. Plain keys replace the whole value.
    """
    merged = copy.deepcopy(document)
    for key, value in updates.items():
        segments = key.split(".")
        target = merged
        for segment in segments[:-1]:
            child = target.get(segment)
            if not isinstance(child, dict):
                child = {}
                target[segment] = child
            target = child
        target[segments[-1]] = copy.deepcopy(value)
    return merged


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str
    value: Any

    def matches(self, document: Document) -> bool:
        actual = get_path(document, self.field)
        if self.op == "==":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        return actual in self.value


@dataclass(frozen=True)
class QuerySpec:
    filters: tuple[FieldFilter, ...] = ()
    order_field: str | None = None
    descending: bool = False
    limit: int | None = None


def run_query(documents: list[Document], spec: QuerySpec) -> list[Document]:
    rows = [doc for doc in documents if all(item.matches(doc) for item in spec.filters)]
    if spec.order_field is not None:
        present = [doc for doc in rows if get_path(doc, spec.order_field) is not None]
        missing = [doc for doc in rows if get_path(doc, spec.order_field) is None]
        present.sort(key=lambda doc: get_path(doc, spec.order_field), reverse=spec.descending)
        rows = present + missing
    if spec.limit is not None:
        rows = rows[: spec.limit]
    return rows


class Query:
    def __init__(self, collection: "Collection", spec: QuerySpec | None = None) -> None:
        self._collection = collection
        self.spec = spec or QuerySpec()

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        if op not in SUPPORTED_OPERATORS:
            raise ValueError(f"Unsupported query operator: {op}")
        filters = self.spec.filters + (FieldFilter(field_name, op, value),)
        return Query(self._collection, replace(self.spec, filters=filters))

    def order_by(self, field_name: str, descending: bool = False) -> "Query":
        return Query(self._collection, replace(self.spec, order_field=field_name, descending=descending))

    def limit(self, count: int) -> "Query":
        return Query(self._collection, replace(self.spec, limit=count))

    async def get(self) -> list[Document]:
        return await self._collection._guard("query", self._collection._query(self.spec))

    async def first(self) -> Document | None:
        rows = await self.limit(1).get()
        return rows[0] if rows else None


class Collection(ABC):
    """A named set of JSON documents addressed by string id."""

    def __init__(self, name: str) -> None:
        self.name = name

    async def _guard(self, operation: str, awaitable: Awaitable[T]) -> T:
        with timed_stage("store"):
            try:
                return await awaitable
            except OpenNowError:
                raise
            except Exception as exc:
                logger.exception("Store %s failed on collection %s", operation, self.name)
                raise StoreError(f"Store {operation} failed on collection {self.name}") from exc

    def query(self) -> Query:
        return Query(self)

    def where(self, field_name: str, op: str, value: Any) -> Query:
        return self.query().where(field_name, op, value)

    async def all(self) -> list[Document]:
        return await self._guard("all", self._query(QuerySpec()))

    async def get(self, doc_id: str) -> Document | None:
        return await self._guard("get", self._get(doc_id))

    async def set(self, doc_id: str, data: Document) -> None:
        await self._guard("set", self._set(doc_id, data))

    async def update(self, doc_id: str, updates: Document) -> Document:
        return await self._guard("update", self._update(doc_id, updates))

    async def delete(self, doc_id: str) -> None:
        await self._guard("delete", self._delete(doc_id))

    async def add(self, data: Document, id_field: str | None = None) -> str:
        return await self._guard("add", self._add(data, id_field))

    @abstractmethod
    async def _query(self, spec: QuerySpec) -> list[Document]: ...

    @abstractmethod
    async def _get(self, doc_id: str) -> Document | None: ...

    @abstractmethod
    async def _set(self, doc_id: str, data: Document) -> None: ...

    @abstractmethod
    async def _update(self, doc_id: str, updates: Document) -> Document: ...

    @abstractmethod
    async def _delete(self, doc_id: str) -> None: ...

    @abstractmethod
    async def _add(self, data: Document, id_field: str | None) -> str: ...


class DocumentStore(ABC):
    @abstractmethod
    def collection(self, name: str) -> Collection: ...

    async def startup(self) -> None:
        return None

    async def shutdown(self) -> None:
        return None
