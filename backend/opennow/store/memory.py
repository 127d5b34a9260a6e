from __future__ import annotations

import copy
import uuid

from ..errors import NotFoundError
from .base import Collection, Document, DocumentStore, QuerySpec, apply_updates, run_query


class InMemoryCollection(Collection):
    def __init__(self, name: str, documents: dict[str, Document]) -> None:
        super().__init__(name)
        self._documents = documents

    async def _query(self, spec: QuerySpec) -> list[Document]:
        return copy.deepcopy(run_query(list(self._documents.values()), spec))

    async def _get(self, doc_id: str) -> Document | None:
        document = self._documents.get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def _set(self, doc_id: str, data: Document) -> None:
        self._documents[doc_id] = copy.deepcopy(data)

    async def _update(self, doc_id: str, updates: Document) -> Document:
        existing = self._documents.get(doc_id)
        if existing is None:
            raise NotFoundError(f"Document {doc_id} not found in {self.name}")
        merged = apply_updates(existing, updates)
        self._documents[doc_id] = merged
        return copy.deepcopy(merged)

    async def _delete(self, doc_id: str) -> None:
        if doc_id not in self._documents:
            raise NotFoundError(f"Document {doc_id} not found in {self.name}")
        del self._documents[doc_id]

    async def _add(self, data: Document, id_field: str | None) -> str:
        doc_id = uuid.uuid4().hex
        payload = copy.deepcopy(data)
        if id_field:
            payload[id_field] = doc_id
        self._documents[doc_id] = payload
        return doc_id


class InMemoryDocumentStore(DocumentStore):
    """Process-local store used in development and tests.

    Documents are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, seed: dict[str, list[tuple[str, Document]]] | None = None) -> None:
        self._data: dict[str, dict[str, Document]] = {}
        for collection_name, rows in (seed or {}).items():
            bucket = self._data.setdefault(collection_name, {})
            for doc_id, document in rows:
                bucket[doc_id] = copy.deepcopy(document)

    def collection(self, name: str) -> InMemoryCollection:
        return InMemoryCollection(name, self._data.setdefault(name, {}))
