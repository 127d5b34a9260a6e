from __future__ import annotations

import copy
import time
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..database import create_engine, create_session_factory, init_db
from ..db.models import DocumentRow
from ..errors import NotFoundError
from .base import Collection, Document, DocumentStore, QuerySpec, apply_updates, run_query


def _next_sequence() -> int:
    return time.time_ns()


class SqlCollection(Collection):
    """Collection backed by the ``documents`` table.

    Equality filters on top-level string fields are pushed down as JSON
    comparisons; every other filter, ordering and limit is applied in Python on
    the fetched rows.
    """

    def __init__(self, name: str, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(name)
        self._session_factory = session_factory

    async def _query(self, spec: QuerySpec) -> list[Document]:
        stmt = select(DocumentRow.data).where(DocumentRow.collection == self.name)
        for item in spec.filters:
            if item.op == "==" and "." not in item.field and isinstance(item.value, str):
                stmt = stmt.where(DocumentRow.data[item.field].as_string() == item.value)
        stmt = stmt.order_by(DocumentRow.inserted_seq.asc(), DocumentRow.id.asc())

        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return run_query([dict(row) for row in rows], spec)

    async def _get(self, doc_id: str) -> Document | None:
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, (self.name, doc_id))
            return copy.deepcopy(row.data) if row is not None else None

    async def _set(self, doc_id: str, data: Document) -> None:
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, (self.name, doc_id))
            if row is None:
                session.add(
                    DocumentRow(
                        collection=self.name,
                        id=doc_id,
                        data=copy.deepcopy(data),
                        inserted_seq=_next_sequence(),
                    )
                )
            else:
                row.data = copy.deepcopy(data)
            await session.commit()

    async def _update(self, doc_id: str, updates: Document) -> Document:
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, (self.name, doc_id))
            if row is None:
                raise NotFoundError(f"Document {doc_id} not found in {self.name}")
            merged = apply_updates(row.data, updates)
            row.data = merged
            await session.commit()
        return copy.deepcopy(merged)

    async def _delete(self, doc_id: str) -> None:
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, (self.name, doc_id))
            if row is None:
                raise NotFoundError(f"Document {doc_id} not found in {self.name}")
            await session.delete(row)
            await session.commit()

    async def _add(self, data: Document, id_field: str | None) -> str:
        doc_id = uuid.uuid4().hex
        payload = copy.deepcopy(data)
        if id_field:
            payload[id_field] = doc_id
        async with self._session_factory() as session:
            session.add(
                DocumentRow(
                    collection=self.name,
                    id=doc_id,
                    data=payload,
                    inserted_seq=_next_sequence(),
                )
            )
            await session.commit()
        return doc_id


class SqlDocumentStore(DocumentStore):
    def __init__(self, database_url: str | None = None, engine: AsyncEngine | None = None) -> None:
        if engine is None and database_url is None:
            raise ValueError("SqlDocumentStore needs a database_url or an engine")
        self.engine = engine or create_engine(database_url or "")
        self._session_factory = create_session_factory(self.engine)

    def collection(self, name: str) -> SqlCollection:
        return SqlCollection(name, self._session_factory)

    async def startup(self) -> None:
        await init_db(self.engine)

    async def shutdown(self) -> None:
        await self.engine.dispose()
