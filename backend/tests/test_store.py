from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from opennow.errors import NotFoundError, StoreError
from opennow.store import BUSINESS, InMemoryDocumentStore
from opennow.store.base import apply_updates
from opennow.store.sql import SqlDocumentStore


@pytest.fixture(params=["memory", "sqlite"])
async def any_store(request):
    if request.param == "memory":
        yield InMemoryDocumentStore()
        return
    store = SqlDocumentStore(engine=create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool))
    await store.startup()
    yield store
    await store.shutdown()


def test_apply_updates_addresses_nested_fields() -> None:
    original = {"analytics": {"clicks": 1, "likes": 2}, "name": "A"}
    merged = apply_updates(original, {"analytics.clicks": 5, "marketing.boost": {"active": True}})
    assert merged["analytics"] == {"clicks": 5, "likes": 2}
    assert merged["marketing"] == {"boost": {"active": True}}
    assert original["analytics"]["clicks"] == 1


async def test_set_get_update_delete(any_store) -> None:
    collection = any_store.collection(BUSINESS)
    await collection.set("b1", {"name": "Padaria", "analytics": {"clicks": 0}})

    updated = await collection.update("b1", {"analytics.clicks": 3})
    assert updated["analytics"]["clicks"] == 3
    assert (await collection.get("b1"))["name"] == "Padaria"

    await collection.delete("b1")
    assert await collection.get("b1") is None


async def test_update_and_delete_missing_raise_not_found(any_store) -> None:
    collection = any_store.collection(BUSINESS)
    with pytest.raises(NotFoundError):
        await collection.update("missing", {"name": "x"})
    with pytest.raises(NotFoundError):
        await collection.delete("missing")


async def test_add_assigns_id_field(any_store) -> None:
    collection = any_store.collection("reviews")
    review_id = await collection.add({"rating": 5}, id_field="review_id")
    stored = await collection.get(review_id)
    assert stored == {"rating": 5, "review_id": review_id}


async def test_query_filters_orders_and_limits(any_store) -> None:
    collection = any_store.collection("reviews")
    await collection.set("r1", {"business_id": "b1", "status": "approved", "created_at": 1})
    await collection.set("r2", {"business_id": "b1", "status": "pending", "created_at": 2})
    await collection.set("r3", {"business_id": "b1", "status": "approved", "created_at": 3})
    await collection.set("r4", {"business_id": "b2", "status": "approved", "created_at": 4})

    rows = await (
        collection.where("business_id", "==", "b1")
        .where("status", "==", "approved")
        .order_by("created_at", descending=True)
        .get()
    )
    assert [row["created_at"] for row in rows] == [3, 1]

    first = await collection.query().order_by("created_at").limit(2).get()
    assert [row["created_at"] for row in first] == [1, 2]

    in_rows = await collection.where("status", "in", ["pending"]).get()
    assert [row["created_at"] for row in in_rows] == [2]


async def test_collections_are_isolated(any_store) -> None:
    await any_store.collection("a").set("same", {"v": 1})
    await any_store.collection("b").set("same", {"v": 2})
    assert (await any_store.collection("a").get("same"))["v"] == 1
    assert (await any_store.collection("b").get("same"))["v"] == 2


async def test_memory_store_returns_copies() -> None:
    store = InMemoryDocumentStore(seed={BUSINESS: [("b1", {"name": "Original"})]})
    document = await store.collection(BUSINESS).get("b1")
    document["name"] = "Changed"
    assert (await store.collection(BUSINESS).get("b1"))["name"] == "Original"


async def test_backend_failures_become_store_errors() -> None:
    store = SqlDocumentStore(engine=create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool))
    # Table never created: the backend error is wrapped.
    with pytest.raises(StoreError):
        await store.collection(BUSINESS).get("b1")
    await store.shutdown()


def test_unsupported_operator_is_rejected() -> None:
    collection = InMemoryDocumentStore().collection(BUSINESS)
    with pytest.raises(ValueError):
        collection.where("name", ">", "a")
