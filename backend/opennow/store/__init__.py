from __future__ import annotations

from ..config import Settings
from .base import Collection, Document, DocumentStore, Query
from .memory import InMemoryDocumentStore

BUSINESS = "business"
VOTES = "votes"
REVIEWS = "reviews"
MARKETING_CAMPAIGNS = "marketing_campaigns"
APP_CATEGORIES = "app_categories"
INTERACTIONS = "interactions"


def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "sql":
        from .sql import SqlDocumentStore

        return SqlDocumentStore(database_url=settings.database_url)
    return InMemoryDocumentStore()


__all__ = [
    "APP_CATEGORIES",
    "BUSINESS",
    "Collection",
    "Document",
    "DocumentStore",
    "INTERACTIONS",
    "InMemoryDocumentStore",
    "MARKETING_CAMPAIGNS",
    "Query",
    "REVIEWS",
    "VOTES",
    "build_store",
]
