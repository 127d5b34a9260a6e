from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import pytest

from opennow.config import Settings
from opennow.models import Business
from opennow.services.business_repository import BusinessRepository
from opennow.store import InMemoryDocumentStore

# 12:00 in America/Sao_Paulo.
NOON_LOCAL = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        google_maps_api_key="test-places-key",
        ai_api_key="",
        places_page_token_delay_seconds=0.0,
        category_read_timeout_seconds=0.2,
        store_backend="memory",
        telemetry_enabled=False,
    )


@pytest.fixture
def now() -> datetime:
    return NOON_LOCAL


def build_business(business_id: str, **overrides: Any) -> Business:
    payload: dict[str, Any] = {
        "business_id": business_id,
        "name": business_id.replace("-", " ").title(),
        "category": "Alimentação",
        "description": "",
        "open_time": "08:00",
        "close_time": "18:00",
        "whatsapp": "+55 11 90000-0000",
        "owner_id": "owner-1",
        "verified": True,
    }
    payload.update(overrides)
    return Business.model_validate(payload)


@pytest.fixture
def make_business() -> Callable[..., Business]:
    return build_business


@pytest.fixture
def add_businesses(store: InMemoryDocumentStore) -> Callable[..., Awaitable[list[Business]]]:
    repository = BusinessRepository(store)

    async def _add(*businesses: Business) -> list[Business]:
        for business in businesses:
            await repository.save(business)
        return list(businesses)

    return _add
