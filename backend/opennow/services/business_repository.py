from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as ModelValidationError

from ..errors import NotFoundError
from ..models import Business
from ..store import BUSINESS, Collection, DocumentStore

logger = logging.getLogger(__name__)


class BusinessRepository:
    """Typed access to the ``business`` collection.

    Every read goes to the store; nothing is cached between calls.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.collection: Collection = store.collection(BUSINESS)

    @staticmethod
    def _to_models(documents: list[dict[str, Any]]) -> list[Business]:
        businesses: list[Business] = []
        for document in documents:
            try:
                businesses.append(Business.from_document(document))
            except ModelValidationError:
                logger.warning(
                    "Skipping malformed business document id=%s",
                    document.get("business_id"),
                    exc_info=True,
                )
        return businesses

    async def list_all(self) -> list[Business]:
        return self._to_models(await self.collection.all())

    async def list_where(self, **equals: Any) -> list[Business]:
        query = self.collection.query()
        for field_name, value in equals.items():
            query = query.where(field_name, "==", value)
        return self._to_models(await query.get())

    async def get(self, business_id: str) -> Business | None:
        document = await self.collection.get(business_id)
        if document is None:
            return None
        return Business.from_document(document)

    async def require(self, business_id: str) -> Business:
        business = await self.get(business_id)
        if business is None:
            raise NotFoundError("Business not found")
        return business

    async def find_by_place_id(self, google_place_id: str) -> Business | None:
        rows = self._to_models(await self.collection.where("google_place_id", "==", google_place_id).limit(1).get())
        return rows[0] if rows else None

    async def exists_with_name(self, name: str) -> bool:
        return await self.collection.where("name", "==", name).first() is not None

    async def save(self, business: Business) -> Business:
        await self.collection.set(business.business_id, business.to_document())
        return business

    async def update(self, business_id: str, updates: dict[str, Any]) -> Business:
        return Business.from_document(await self.collection.update(business_id, updates))

    async def delete(self, business_id: str) -> None:
        await self.collection.delete(business_id)
