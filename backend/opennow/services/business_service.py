from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError as ModelValidationError

from ..errors import ForbiddenError, ValidationError
from ..models import OWNER_ADMIN_CREATED, OWNER_UNKNOWN, Business, ForcedStatus, Plan
from ..store import INTERACTIONS, DocumentStore
from ..store.base import apply_updates
from .business_repository import BusinessRepository
from .time_service import epoch_millis, parse_hhmm, utcnow

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = frozenset({"business_id", "google_place_id", "owner_id", "analytics", "created_at"})
# Owners may only edit these. Plan, marketing, verification and rating are system managed.
PROFILE_FIELDS = frozenset(
    {
        "name",
        "category",
        "description",
        "address",
        "street",
        "number",
        "neighborhood",
        "city",
        "state",
        "zip_code",
        "country",
        "open_time",
        "close_time",
        "whatsapp",
        "website",
        "latitude",
        "longitude",
    }
)
TOP_BUSINESSES_LIMIT = 5
DEFAULT_OPEN_TIME = "08:00"
DEFAULT_CLOSE_TIME = "18:00"


@dataclass
class AdminStats:
    total: int
    active: int
    pending: int
    premium: int
    top_businesses: list[dict[str, Any]]


def parse_forced_status(raw: str | ForcedStatus | None) -> ForcedStatus | None:
    if raw is None or isinstance(raw, ForcedStatus):
        return raw
    try:
        return ForcedStatus(raw)
    except ValueError:
        raise ValidationError(f"Invalid status {raw!r}; expected 'open', 'closed' or null") from None


def _coordinate_or_zero(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _check_hours(payload: dict[str, Any]) -> None:
    for key in ("open_time", "close_time"):
        value = payload.get(key)
        if value not in (None, "") and parse_hhmm(value) is None:
            raise ValidationError(f"{key} must use HH:MM format")


def _profile_only(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key.split(".", 1)[0] in PROFILE_FIELDS}


def _build(document: dict[str, Any]) -> Business:
    try:
        return Business.from_document(document)
    except ModelValidationError as exc:
        raise ValidationError(f"Invalid business data: {exc.errors()[0].get('msg', exc)}") from exc


class BusinessService:
    def __init__(self, store: DocumentStore) -> None:
        self.repository = BusinessRepository(store)
        self.interactions = store.collection(INTERACTIONS)

    async def _create(self, payload: dict[str, Any], owner_id: str, now_utc: datetime | None) -> Business:
        if not (payload.get("name") or "").strip():
            raise ValidationError("Name is required")
        if not (payload.get("whatsapp") or "").strip():
            raise ValidationError("WhatsApp is required")
        _check_hours(payload)

        stamp = epoch_millis(now_utc or utcnow())
        fields = {key: value for key, value in payload.items() if key not in PROTECTED_FIELDS}
        business = _build(
            {
                **fields,
                "business_id": uuid.uuid4().hex,
                "owner_id": owner_id,
                "name": payload["name"].strip(),
                "created_at": stamp,
                "updated_at": stamp,
            }
        )
        await self.repository.save(business)
        logger.info("Created business %s owner=%s", business.business_id, owner_id)
        return business

    async def create_business(
        self,
        payload: dict[str, Any],
        owner_id: str | None,
        now_utc: datetime | None = None,
    ) -> Business:
        return await self._create(_profile_only(payload), owner_id or OWNER_UNKNOWN, now_utc)

    async def admin_create_business(self, payload: dict[str, Any], now_utc: datetime | None = None) -> Business:
        owner_id = payload.get("owner_id") or OWNER_ADMIN_CREATED
        prepared = {
            **payload,
            "open_time": payload.get("open_time") or DEFAULT_OPEN_TIME,
            "close_time": payload.get("close_time") or DEFAULT_CLOSE_TIME,
            "latitude": _coordinate_or_zero(payload.get("latitude")),
            "longitude": _coordinate_or_zero(payload.get("longitude")),
            "verified": payload.get("verified", True),
        }
        return await self._create(prepared, owner_id, now_utc)

    async def _apply_update(
        self,
        business: Business,
        updates: dict[str, Any],
        now_utc: datetime | None,
    ) -> Business:
        clean = {key: value for key, value in updates.items() if key.split(".", 1)[0] not in PROTECTED_FIELDS}
        if "name" in clean and not (clean["name"] or "").strip():
            raise ValidationError("Name cannot be empty")
        _check_hours(clean)
        if not clean:
            return business

        merged = _build(apply_updates(business.to_document(), clean))
        normalized = merged.to_document()
        stored = {key.split(".", 1)[0]: normalized[key.split(".", 1)[0]] for key in clean}
        stored["updated_at"] = epoch_millis(now_utc or utcnow())
        return await self.repository.update(business.business_id, stored)

    async def update_business(
        self,
        business_id: str,
        actor_id: str,
        updates: dict[str, Any],
        now_utc: datetime | None = None,
    ) -> Business:
        business = await self.repository.require(business_id)
        if business.owner_id != actor_id:
            raise ForbiddenError("You do not own this business")
        return await self._apply_update(business, _profile_only(updates), now_utc)

    async def admin_update_business(
        self,
        business_id: str,
        updates: dict[str, Any],
        now_utc: datetime | None = None,
    ) -> Business:
        business = await self.repository.require(business_id)
        return await self._apply_update(business, updates, now_utc)

    async def toggle_status(
        self,
        business_id: str,
        actor_id: str,
        status: ForcedStatus | str | None,
        now_utc: datetime | None = None,
    ) -> Business:
        forced = parse_forced_status(status)
        business = await self.repository.require(business_id)
        if business.owner_id != actor_id:
            raise ForbiddenError("You do not own this business")
        logger.info("Business %s forced status -> %s", business_id, forced.value if forced else "auto")
        return await self.repository.update(
            business_id,
            {"forced_status": forced.value if forced else None, "updated_at": epoch_millis(now_utc or utcnow())},
        )

    async def claim_business(self, business_id: str, user_id: str, now_utc: datetime | None = None) -> Business:
        business = await self.repository.require(business_id)
        if business.is_claimed:
            raise ValidationError("Empresa já possui proprietário.")
        logger.info("Business %s claimed by %s", business_id, user_id)
        return await self.repository.update(
            business_id,
            {"owner_id": user_id, "updated_at": epoch_millis(now_utc or utcnow())},
        )

    async def delete_business(self, business_id: str) -> None:
        await self.repository.delete(business_id)
        logger.info("Deleted business %s", business_id)

    async def list_for_admin(self) -> list[Business]:
        businesses = await self.repository.list_all()
        return sorted(businesses, key=lambda business: business.created_at, reverse=True)

    async def track_whatsapp_click(
        self,
        business_id: str,
        user_id: str | None = None,
        now_utc: datetime | None = None,
    ) -> None:
        business = await self.repository.require(business_id)
        await self.interactions.add(
            {
                "business_id": business_id,
                "user_id": user_id or "anonymous",
                "type": "whatsapp_click",
                "timestamp": epoch_millis(now_utc or utcnow()),
            },
            id_field="interaction_id",
        )
        await self.repository.update(
            business_id,
            {
                "analytics.clicks": business.analytics.clicks + 1,
                "analytics.whatsapp_clicks": business.analytics.whatsapp_clicks + 1,
            },
        )

    async def admin_stats(self) -> AdminStats:
        businesses = await self.repository.list_all()
        top = sorted(businesses, key=lambda business: business.analytics.whatsapp_clicks, reverse=True)
        return AdminStats(
            total=len(businesses),
            active=sum(1 for business in businesses if business.forced_status is not ForcedStatus.CLOSED),
            pending=sum(1 for business in businesses if not business.verified),
            premium=sum(1 for business in businesses if business.is_premium or business.plan is not Plan.FREE),
            top_businesses=[
                {
                    "business_id": business.business_id,
                    "name": business.name,
                    "whatsapp_clicks": business.analytics.whatsapp_clicks,
                }
                for business in top[:TOP_BUSINESSES_LIMIT]
            ],
        )
