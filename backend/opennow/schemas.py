from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import Business, ForcedStatus, GeoPoint
from .services.time_service import is_open_now


class PlaceCandidate(BaseModel):
    """A provider place as shown in the admin search and sent back for import."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    google_place_id: str
    name: str
    category: str | None = None
    address: str = ""
    latitude: float | None = None
    longitude: float | None = None
    rating: float | None = None
    user_ratings_total: int | None = None
    business_status: str | None = None
    types: list[str] = Field(default_factory=list)


class BusinessCreateRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    category: str = ""
    description: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    open_time: str | None = None
    close_time: str | None = None
    whatsapp: str = ""
    website: str = ""
    latitude: Any = None
    longitude: Any = None
    owner_id: str | None = None


class ToggleStatusRequest(BaseModel):
    business_id: str
    status: ForcedStatus | None = None


class ClaimRequest(BaseModel):
    business_id: str


class VoteRequest(BaseModel):
    type: str


class VoteResponse(BaseModel):
    success: bool = True
    state: str
    likes: int
    dislikes: int


class WhatsappClickRequest(BaseModel):
    business_id: str
    user_id: str | None = None


class HybridSearchRequest(BaseModel):
    term: str = ""
    lat: float | None = None
    lng: float | None = None
    city: str | None = None
    radius: int | None = None


class HybridSearchResponse(BaseModel):
    success: bool = True
    results: list[dict[str, Any]]
    imported: int
    provider_available: bool


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    user_location: GeoPoint | None = Field(default=None, alias="userLocation")
    user_id: str | None = Field(default=None, alias="userId")


class ChatResponse(BaseModel):
    text: str
    results: list[dict[str, Any]] = Field(default_factory=list)
    action: str = "none"


class ReviewCreateRequest(BaseModel):
    business_id: str
    rating: int
    comment: str = ""


class ReviewCreateResponse(BaseModel):
    success: bool = True
    message: str
    review_id: str
    status: str


class ReviewModerateRequest(BaseModel):
    review_id: str
    action: str


class CategoryCreateRequest(BaseModel):
    label: str = ""


class MarketingCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    business_id: str = Field(alias="businessId")
    type: str
    duration_days: int = Field(default=7, alias="durationDays")


class PlacesSearchRequest(BaseModel):
    term: str = ""
    city: str = ""
    neighborhood: str | None = None
    radius: int | None = None
    lat: float | None = None
    lng: float | None = None


class PlacesSearchResponse(BaseModel):
    success: bool = True
    results: list[PlaceCandidate]


class PlacesImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    businesses: list[PlaceCandidate] = Field(default_factory=list)
    require_phone: bool = Field(default=False, alias="requirePhone")
    default_city: str | None = Field(default=None, alias="defaultCity")


class PlacesImportResponse(BaseModel):
    success: bool = True
    imported: int
    skipped: int
    detail_failures: int = 0
    business_ids: list[str] = Field(default_factory=list)


class TopBusiness(BaseModel):
    business_id: str
    name: str
    whatsapp_clicks: int


class AdminStatsResponse(BaseModel):
    total: int
    active: int
    pending: int
    premium: int
    top_businesses: list[TopBusiness]


def business_view(business: Business, now_utc: datetime, distance_km: float | None = None) -> dict[str, Any]:
    payload = business.to_document()
    payload["is_open"] = is_open_now(business, now_utc)
    if distance_km is not None:
        payload["distance_km"] = round(distance_km, 3)
    return payload
