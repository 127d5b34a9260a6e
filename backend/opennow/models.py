from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

OWNER_ADMIN_IMPORT = "admin_import"
OWNER_ADMIN_CREATED = "admin_created"
OWNER_UNKNOWN = "unknown_owner"
UNCLAIMED_OWNERS = frozenset({OWNER_ADMIN_IMPORT, OWNER_ADMIN_CREATED, OWNER_UNKNOWN})


class ForcedStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class Plan(str, Enum):
    FREE = "free"
    GOLD = "gold"
    DIAMOND = "diamond"


class VoteType(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"


class VoteState(str, Enum):
    NO_VOTE = "none"
    LIKED = "liked"
    DISLIKED = "disliked"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class CampaignType(str, Enum):
    BOOST = "boost"
    AD = "ad"


class CampaignStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


class GeoPoint(BaseModel):
    lat: float
    lng: float


class PromotionSlot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active: bool = False
    expires_at: int | None = Field(default=None, alias="expiresAt")

    def is_live(self, now_ms: int) -> bool:
        return self.active and self.expires_at is not None and self.expires_at > now_ms


class Marketing(BaseModel):
    boost: PromotionSlot = Field(default_factory=PromotionSlot)
    ad: PromotionSlot = Field(default_factory=PromotionSlot)


class Analytics(BaseModel):
    views: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    appearances: int = Field(default=0, ge=0)
    whatsapp_clicks: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    dislikes: int = Field(default=0, ge=0)

    @field_validator("*", mode="before")
    @classmethod
    def _missing_counter_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


def _coerce_optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class Business(BaseModel):
    """A directory listing as stored in the ``business`` collection.

    Extra document fields are preserved so partial admin edits never drop data
    this model does not know about.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    business_id: str
    google_place_id: str | None = None
    owner_id: str = OWNER_UNKNOWN
    name: str
    category: str = ""
    description: str = ""
    address: str = ""
    street: str = ""
    number: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""
    open_time: str | None = None
    close_time: str | None = None
    forced_status: ForcedStatus | None = None
    whatsapp: str = ""
    website: str = ""
    latitude: float | None = None
    longitude: float | None = None
    is_premium: bool = False
    plan: Plan = Plan.FREE
    verified: bool = False
    marketing: Marketing = Field(default_factory=Marketing)
    analytics: Analytics = Field(default_factory=Analytics)
    rating: float = 0.0
    review_count: int = 0
    google_types: list[str] = Field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0

    @field_validator("forced_status", mode="before")
    @classmethod
    def _unknown_forced_status_is_automatic(cls, value: Any) -> Any:
        if isinstance(value, str) and value in {item.value for item in ForcedStatus}:
            return value
        if isinstance(value, ForcedStatus):
            return value
        return None

    @field_validator("plan", mode="before")
    @classmethod
    def _unknown_plan_is_free(cls, value: Any) -> Any:
        if isinstance(value, Plan):
            return value
        if isinstance(value, str) and value in {item.value for item in Plan}:
            return value
        return Plan.FREE

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> float | None:
        return _coerce_optional_float(value)

    @field_validator(
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
        "whatsapp",
        "website",
        mode="before",
    )
    @classmethod
    def _missing_text_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("marketing", "analytics", mode="before")
    @classmethod
    def _missing_record_is_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_claimed(self) -> bool:
        return self.owner_id not in UNCLAIMED_OWNERS

    @property
    def location(self) -> GeoPoint | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(lat=self.latitude, lng=self.longitude)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Business":
        return cls.model_validate(document)


class Vote(BaseModel):
    vote_id: str
    business_id: str
    user_id: str
    type: VoteType
    created_at: int = 0
    updated_at: int = 0

    @staticmethod
    def key_for(business_id: str, user_id: str) -> str:
        # Business ids are uuid hex or goog_<place id> and never contain ":".
        return f"{business_id}:{user_id}"


class Review(BaseModel):
    review_id: str
    business_id: str
    user_id: str
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    status: ReviewStatus = ReviewStatus.PENDING
    created_at: int = 0


class MarketingCampaign(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ad_id: str = Field(alias="adId")
    business_id: str = Field(alias="businessId")
    business_name: str = Field(default="", alias="businessName")
    type: CampaignType
    price: float
    duration_days: int = Field(alias="durationDays")
    start_date: int | None = Field(default=None, alias="startDate")
    end_date: int | None = Field(default=None, alias="endDate")
    status: CampaignStatus = CampaignStatus.PENDING
    created_at: int = Field(default=0, alias="createdAt")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Category(BaseModel):
    id: str
    label: str
    order: int = 99
