from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models import Business, CampaignStatus, CampaignType, MarketingCampaign, Plan
from ..store import MARKETING_CAMPAIGNS, DocumentStore
from .business_repository import BusinessRepository
from .time_service import epoch_millis, utcnow

logger = logging.getLogger(__name__)

CAMPAIGN_PRICES: dict[CampaignType, float] = {CampaignType.BOOST: 49.0, CampaignType.AD: 99.0}
DIAMOND_DISCOUNT = 0.30
DEFAULT_DURATION_DAYS = 7
MAX_DURATION_DAYS = 90


def campaign_price(campaign_type: CampaignType, plan: Plan) -> float:
    price = CAMPAIGN_PRICES[campaign_type]
    if plan is Plan.DIAMOND:
        price *= 1 - DIAMOND_DISCOUNT
    return round(price, 2)


def parse_campaign_type(raw: str | None) -> CampaignType:
    try:
        return CampaignType(raw)
    except ValueError:
        raise ValidationError(f"Invalid campaign type {raw!r}; expected 'boost' or 'ad'") from None


class MarketingService:
    """Paid promotions: a pending campaign becomes a live slot once paid."""

    def __init__(self, store: DocumentStore) -> None:
        self.campaigns = store.collection(MARKETING_CAMPAIGNS)
        self.repository = BusinessRepository(store)

    async def create_campaign(
        self,
        business_id: str,
        campaign_type: CampaignType | str,
        actor_id: str,
        is_admin: bool = False,
        duration_days: int = DEFAULT_DURATION_DAYS,
        now_utc: datetime | None = None,
    ) -> MarketingCampaign:
        if not isinstance(campaign_type, CampaignType):
            campaign_type = parse_campaign_type(campaign_type)
        if not 1 <= duration_days <= MAX_DURATION_DAYS:
            raise ValidationError(f"Duration must be between 1 and {MAX_DURATION_DAYS} days")

        business = await self.repository.require(business_id)
        if not is_admin and business.owner_id != actor_id:
            raise ForbiddenError("Only the owner can promote this business")

        campaign = MarketingCampaign(
            ad_id="",
            business_id=business_id,
            business_name=business.name,
            type=campaign_type,
            price=campaign_price(campaign_type, business.plan),
            duration_days=duration_days,
            status=CampaignStatus.PENDING,
            created_at=epoch_millis(now_utc or utcnow()),
        )
        payload = campaign.to_document()
        payload.pop("adId")
        campaign.ad_id = await self.campaigns.add(payload, id_field="adId")
        logger.info(
            "Created %s campaign %s for business %s price=%.2f",
            campaign_type.value,
            campaign.ad_id,
            business_id,
            campaign.price,
        )
        return campaign

    async def get_campaign(self, ad_id: str) -> MarketingCampaign:
        document = await self.campaigns.get(ad_id)
        if document is None:
            raise NotFoundError("Campaign not found")
        return MarketingCampaign.model_validate(document)

    async def activate_campaign(self, ad_id: str, now_utc: datetime | None = None) -> MarketingCampaign:
        """Mark a campaign paid and switch its slot on for the paid duration."""
        campaign = await self.get_campaign(ad_id)
        now = now_utc or utcnow()
        start = epoch_millis(now)
        end = epoch_millis(now + timedelta(days=campaign.duration_days))

        await self.campaigns.update(
            ad_id,
            {"status": CampaignStatus.ACTIVE.value, "startDate": start, "endDate": end},
        )
        await self.repository.update(
            campaign.business_id,
            {f"marketing.{campaign.type.value}": {"active": True, "expiresAt": end}},
        )
        logger.info("Activated campaign %s for business %s until %s", ad_id, campaign.business_id, end)
        return campaign.model_copy(
            update={"status": CampaignStatus.ACTIVE, "start_date": start, "end_date": end}
        )

    async def list_active_ads(self, now_utc: datetime | None = None) -> list[dict[str, Any]]:
        now_ms = epoch_millis(now_utc or utcnow())
        documents = await (
            self.campaigns.where("status", "==", CampaignStatus.ACTIVE.value)
            .where("type", "==", CampaignType.AD.value)
            .get()
        )
        ads: list[dict[str, Any]] = []
        for document in documents:
            campaign = MarketingCampaign.model_validate(document)
            if campaign.end_date is None or campaign.end_date <= now_ms:
                continue
            business: Business | None = await self.repository.get(campaign.business_id)
            if business is None:
                continue
            ads.append(
                {
                    "id": campaign.ad_id,
                    "businessId": business.business_id,
                    "businessName": business.name,
                    "description": business.description,
                    "category": business.category,
                    "endDate": campaign.end_date,
                }
            )
        return ads
