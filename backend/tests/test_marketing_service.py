from __future__ import annotations

from datetime import timedelta

import pytest

from opennow.errors import ForbiddenError, NotFoundError, ValidationError
from opennow.models import CampaignStatus, CampaignType, Plan
from opennow.services.business_repository import BusinessRepository
from opennow.services.marketing_service import MarketingService, campaign_price
from opennow.services.time_service import epoch_millis


def test_campaign_prices() -> None:
    assert campaign_price(CampaignType.BOOST, Plan.FREE) == 49.0
    assert campaign_price(CampaignType.AD, Plan.GOLD) == 99.0
    assert campaign_price(CampaignType.BOOST, Plan.DIAMOND) == 34.3
    assert campaign_price(CampaignType.AD, Plan.DIAMOND) == 69.3


async def test_owner_creates_pending_campaign(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1", plan="diamond"))
    campaign = await MarketingService(store).create_campaign("b1", "boost", "owner-1", now_utc=now)

    assert campaign.status is CampaignStatus.PENDING
    assert campaign.price == 34.3
    assert campaign.duration_days == 7
    stored = await store.collection("marketing_campaigns").get(campaign.ad_id)
    assert stored["adId"] == campaign.ad_id
    assert stored["businessId"] == "b1"
    business = await BusinessRepository(store).require("b1")
    assert not business.marketing.boost.active


async def test_only_owner_or_admin_can_promote(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1"))
    service = MarketingService(store)
    with pytest.raises(ForbiddenError):
        await service.create_campaign("b1", "ad", "intruder", now_utc=now)
    campaign = await service.create_campaign("b1", "ad", "admin", is_admin=True, now_utc=now)
    assert campaign.type is CampaignType.AD


async def test_invalid_campaign_input(store, add_businesses, make_business) -> None:
    await add_businesses(make_business("b1"))
    service = MarketingService(store)
    with pytest.raises(ValidationError):
        await service.create_campaign("b1", "banner", "owner-1")
    with pytest.raises(ValidationError):
        await service.create_campaign("b1", "boost", "owner-1", duration_days=0)
    with pytest.raises(NotFoundError):
        await service.create_campaign("missing", "boost", "owner-1")


async def test_activation_turns_on_the_slot(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1"))
    service = MarketingService(store)
    campaign = await service.create_campaign("b1", "boost", "owner-1", duration_days=3, now_utc=now)

    active = await service.activate_campaign(campaign.ad_id, now_utc=now)

    expected_end = epoch_millis(now + timedelta(days=3))
    assert active.status is CampaignStatus.ACTIVE
    assert active.end_date == expected_end
    business = await BusinessRepository(store).require("b1")
    assert business.marketing.boost.active
    assert business.marketing.boost.expires_at == expected_end
    assert business.marketing.boost.is_live(epoch_millis(now))
    assert not business.marketing.ad.active


async def test_list_active_ads_skips_expired_and_boosts(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1", description="Pão quente"), make_business("b2"))
    service = MarketingService(store)
    ad = await service.create_campaign("b1", "ad", "owner-1", duration_days=2, now_utc=now)
    boost = await service.create_campaign("b2", "boost", "owner-1", now_utc=now)
    await service.activate_campaign(ad.ad_id, now_utc=now)
    await service.activate_campaign(boost.ad_id, now_utc=now)

    ads = await service.list_active_ads(now)
    assert [entry["businessId"] for entry in ads] == ["b1"]
    assert ads[0]["description"] == "Pão quente"

    assert await service.list_active_ads(now + timedelta(days=3)) == []


async def test_activating_unknown_campaign(store) -> None:
    with pytest.raises(NotFoundError):
        await MarketingService(store).activate_campaign("nope")
