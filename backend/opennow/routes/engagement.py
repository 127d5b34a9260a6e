from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..dependencies import (
    RequestContext,
    get_admin_context,
    get_category_service,
    get_context,
    get_marketing_service,
    get_review_service,
)
from ..models import Category
from ..schemas import MarketingCreateRequest, ReviewCreateRequest, ReviewCreateResponse
from ..services.category_service import CategoryService
from ..services.marketing_service import MarketingService
from ..services.review_service import ReviewService

router = APIRouter(tags=["engagement"])


@router.post("/reviews/create", response_model=ReviewCreateResponse)
async def create_review(
    payload: ReviewCreateRequest,
    context: RequestContext = Depends(get_context),
    service: ReviewService = Depends(get_review_service),
) -> ReviewCreateResponse:
    submission = await service.create_review(
        payload.business_id,
        context.user.user_id,
        payload.rating,
        payload.comment,
        context.now,
    )
    return ReviewCreateResponse(
        message=submission.message,
        review_id=submission.review.review_id,
        status=submission.review.status.value,
    )


@router.get("/reviews/{business_id}")
async def list_reviews(
    business_id: str,
    service: ReviewService = Depends(get_review_service),
) -> list[dict[str, Any]]:
    reviews = await service.list_public_reviews(business_id)
    return [review.model_dump(mode="json") for review in reviews]


@router.get("/categories", response_model=list[Category])
async def list_categories(service: CategoryService = Depends(get_category_service)) -> list[Category]:
    return await service.list_categories()


@router.post("/marketing/create")
async def create_campaign(
    payload: MarketingCreateRequest,
    context: RequestContext = Depends(get_context),
    service: MarketingService = Depends(get_marketing_service),
) -> dict[str, Any]:
    principal = context.user
    campaign = await service.create_campaign(
        payload.business_id,
        payload.type,
        principal.user_id,
        is_admin=principal.is_admin,
        duration_days=payload.duration_days,
        now_utc=context.now,
    )
    return {"success": True, "adId": campaign.ad_id, "price": campaign.price, "status": campaign.status.value}


@router.post("/marketing/{ad_id}/activate")
async def activate_campaign(
    ad_id: str,
    context: RequestContext = Depends(get_admin_context),
    service: MarketingService = Depends(get_marketing_service),
) -> dict[str, Any]:
    campaign = await service.activate_campaign(ad_id, context.now)
    return {"success": True, "campaign": campaign.to_document()}


@router.get("/marketing/ads")
async def list_ads(
    context: RequestContext = Depends(get_context),
    service: MarketingService = Depends(get_marketing_service),
) -> list[dict[str, Any]]:
    return await service.list_active_ads(context.now)
