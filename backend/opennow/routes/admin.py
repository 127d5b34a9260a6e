from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from ..dependencies import (
    RequestContext,
    get_admin_context,
    get_business_service,
    get_category_service,
    get_import_service,
    get_review_service,
)
from ..models import Category, GeoPoint, ReviewStatus
from ..schemas import (
    AdminStatsResponse,
    BusinessCreateRequest,
    CategoryCreateRequest,
    PlacesImportRequest,
    PlacesImportResponse,
    PlacesSearchRequest,
    PlacesSearchResponse,
    ReviewModerateRequest,
    TopBusiness,
    business_view,
)
from ..services.business_service import BusinessService
from ..services.category_service import CategoryService
from ..services.import_service import ImportOptions, PlaceImportService
from ..services.review_service import ReviewService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/businesses")
async def list_businesses(
    context: RequestContext = Depends(get_admin_context),
    service: BusinessService = Depends(get_business_service),
) -> list[dict[str, Any]]:
    return [business_view(business, context.now) for business in await service.list_for_admin()]


@router.post("/business/create")
async def create_business(
    payload: BusinessCreateRequest,
    context: RequestContext = Depends(get_admin_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, Any]:
    business = await service.admin_create_business(payload.model_dump(exclude_none=True), context.now)
    return {"success": True, "business_id": business.business_id}


@router.put("/business/{business_id}")
async def update_business(
    business_id: str,
    updates: dict[str, Any] = Body(...),
    context: RequestContext = Depends(get_admin_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, Any]:
    business = await service.admin_update_business(business_id, updates, context.now)
    return {"success": True, "business": business_view(business, context.now)}


@router.delete("/business/{business_id}")
async def delete_business(
    business_id: str,
    context: RequestContext = Depends(get_admin_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, bool]:
    await service.delete_business(business_id)
    return {"success": True}


@router.get("/stats", response_model=AdminStatsResponse)
async def stats(
    context: RequestContext = Depends(get_admin_context),
    service: BusinessService = Depends(get_business_service),
) -> AdminStatsResponse:
    summary = await service.admin_stats()
    return AdminStatsResponse(
        total=summary.total,
        active=summary.active,
        pending=summary.pending,
        premium=summary.premium,
        top_businesses=[TopBusiness(**item) for item in summary.top_businesses],
    )


@router.get("/reviews")
async def list_reviews(
    status: ReviewStatus | None = Query(default=None),
    context: RequestContext = Depends(get_admin_context),
    service: ReviewService = Depends(get_review_service),
) -> list[dict[str, Any]]:
    return [review.model_dump(mode="json") for review in await service.list_reviews(status)]


@router.post("/reviews/moderate")
async def moderate_review(
    payload: ReviewModerateRequest,
    context: RequestContext = Depends(get_admin_context),
    service: ReviewService = Depends(get_review_service),
) -> dict[str, Any]:
    review = await service.moderate(payload.review_id, payload.action)
    return {"success": True, "review": review.model_dump(mode="json") if review else None}


@router.post("/categories", response_model=Category)
async def create_category(
    payload: CategoryCreateRequest,
    context: RequestContext = Depends(get_admin_context),
    service: CategoryService = Depends(get_category_service),
) -> Category:
    return await service.create_category(payload.label)


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    context: RequestContext = Depends(get_admin_context),
    service: CategoryService = Depends(get_category_service),
) -> dict[str, bool]:
    await service.delete_category(category_id)
    return {"success": True}


@router.post("/google/search", response_model=PlacesSearchResponse)
async def google_search(
    payload: PlacesSearchRequest,
    context: RequestContext = Depends(get_admin_context),
    service: PlaceImportService = Depends(get_import_service),
) -> PlacesSearchResponse:
    location = GeoPoint(lat=payload.lat, lng=payload.lng) if payload.lat is not None and payload.lng is not None else None
    candidates = await service.search_places(
        payload.term,
        payload.city,
        neighborhood=payload.neighborhood,
        location=location,
        radius_m=payload.radius,
    )
    return PlacesSearchResponse(results=candidates)


@router.post("/google/import", response_model=PlacesImportResponse)
async def google_import(
    payload: PlacesImportRequest,
    context: RequestContext = Depends(get_admin_context),
    service: PlaceImportService = Depends(get_import_service),
) -> PlacesImportResponse:
    summary = await service.import_candidates(
        payload.businesses,
        ImportOptions(require_phone=payload.require_phone, default_city=payload.default_city),
        context.now,
    )
    return PlacesImportResponse(
        imported=summary.imported,
        skipped=summary.skipped,
        detail_failures=summary.detail_failures,
        business_ids=summary.business_ids,
    )
