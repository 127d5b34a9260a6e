from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from ..dependencies import (
    RequestContext,
    get_business_service,
    get_context,
    get_ranking_service,
    get_vote_service,
)
from ..schemas import (
    BusinessCreateRequest,
    ClaimRequest,
    ToggleStatusRequest,
    VoteRequest,
    VoteResponse,
    WhatsappClickRequest,
    business_view,
)
from ..services.business_service import BusinessService
from ..services.ranking_service import RankingService
from ..services.vote_service import VoteService

router = APIRouter(tags=["business"])


@router.get("/business/list")
async def list_businesses(
    city: str | None = Query(default=None),
    state: str | None = Query(default=None),
    category: str | None = Query(default=None),
    context: RequestContext = Depends(get_context),
    ranking: RankingService = Depends(get_ranking_service),
) -> list[dict[str, Any]]:
    businesses = await ranking.list_businesses(city=city, state=state, category=category, now_utc=context.now)
    return [business_view(business, context.now) for business in businesses]


@router.post("/business/create")
async def create_business(
    payload: BusinessCreateRequest,
    context: RequestContext = Depends(get_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, Any]:
    owner_id = context.principal.user_id if context.principal else payload.owner_id
    business = await service.create_business(payload.model_dump(exclude_none=True), owner_id, context.now)
    return {"success": True, "business_id": business.business_id, "business": business_view(business, context.now)}


@router.put("/business/update/{business_id}")
async def update_business(
    business_id: str,
    updates: dict[str, Any] = Body(...),
    context: RequestContext = Depends(get_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, Any]:
    business = await service.update_business(business_id, context.user.user_id, updates, context.now)
    return {"success": True, "business": business_view(business, context.now)}


@router.post("/business/toggle-status")
async def toggle_status(
    payload: ToggleStatusRequest,
    context: RequestContext = Depends(get_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, Any]:
    business = await service.toggle_status(payload.business_id, context.user.user_id, payload.status, context.now)
    view = business_view(business, context.now)
    return {"success": True, "forced_status": view["forced_status"], "is_open": view["is_open"]}


@router.post("/business/claim")
async def claim_business(
    payload: ClaimRequest,
    context: RequestContext = Depends(get_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, Any]:
    business = await service.claim_business(payload.business_id, context.user.user_id, context.now)
    return {"success": True, "business_id": business.business_id, "owner_id": business.owner_id}


@router.post("/business/{business_id}/vote", response_model=VoteResponse)
async def vote(
    business_id: str,
    payload: VoteRequest,
    context: RequestContext = Depends(get_context),
    service: VoteService = Depends(get_vote_service),
) -> VoteResponse:
    outcome = await service.vote(business_id, context.user.user_id, payload.type, context.now)
    return VoteResponse(state=outcome.state.value, likes=outcome.likes, dislikes=outcome.dislikes)


@router.post("/analytics/whatsapp")
async def track_whatsapp(
    payload: WhatsappClickRequest,
    context: RequestContext = Depends(get_context),
    service: BusinessService = Depends(get_business_service),
) -> dict[str, bool]:
    user_id = payload.user_id or (context.principal.user_id if context.principal else None)
    await service.track_whatsapp_click(payload.business_id, user_id, context.now)
    return {"success": True}
