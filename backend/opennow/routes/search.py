from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import RequestContext, get_assistant_service, get_context, get_hybrid_search_service
from ..errors import ValidationError
from ..models import GeoPoint
from ..schemas import ChatRequest, ChatResponse, HybridSearchRequest, HybridSearchResponse, business_view
from ..services.assistant_service import AssistantService
from ..services.hybrid_search_service import HybridQuery, HybridSearchService

router = APIRouter(tags=["search"])


@router.post("/search/hybrid", response_model=HybridSearchResponse)
async def hybrid_search(
    payload: HybridSearchRequest,
    context: RequestContext = Depends(get_context),
    service: HybridSearchService = Depends(get_hybrid_search_service),
) -> HybridSearchResponse:
    location = GeoPoint(lat=payload.lat, lng=payload.lng) if payload.lat is not None and payload.lng is not None else None
    outcome = await service.search_and_import(
        HybridQuery(term=payload.term, location=location, city=payload.city, radius_m=payload.radius),
        context.now,
    )
    return HybridSearchResponse(
        results=[business_view(item.business, context.now, item.distance_km) for item in outcome.results],
        imported=len(outcome.imported),
        provider_available=outcome.provider_available,
    )


@router.post("/ai/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    context: RequestContext = Depends(get_context),
    service: AssistantService = Depends(get_assistant_service),
) -> ChatResponse:
    if not payload.message.strip():
        raise ValidationError("Message is required")
    user_id = payload.user_id or (context.principal.user_id if context.principal else "anonymous")
    reply = await service.chat(payload.message, user_id, payload.user_location, context.now)
    return ChatResponse(**reply.to_payload())
