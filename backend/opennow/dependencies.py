from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from fastapi import Depends, Header, Request

from . import auth
from .auth import Principal
from .config import Settings
from .errors import ForbiddenError
from .services.assistant_service import AssistantService, ConversationStore, SearchToolAdapter
from .services.business_service import BusinessService
from .services.category_service import CategoryService
from .services.hybrid_search_service import HybridSearchService
from .services.import_service import PlaceImportService
from .services.marketing_service import MarketingService
from .services.places_client import PlacesClient
from .services.ranking_service import RankingService
from .services.review_service import ReviewService
from .services.time_service import utcnow
from .services.vote_service import VoteService
from .store import DocumentStore


@dataclass
class RequestContext:
    """Everything a request-scoped operation needs, resolved once per request."""

    store: DocumentStore
    settings: Settings
    principal: Principal | None = None
    now: datetime = field(default_factory=utcnow)

    @property
    def user(self) -> Principal:
        return auth.require_user(self.principal)

    @property
    def admin(self) -> Principal:
        return auth.require_admin(self.principal)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_places_client(request: Request) -> PlacesClient:
    return request.app.state.places_client


def get_conversations(request: Request) -> ConversationStore:
    return request.app.state.conversations


def get_principal(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> Principal | None:
    token = auth.bearer_token(authorization)
    if token is None:
        return None
    principal = auth.resolve_principal(token, settings)
    if principal is None:
        raise ForbiddenError("Invalid token")
    return principal


def get_context(
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    principal: Principal | None = Depends(get_principal),
) -> RequestContext:
    return RequestContext(store=store, settings=settings, principal=principal)


def get_admin_context(context: RequestContext = Depends(get_context)) -> RequestContext:
    auth.require_admin(context.principal)
    return context


def get_business_service(store: DocumentStore = Depends(get_store)) -> BusinessService:
    return BusinessService(store)


def get_ranking_service(store: DocumentStore = Depends(get_store)) -> RankingService:
    return RankingService(store)


def get_vote_service(store: DocumentStore = Depends(get_store)) -> VoteService:
    return VoteService(store)


def get_review_service(store: DocumentStore = Depends(get_store)) -> ReviewService:
    return ReviewService(store)


def get_marketing_service(store: DocumentStore = Depends(get_store)) -> MarketingService:
    return MarketingService(store)


def get_category_service(
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> CategoryService:
    return CategoryService(store, settings)


def get_import_service(
    store: DocumentStore = Depends(get_store),
    places: PlacesClient = Depends(get_places_client),
    settings: Settings = Depends(get_settings),
) -> PlaceImportService:
    return PlaceImportService(store, places, settings)


def get_hybrid_search_service(
    ranking: RankingService = Depends(get_ranking_service),
    places: PlacesClient = Depends(get_places_client),
    importer: PlaceImportService = Depends(get_import_service),
    settings: Settings = Depends(get_settings),
) -> HybridSearchService:
    return HybridSearchService(ranking, places, importer, settings)


def get_assistant_service(
    request: Request,
    ranking: RankingService = Depends(get_ranking_service),
    conversations: ConversationStore = Depends(get_conversations),
    settings: Settings = Depends(get_settings),
) -> AssistantService:
    tool = SearchToolAdapter(ranking, result_limit=settings.conversation_result_limit)
    return AssistantService(request.app.state.ai_client, tool, conversations, settings)
