from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..config import Settings
from ..errors import ValidationError
from ..models import Business, GeoPoint
from ..telemetry import get_current_trace
from .import_service import PlaceImportService, SavedPlace
from .places_client import PlacesClient, PlacesProviderError
from .ranking_service import RankedBusiness, RankingService, SearchParams, rank
from .time_service import utcnow

logger = logging.getLogger(__name__)


@dataclass
class HybridQuery:
    term: str
    location: GeoPoint | None = None
    city: str | None = None
    radius_m: int | None = None


@dataclass
class HybridSearchOutcome:
    results: list[RankedBusiness] = field(default_factory=list)
    local_count: int = 0
    imported: list[Business] = field(default_factory=list)
    provider_available: bool = True


def provider_query(query: HybridQuery) -> str:
    term = query.term.strip()
    if query.city and query.city.strip():
        return f"{term} in {query.city.strip()}"
    return term


class HybridSearchService:
    """Local search first, then backfill from the places provider.

    ``search_and_import`` writes to the store: every provider hit that is not
    already known becomes a ``business`` document. Only those count as imported.
    """

    def __init__(
        self,
        ranking: RankingService,
        places: PlacesClient,
        importer: PlaceImportService,
        settings: Settings,
    ) -> None:
        self.ranking = ranking
        self.places = places
        self.importer = importer
        self.settings = settings

    async def search_local(self, query: HybridQuery, now_utc: datetime) -> list[RankedBusiness]:
        return await self.ranking.search(
            SearchParams(query=query.term, user_location=query.location),
            now_utc,
        )

    async def import_from_provider(self, query: HybridQuery, now_utc: datetime) -> list[SavedPlace]:
        places = await self.places.text_search(
            provider_query(query),
            location=query.location,
            radius_m=query.radius_m or self.settings.places_hybrid_radius_m,
        )
        saved: list[SavedPlace] = []
        for place in places:
            entry = await self.importer.save_search_result(place, now_utc)
            if entry is not None:
                saved.append(entry)
        return saved

    async def search_and_import(self, query: HybridQuery, now_utc: datetime | None = None) -> HybridSearchOutcome:
        if not query.term or not query.term.strip():
            raise ValidationError("Search term is required")
        now = now_utc or utcnow()

        local = await self.search_local(query, now)
        outcome = HybridSearchOutcome(results=local, local_count=len(local))

        try:
            provider_hits = await self.import_from_provider(query, now)
        except PlacesProviderError as exc:
            logger.warning("Provider backfill unavailable for %r, returning local results: %s", query.term, exc)
            outcome.provider_available = False
            return outcome

        local_ids = {item.business.business_id for item in local}
        extra: dict[str, SavedPlace] = {}
        for entry in provider_hits:
            if entry.business.business_id not in local_ids:
                extra.setdefault(entry.business.business_id, entry)
        outcome.imported = [entry.business for entry in extra.values() if entry.created]

        merged = [item.business for item in local] + [entry.business for entry in extra.values()]
        outcome.results = rank(merged, query.location, now)

        trace = get_current_trace()
        if trace is not None:
            trace.set_result_summary(len(outcome.results), len(outcome.imported))
        logger.info(
            "Hybrid search term=%r local=%s provider=%s merged=%s",
            query.term,
            outcome.local_count,
            len(provider_hits),
            len(outcome.results),
        )
        return outcome
