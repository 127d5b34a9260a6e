from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..models import Business, GeoPoint, Plan
from ..store import DocumentStore
from ..telemetry import get_current_trace, instrument_stage
from .business_repository import BusinessRepository
from .distance_service import distance_between
from .time_service import epoch_millis, is_open_now, utcnow

logger = logging.getLogger(__name__)

BOOST_WEIGHT = 1000.0
PLAN_WEIGHTS: dict[Plan, float] = {Plan.DIAMOND: 100.0, Plan.GOLD: 50.0}
# Businesses without coordinates are scored as if they sat at the antipode.
UNKNOWN_LOCATION_DISTANCE_KM = 20015.0


@dataclass
class SearchParams:
    query: str | None = None
    filter_open_only: bool = False
    user_location: GeoPoint | None = None
    inferred_category: str | None = None
    limit: int | None = None


@dataclass
class RankedBusiness:
    business: Business
    score: float
    distance_km: float | None
    is_open: bool
    boosted: bool


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def matches_text(business: Business, query: str) -> bool:
    needle = query.strip().lower()
    return (
        _contains(business.name, needle)
        or _contains(business.category, needle)
        or _contains(business.description, needle)
    )


def filter_by_text(corpus: list[Business], query: str | None) -> list[Business]:
    if query is None or not query.strip():
        return list(corpus)
    return [business for business in corpus if matches_text(business, query)]


def filter_by_category(corpus: list[Business], category: str) -> list[Business]:
    needle = category.strip().lower()
    if not needle:
        return []
    return [business for business in corpus if _contains(business.category, needle)]


def ranking_score(business: Business, now_ms: int, distance_km: float | None) -> float:
    score = 0.0
    if business.marketing.boost.is_live(now_ms):
        score += BOOST_WEIGHT
    score += PLAN_WEIGHTS.get(business.plan, 0.0)
    if distance_km is not None:
        score -= distance_km
    return score


def rank(
    businesses: list[Business],
    user_location: GeoPoint | None,
    now_utc: datetime,
) -> list[RankedBusiness]:
    now_ms = epoch_millis(now_utc)
    ranked: list[RankedBusiness] = []
    for business in businesses:
        distance_km: float | None = None
        if user_location is not None:
            distance_km = distance_between(user_location, business.location)
            if distance_km is None:
                distance_km = UNKNOWN_LOCATION_DISTANCE_KM
        ranked.append(
            RankedBusiness(
                business=business,
                score=ranking_score(business, now_ms, distance_km),
                distance_km=distance_km if business.location is not None else None,
                is_open=is_open_now(business, now_utc),
                boosted=business.marketing.boost.is_live(now_ms),
            )
        )
    # list.sort is stable: equal scores keep corpus encounter order.
    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked


def search(
    corpus: list[Business],
    params: SearchParams,
    now_utc: datetime | None = None,
) -> list[RankedBusiness]:
    now = now_utc or utcnow()
    matches = filter_by_text(corpus, params.query)
    if not matches and params.inferred_category:
        fallback = filter_by_category(corpus, params.inferred_category)
        if fallback:
            logger.info(
                "Text search for %r matched nothing; using category %r (%s results)",
                params.query,
                params.inferred_category,
                len(fallback),
            )
            matches = fallback

    if params.filter_open_only:
        matches = [business for business in matches if is_open_now(business, now)]

    ranked = rank(matches, params.user_location, now)
    if params.limit is not None:
        ranked = ranked[: params.limit]
    return ranked


def listing_tier(business: Business, now_ms: int) -> int:
    if business.marketing.boost.is_live(now_ms):
        return 2
    if business.plan == Plan.DIAMOND:
        return 1
    return 0


def sort_for_listing(businesses: list[Business], now_utc: datetime | None = None) -> list[Business]:
    now_ms = epoch_millis(now_utc or utcnow())
    return sorted(businesses, key=lambda business: listing_tier(business, now_ms), reverse=True)


class RankingService:
    """Reads a fresh snapshot of the corpus and ranks it in memory."""

    def __init__(self, store: DocumentStore) -> None:
        self.repository = BusinessRepository(store)

    @instrument_stage("ranking")
    def _rank(self, corpus: list[Business], params: SearchParams, now_utc: datetime | None) -> list[RankedBusiness]:
        return search(corpus, params, now_utc)

    async def search(self, params: SearchParams, now_utc: datetime | None = None) -> list[RankedBusiness]:
        trace = get_current_trace()
        if trace is not None and params.query:
            trace.mark_search(params.query)
        corpus = await self.repository.list_all()
        results = self._rank(corpus, params, now_utc)
        if trace is not None:
            trace.set_result_summary(len(results))
        return results

    async def list_businesses(
        self,
        city: str | None = None,
        state: str | None = None,
        category: str | None = None,
        now_utc: datetime | None = None,
    ) -> list[Business]:
        filters = {key: value for key, value in (("city", city), ("state", state), ("category", category)) if value}
        if filters:
            businesses = await self.repository.list_where(**filters)
        else:
            businesses = await self.repository.list_all()
        return sort_for_listing(businesses, now_utc)
