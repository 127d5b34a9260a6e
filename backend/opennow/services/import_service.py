from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..config import Settings
from ..errors import UpstreamError, ValidationError
from ..models import OWNER_ADMIN_IMPORT, Business, GeoPoint
from ..schemas import PlaceCandidate
from ..store import DocumentStore
from ..telemetry import get_current_trace
from .address_parser import parse_address
from .business_repository import BusinessRepository
from .category_service import map_place_types
from .places_client import PlacesClient, place_location, to_candidate
from .time_service import epoch_millis, utcnow

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIME = "08:00"
DEFAULT_CLOSE_TIME = "18:00"
REVIEW_SNIPPET_CHARS = 100

_COMPONENT_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("route", "street", "long_name"),
    ("street_number", "number", "long_name"),
    ("sublocality_level_1", "neighborhood", "long_name"),
    ("sublocality", "neighborhood", "long_name"),
    ("administrative_area_level_2", "city", "long_name"),
    ("administrative_area_level_1", "state", "short_name"),
    ("postal_code", "zip_code", "long_name"),
)


@dataclass
class ImportOptions:
    require_phone: bool = False
    default_city: str | None = None


@dataclass
class ImportSummary:
    imported: int = 0
    skipped: int = 0
    detail_failures: int = 0
    business_ids: list[str] = field(default_factory=list)


@dataclass
class SavedPlace:
    business: Business
    created: bool


def business_id_for_place(place_id: str) -> str:
    return f"goog_{place_id}"


def address_from_components(components: Any) -> dict[str, str]:
    address: dict[str, str] = {}
    if not isinstance(components, list):
        return address
    for component in components:
        if not isinstance(component, dict):
            continue
        types = component.get("types") or []
        for component_type, target, name_key in _COMPONENT_FIELDS:
            if component_type in types and target not in address:
                value = component.get(name_key) or component.get("long_name")
                if isinstance(value, str) and value.strip():
                    address[target] = value.strip()
    return address


def _format_hhmm(raw: Any) -> str | None:
    if not isinstance(raw, str) or len(raw) != 4 or not raw.isdigit():
        return None
    return f"{raw[:2]}:{raw[2:]}"


def hours_from_details(opening_hours: Any) -> tuple[str, str]:
    """Collapse weekly opening periods into the single daily window we store.

    The most frequent same-day window wins. A lone period without a close
    marks a place that never closes.
    """
    if not isinstance(opening_hours, dict):
        return DEFAULT_OPEN_TIME, DEFAULT_CLOSE_TIME
    periods = opening_hours.get("periods")
    if not isinstance(periods, list) or not periods:
        return DEFAULT_OPEN_TIME, DEFAULT_CLOSE_TIME

    if len(periods) == 1 and isinstance(periods[0], dict) and not periods[0].get("close"):
        return "00:00", "24:00"

    windows: Counter[tuple[str, str]] = Counter()
    for period in periods:
        if not isinstance(period, dict):
            continue
        open_info = period.get("open")
        close_info = period.get("close")
        if not isinstance(open_info, dict) or not isinstance(close_info, dict):
            continue
        if open_info.get("day") != close_info.get("day"):
            continue
        start = _format_hhmm(open_info.get("time"))
        end = _format_hhmm(close_info.get("time"))
        if start and end and start < end:
            windows[(start, end)] += 1

    if not windows:
        return DEFAULT_OPEN_TIME, DEFAULT_CLOSE_TIME
    return windows.most_common(1)[0][0]


def synthesize_description(
    category: str,
    city: str,
    rating: float | None,
    ratings_total: int | None,
    reviews: Any = None,
) -> str:
    description = f"{category or 'Empresa'}{' em ' + city if city else ''}."
    if rating:
        description += f" Classificação: {rating}⭐ ({ratings_total or 0} avaliações)."
    if isinstance(reviews, list) and reviews and isinstance(reviews[0], dict):
        text = reviews[0].get("text")
        if isinstance(text, str) and text.strip():
            snippet = text.strip()
            ellipsis = "..." if len(snippet) > REVIEW_SNIPPET_CHARS else ""
            description += f' O que dizem: "{snippet[:REVIEW_SNIPPET_CHARS]}{ellipsis}"'
    return description


class PlaceImportService:
    """Turns provider places into ``business`` documents without duplicates."""

    def __init__(self, store: DocumentStore, places: PlacesClient, settings: Settings) -> None:
        self.repository = BusinessRepository(store)
        self.places = places
        self.settings = settings

    async def search_places(
        self,
        term: str,
        city: str,
        neighborhood: str | None = None,
        location: GeoPoint | None = None,
        radius_m: int | None = None,
    ) -> list[PlaceCandidate]:
        """Admin search: provider places with a suggested category, nothing saved."""
        if not term.strip() or not city.strip():
            raise ValidationError("Term and city are required")
        area = f"{neighborhood.strip()}, {city.strip()}" if neighborhood and neighborhood.strip() else city.strip()
        places = await self.places.text_search(
            f"{term.strip()} in {area}",
            location=location,
            radius_m=radius_m or self.settings.places_admin_radius_m,
        )
        candidates: list[PlaceCandidate] = []
        for place in places:
            candidate = to_candidate(place, category=map_place_types(place.get("types")))
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    async def is_duplicate(self, place_id: str, name: str) -> bool:
        if await self.repository.find_by_place_id(place_id) is not None:
            return True
        if await self.repository.get(business_id_for_place(place_id)) is not None:
            return True
        return await self.repository.exists_with_name(name)

    async def _fetch_details(self, place_id: str) -> dict[str, Any] | None:
        try:
            return await self.places.place_details(place_id)
        except UpstreamError as exc:
            logger.warning("Details lookup failed for place %s, importing search data only: %s", place_id, exc)
            return None

    def _resolve_location(
        self,
        components: dict[str, str],
        formatted_address: str,
        default_city: str | None,
    ) -> tuple[str, str]:
        city = components.get("city", "")
        state = components.get("state", "")
        if city and state:
            return city, state

        parsed = parse_address(formatted_address, self.settings.default_country)
        if parsed.confident or not default_city:
            city = city or parsed.city
            state = state or parsed.state
        if not city and default_city:
            city = default_city
        return city, state

    def build_business(
        self,
        candidate: PlaceCandidate,
        details: dict[str, Any] | None,
        options: ImportOptions,
        now: datetime,
    ) -> Business | None:
        details = details or {}
        formatted_address = details.get("formatted_address") or candidate.address
        components = address_from_components(details.get("address_components"))
        city, state = self._resolve_location(components, formatted_address, options.default_city)

        types = details.get("types") if isinstance(details.get("types"), list) else candidate.types
        category = candidate.category or map_place_types(types)

        phone = details.get("formatted_phone_number") or details.get("international_phone_number") or ""
        if options.require_phone and not phone:
            return None

        rating = details.get("rating", candidate.rating)
        ratings_total = details.get("user_ratings_total", candidate.user_ratings_total)
        summary = details.get("editorial_summary")
        overview = summary.get("overview") if isinstance(summary, dict) else None
        description = overview or synthesize_description(
            category, city, rating, ratings_total, details.get("reviews")
        )

        location = place_location(details)
        latitude = location.lat if location else candidate.latitude
        longitude = location.lng if location else candidate.longitude
        open_time, close_time = hours_from_details(details.get("opening_hours"))
        stamp = epoch_millis(now)

        return Business(
            business_id=business_id_for_place(candidate.google_place_id),
            google_place_id=candidate.google_place_id,
            owner_id=OWNER_ADMIN_IMPORT,
            name=details.get("name") or candidate.name,
            category=category,
            description=description,
            address=formatted_address,
            street=components.get("street", ""),
            number=components.get("number", ""),
            neighborhood=components.get("neighborhood", ""),
            city=city,
            state=state,
            zip_code=components.get("zip_code", ""),
            country=self.settings.default_country,
            open_time=open_time,
            close_time=close_time,
            whatsapp=phone,
            website=details.get("website") or "",
            latitude=latitude,
            longitude=longitude,
            verified=True,
            rating=rating or 0.0,
            review_count=ratings_total or 0,
            google_types=types or [],
            created_at=stamp,
            updated_at=stamp,
        )

    async def import_candidates(
        self,
        candidates: list[PlaceCandidate],
        options: ImportOptions | None = None,
        now_utc: datetime | None = None,
    ) -> ImportSummary:
        options = options or ImportOptions()
        now = now_utc or utcnow()
        summary = ImportSummary()

        for candidate in candidates:
            if await self.is_duplicate(candidate.google_place_id, candidate.name):
                logger.info("Skipping duplicate place %s (%s)", candidate.google_place_id, candidate.name)
                summary.skipped += 1
                continue

            details = await self._fetch_details(candidate.google_place_id)
            if details is None:
                summary.detail_failures += 1

            business = self.build_business(candidate, details, options, now)
            if business is None:
                logger.info("Skipping place %s without a phone number", candidate.google_place_id)
                summary.skipped += 1
                continue

            await self.repository.save(business)
            summary.imported += 1
            summary.business_ids.append(business.business_id)

        logger.info(
            "Place import finished imported=%s skipped=%s detail_failures=%s",
            summary.imported,
            summary.skipped,
            summary.detail_failures,
        )
        trace = get_current_trace()
        if trace is not None:
            trace.set_result_summary(summary.imported + summary.skipped, summary.imported)
        return summary

    async def save_search_result(self, place: dict[str, Any], now_utc: datetime | None = None) -> SavedPlace | None:
        """Persist one text-search hit, returning the stored record.

        Known places (by provider id, derived id or name) return the existing
        record untouched with ``created`` unset. No details lookup is made.
        """
        candidate = to_candidate(place)
        if candidate is None:
            return None

        existing = await self.repository.find_by_place_id(candidate.google_place_id)
        if existing is None:
            existing = await self.repository.get(business_id_for_place(candidate.google_place_id))
        if existing is None:
            matches = await self.repository.list_where(name=candidate.name)
            existing = matches[0] if matches else None
        if existing is not None:
            return SavedPlace(existing, created=False)

        business = self.build_business(candidate, None, ImportOptions(), now_utc or utcnow())
        if business is None:
            return None
        await self.repository.save(business)
        logger.info("Saved provider place %s as %s", candidate.google_place_id, business.business_id)
        return SavedPlace(business, created=True)
