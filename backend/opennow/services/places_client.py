from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, Callable

import httpx

from ..config import Settings
from ..errors import UpstreamError
from ..models import GeoPoint
from ..schemas import PlaceCandidate
from ..telemetry import timed_stage

logger = logging.getLogger(__name__)

TEXT_SEARCH_PATH = "/textsearch/json"
DETAILS_PATH = "/details/json"
DETAILS_FIELDS = ",".join(
    [
        "name",
        "formatted_address",
        "address_components",
        "formatted_phone_number",
        "international_phone_number",
        "website",
        "editorial_summary",
        "reviews",
        "geometry",
        "photos",
        "opening_hours",
        "types",
        "rating",
        "user_ratings_total",
        "business_status",
    ]
)
EMPTY_STATUSES = frozenset({"ZERO_RESULTS"})


class PlacesProviderError(UpstreamError):
    def __init__(self, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


def _coerce_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _coerce_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _normalize_types(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def place_location(place: dict[str, Any]) -> GeoPoint | None:
    geometry = place.get("geometry")
    location = geometry.get("location") if isinstance(geometry, dict) else None
    if not isinstance(location, dict):
        return None
    lat = _coerce_float(location.get("lat"))
    lng = _coerce_float(location.get("lng"))
    if lat is None or lng is None:
        return None
    return GeoPoint(lat=lat, lng=lng)


def to_candidate(place: dict[str, Any], category: str | None = None) -> PlaceCandidate | None:
    place_id = place.get("place_id")
    name = place.get("name")
    if not isinstance(place_id, str) or not place_id.strip() or not isinstance(name, str) or not name.strip():
        return None
    location = place_location(place)
    return PlaceCandidate(
        google_place_id=place_id.strip(),
        name=name.strip(),
        category=category,
        address=place.get("formatted_address") or "",
        latitude=location.lat if location else None,
        longitude=location.lng if location else None,
        rating=_coerce_float(place.get("rating")),
        user_ratings_total=_coerce_int(place.get("user_ratings_total")),
        business_status=place.get("business_status"),
        types=_normalize_types(place.get("types")),
    )


class PlacesClient:
    """Async client for the Places text search and details JSON endpoints."""

    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.api_key = settings.google_maps_api_key
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=settings.places_timeout_seconds)
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _request_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise PlacesProviderError("Google Maps API key is not configured")
        url = self.settings.places_base_url.rstrip("/") + path
        query = {
            **params,
            "key": self.api_key,
            "language": self.settings.places_language,
        }
        with timed_stage("provider"):
            try:
                response = await self._http.get(url, params=query)
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Places request to %s failed: %s", path, exc)
                raise PlacesProviderError(f"Places request failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise PlacesProviderError("Unexpected Places response payload")
        return payload

    async def text_search(
        self,
        query: str,
        location: GeoPoint | None = None,
        radius_m: int | None = None,
        max_pages: int | None = None,
    ) -> list[dict[str, Any]]:
        """Run a paginated text search and return the raw place records.

        A failing first page raises :class:`PlacesProviderError`; a failure on a
        later page ends pagination and keeps what was already collected.
        """
        pages = max_pages or self.settings.places_max_pages
        places: list[dict[str, Any]] = []
        seen_ids: set[str] = set()
        page_token: str | None = None

        for page in range(pages):
            params: dict[str, Any] = {
                "query": query,
                "region": self.settings.places_region,
                "radius": radius_m or self.settings.places_hybrid_radius_m,
            }
            if location is not None:
                params["location"] = f"{location.lat},{location.lng}"
            if page_token:
                # Page tokens only become valid a short while after being issued.
                await self._sleep(self.settings.places_page_token_delay_seconds)
                params["pagetoken"] = page_token

            try:
                payload = await self._request_json(TEXT_SEARCH_PATH, params)
            except PlacesProviderError:
                if page == 0:
                    raise
                logger.warning("Stopping text search for %r after %s pages", query, page)
                break

            status = payload.get("status")
            if status in EMPTY_STATUSES:
                break
            if status != "OK":
                message = payload.get("error_message") or status
                if page == 0:
                    raise PlacesProviderError(f"Places text search failed: {message}", status=status)
                logger.warning("Places text search page %s returned %s", page + 1, status)
                break

            for place in payload.get("results", []):
                if not isinstance(place, dict):
                    continue
                place_id = place.get("place_id")
                if not isinstance(place_id, str) or place_id in seen_ids:
                    continue
                seen_ids.add(place_id)
                places.append(place)

            next_page = payload.get("next_page_token")
            if not isinstance(next_page, str) or not next_page.strip():
                break
            page_token = next_page.strip()

        logger.info("Places text search query=%r returned %s places", query, len(places))
        return places

    async def place_details(self, place_id: str) -> dict[str, Any]:
        payload = await self._request_json(DETAILS_PATH, {"place_id": place_id, "fields": DETAILS_FIELDS})
        status = payload.get("status")
        if status != "OK":
            raise PlacesProviderError(f"Places details failed for {place_id}: {status}", status=status)
        result = payload.get("result")
        if not isinstance(result, dict):
            raise PlacesProviderError(f"Places details for {place_id} had no result")
        return result
