from __future__ import annotations

import httpx
import respx

from opennow.schemas import PlaceCandidate
from opennow.services.business_repository import BusinessRepository
from opennow.services.import_service import (
    ImportOptions,
    PlaceImportService,
    address_from_components,
    hours_from_details,
    synthesize_description,
)
from opennow.services.places_client import PlacesClient

BASE = "https://maps.googleapis.com/maps/api/place"

DETAILS = {
    "name": "Drogaria Bem Estar",
    "formatted_address": "Rua Augusta, 100 - Consolação, São Paulo - SP, 01304-000, Brasil",
    "address_components": [
        {"long_name": "100", "short_name": "100", "types": ["street_number"]},
        {"long_name": "Rua Augusta", "short_name": "R. Augusta", "types": ["route"]},
        {"long_name": "Consolação", "short_name": "Consolação", "types": ["sublocality_level_1", "sublocality"]},
        {"long_name": "São Paulo", "short_name": "São Paulo", "types": ["administrative_area_level_2"]},
        {"long_name": "São Paulo", "short_name": "SP", "types": ["administrative_area_level_1"]},
        {"long_name": "01304-000", "short_name": "01304-000", "types": ["postal_code"]},
    ],
    "formatted_phone_number": "(11) 3333-4444",
    "geometry": {"location": {"lat": -23.556, "lng": -46.659}},
    "types": ["pharmacy", "health", "store"],
    "rating": 4.6,
    "user_ratings_total": 120,
    "opening_hours": {
        "periods": [
            {"open": {"day": day, "time": "0700"}, "close": {"day": day, "time": "2200"}} for day in range(1, 6)
        ]
        + [{"open": {"day": 6, "time": "0800"}, "close": {"day": 6, "time": "1400"}}]
    },
    "reviews": [{"text": "Atendimento excelente."}],
}


def _candidate(place_id: str = "abc123", name: str = "Drogaria Bem Estar", **extra) -> PlaceCandidate:
    extra.setdefault("address", "")
    return PlaceCandidate(google_place_id=place_id, name=name, types=["pharmacy"], **extra)


def _details_route(payload: dict | None = None, status: str = "OK"):
    body = {"status": status}
    if payload is not None:
        body["result"] = payload
    return respx.get(f"{BASE}/details/json").mock(return_value=httpx.Response(200, json=body))


def _service(store, settings) -> PlaceImportService:
    return PlaceImportService(store, PlacesClient(settings), settings)


@respx.mock
async def test_import_builds_business_from_details(store, settings, now) -> None:
    _details_route(DETAILS)
    summary = await _service(store, settings).import_candidates([_candidate()], now_utc=now)

    assert (summary.imported, summary.skipped) == (1, 0)
    business = await BusinessRepository(store).require("goog_abc123")
    assert business.google_place_id == "abc123"
    assert business.owner_id == "admin_import"
    assert business.verified
    assert not business.is_claimed
    assert business.category == "Farmácia"
    assert (business.street, business.number, business.neighborhood) == ("Rua Augusta", "100", "Consolação")
    assert (business.city, business.state, business.zip_code) == ("São Paulo", "SP", "01304-000")
    assert business.whatsapp == "(11) 3333-4444"
    assert (business.open_time, business.close_time) == ("07:00", "22:00")
    assert business.latitude == -23.556
    assert business.review_count == 120
    assert business.description.startswith("Farmácia em São Paulo. Classificação: 4.6⭐ (120 avaliações).")
    assert 'O que dizem: "Atendimento excelente."' in business.description


@respx.mock
async def test_importing_same_candidate_twice_is_idempotent(store, settings, now) -> None:
    route = _details_route(DETAILS)
    service = _service(store, settings)

    first = await service.import_candidates([_candidate()], now_utc=now)
    second = await service.import_candidates([_candidate()], now_utc=now)

    assert (first.imported, first.skipped) == (1, 0)
    assert (second.imported, second.skipped) == (0, 1)
    assert route.call_count == 1
    matches = await BusinessRepository(store).list_where(google_place_id="abc123")
    assert len(matches) == 1


@respx.mock
async def test_same_name_different_place_is_skipped(store, settings, now) -> None:
    _details_route(DETAILS)
    service = _service(store, settings)
    await service.import_candidates([_candidate("first")], now_utc=now)
    summary = await service.import_candidates([_candidate("second")], now_utc=now)
    assert summary.skipped == 1
    assert await BusinessRepository(store).get("goog_second") is None


@respx.mock
async def test_require_phone_skips_candidates_without_phone(store, settings, now) -> None:
    _details_route({**DETAILS, "formatted_phone_number": None})
    summary = await _service(store, settings).import_candidates(
        [_candidate()], ImportOptions(require_phone=True), now_utc=now
    )
    assert (summary.imported, summary.skipped) == (0, 1)


@respx.mock
async def test_international_phone_is_used_as_fallback(store, settings, now) -> None:
    details = {**DETAILS, "formatted_phone_number": None, "international_phone_number": "+55 11 3333-4444"}
    _details_route(details)
    await _service(store, settings).import_candidates([_candidate()], ImportOptions(require_phone=True), now_utc=now)
    business = await BusinessRepository(store).require("goog_abc123")
    assert business.whatsapp == "+55 11 3333-4444"


@respx.mock
async def test_details_failure_degrades_to_search_data(store, settings, now) -> None:
    _details_route(status="NOT_FOUND")
    candidate = _candidate(
        address="Rua X, 5 - Jardim, Uberaba - MG, 38000-000, Brasil",
        latitude=-19.7,
        longitude=-47.9,
        rating=4.0,
        user_ratings_total=8,
    )
    summary = await _service(store, settings).import_candidates([candidate], now_utc=now)

    assert summary.imported == 1
    assert summary.detail_failures == 1
    business = await BusinessRepository(store).require("goog_abc123")
    assert (business.city, business.state) == ("Uberaba", "MG")
    assert (business.open_time, business.close_time) == ("08:00", "18:00")
    assert business.latitude == -19.7
    assert business.description == "Farmácia em Uberaba. Classificação: 4.0⭐ (8 avaliações)."


@respx.mock
async def test_default_city_beats_low_confidence_guess(store, settings, now) -> None:
    _details_route(status="NOT_FOUND")
    candidate = _candidate(address="Somewhere Street, Weird Place, 12345, Nowhere")
    await _service(store, settings).import_candidates(
        [candidate], ImportOptions(default_city="Jaú"), now_utc=now
    )
    business = await BusinessRepository(store).require("goog_abc123")
    assert business.city == "Jaú"


@respx.mock
async def test_editorial_summary_wins_over_synthesis(store, settings, now) -> None:
    _details_route({**DETAILS, "editorial_summary": {"overview": "Farmácia de bairro desde 1990."}})
    await _service(store, settings).import_candidates([_candidate()], now_utc=now)
    business = await BusinessRepository(store).require("goog_abc123")
    assert business.description == "Farmácia de bairro desde 1990."


@respx.mock
async def test_admin_search_builds_query_and_suggests_category(store, settings) -> None:
    route = respx.get(f"{BASE}/textsearch/json").mock(
        return_value=httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [
                    {
                        "place_id": "p1",
                        "name": "Padaria Central",
                        "formatted_address": "Rua A, Jaú - SP, Brasil",
                        "types": ["bakery", "food"],
                    }
                ],
            },
        )
    )
    candidates = await _service(store, settings).search_places("padaria", "Jaú", neighborhood="Centro")
    assert route.calls[0].request.url.params["query"] == "padaria in Centro, Jaú"
    assert route.calls[0].request.url.params["radius"] == "5000"
    assert "location" not in route.calls[0].request.url.params
    assert [candidate.category for candidate in candidates] == ["Alimentação"]


def test_address_components_prefer_first_sublocality() -> None:
    parsed = address_from_components(DETAILS["address_components"])
    assert parsed["neighborhood"] == "Consolação"
    assert parsed["state"] == "SP"


def test_hours_from_details_variants() -> None:
    assert hours_from_details(None) == ("08:00", "18:00")
    assert hours_from_details({"periods": [{"open": {"day": 0, "time": "0000"}}]}) == ("00:00", "24:00")
    overnight = {"periods": [{"open": {"day": 5, "time": "2200"}, "close": {"day": 6, "time": "0200"}}]}
    assert hours_from_details(overnight) == ("08:00", "18:00")


def test_synthesize_description_truncates_review() -> None:
    text = "x" * 150
    description = synthesize_description("Alimentação", "", None, None, [{"text": text}])
    assert description == f'Alimentação. O que dizem: "{"x" * 100}..."'
