from __future__ import annotations

import json

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from opennow.main import create_app
from opennow.services.assistant_service import APOLOGY_TEXT
from opennow.services.business_repository import BusinessRepository
from opennow.services.places_client import PlacesClient
from opennow.store import InMemoryDocumentStore

PLACES = "https://maps.googleapis.com/maps/api/place"
USER_TOKEN = "user-token-0001"
OTHER_TOKEN = "user-token-0002"
ADMIN = {"Authorization": "Bearer admin-secret-token"}


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def client(settings, memory_store):
    app = create_app(settings, store=memory_store, places_client=PlacesClient(settings, sleep=_no_sleep))
    with TestClient(app) as test_client:
        yield test_client


def _seed(client: TestClient, memory_store: InMemoryDocumentStore, *businesses) -> None:
    repository = BusinessRepository(memory_store)
    for business in businesses:
        client.portal.call(repository.save, business)


def _stored(client: TestClient, memory_store: InMemoryDocumentStore, business_id: str):
    return client.portal.call(BusinessRepository(memory_store).require, business_id)


def test_health(client) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "OpenNow API"}
    assert "X-Request-Id" in response.headers
    performance = json.loads(response.headers["X-Request-Performance"])
    assert performance["total_time_ms"] is not None


def test_owner_lifecycle(client) -> None:
    created = client.post(
        "/api/business/create",
        json={"name": "Padaria Sol", "whatsapp": "11 99999-0000", "city": "São Paulo"},
        headers=_auth(USER_TOKEN),
    )
    assert created.status_code == 200
    business_id = created.json()["business_id"]
    assert created.json()["business"]["owner_id"] == USER_TOKEN

    updated = client.put(
        f"/api/business/update/{business_id}",
        json={"description": "Pão quente", "owner_id": "thief"},
        headers=_auth(USER_TOKEN),
    )
    assert updated.status_code == 200
    assert updated.json()["business"]["description"] == "Pão quente"
    assert updated.json()["business"]["owner_id"] == USER_TOKEN

    forbidden = client.put(
        f"/api/business/update/{business_id}", json={"name": "X"}, headers=_auth(OTHER_TOKEN)
    )
    assert forbidden.status_code == 403
    assert "error" in forbidden.json()

    toggled = client.post(
        "/api/business/toggle-status",
        json={"business_id": business_id, "status": "closed"},
        headers=_auth(USER_TOKEN),
    )
    assert toggled.json() == {"success": True, "forced_status": "closed", "is_open": False}

    listed = client.get("/api/business/list", params={"city": "São Paulo"})
    assert [item["business_id"] for item in listed.json()] == [business_id]
    assert client.get("/api/business/list", params={"city": "Recife"}).json() == []


def test_missing_fields_are_reported_as_400(client) -> None:
    response = client.post("/api/business/create", json={"name": "Sem Zap"})
    assert response.status_code == 400
    assert response.json() == {"error": "WhatsApp is required"}

    malformed = client.post("/api/business/b1/vote", json={}, headers=_auth(USER_TOKEN))
    assert malformed.status_code == 400
    assert "type" in malformed.json()["error"]


def test_authentication_errors(client, memory_store, make_business) -> None:
    _seed(client, memory_store, make_business("b1"))
    anonymous = client.post("/api/business/b1/vote", json={"type": "like"})
    assert anonymous.status_code == 401
    bad_token = client.post("/api/business/b1/vote", json={"type": "like"}, headers=_auth("short"))
    assert bad_token.status_code == 403
    assert bad_token.json() == {"error": "Invalid token"}


def test_vote_toggle_over_http(client, memory_store, make_business) -> None:
    _seed(client, memory_store, make_business("b1"))
    first = client.post("/api/business/b1/vote", json={"type": "like"}, headers=_auth(USER_TOKEN))
    assert first.json() == {"success": True, "state": "liked", "likes": 1, "dislikes": 0}
    second = client.post("/api/business/b1/vote", json={"type": "like"}, headers=_auth(USER_TOKEN))
    assert second.json()["state"] == "none"
    assert second.json()["likes"] == 0
    missing = client.post("/api/business/nope/vote", json={"type": "like"}, headers=_auth(USER_TOKEN))
    assert missing.status_code == 404


def test_admin_routes_require_admin(client, memory_store, make_business) -> None:
    _seed(client, memory_store, make_business("b1", analytics={"whatsapp_clicks": 3}))
    assert client.get("/api/admin/stats").status_code == 401
    assert client.get("/api/admin/stats", headers=_auth(USER_TOKEN)).status_code == 403

    stats = client.get("/api/admin/stats", headers=ADMIN)
    assert stats.status_code == 200
    assert stats.json()["total"] == 1
    assert stats.json()["top_businesses"][0]["whatsapp_clicks"] == 3

    dev = client.get("/api/admin/businesses", headers=_auth("dev-token"))
    assert dev.status_code == 200


def test_reviews_and_categories(client, memory_store, make_business) -> None:
    _seed(client, memory_store, make_business("b1", category="Barbearia"))
    created = client.post(
        "/api/reviews/create",
        json={"business_id": "b1", "rating": 2, "comment": "Demorou"},
        headers=_auth(USER_TOKEN),
    )
    assert created.json()["status"] == "pending"
    assert client.get("/api/reviews/b1").json() == []

    moderated = client.post(
        "/api/admin/reviews/moderate",
        json={"review_id": created.json()["review_id"], "action": "approve"},
        headers=ADMIN,
    )
    assert moderated.json()["review"]["status"] == "approved"
    assert len(client.get("/api/reviews/b1").json()) == 1

    labels = [category["label"] for category in client.get("/api/categories").json()]
    assert labels[0] == "Alimentação"
    assert labels[-1] == "Barbearia"


def test_campaign_purchase_and_activation(client, memory_store, make_business) -> None:
    _seed(client, memory_store, make_business("b1", owner_id=USER_TOKEN))
    created = client.post(
        "/api/marketing/create",
        json={"businessId": "b1", "type": "ad"},
        headers=_auth(USER_TOKEN),
    )
    assert created.json()["price"] == 99.0
    assert client.get("/api/marketing/ads").json() == []

    activate_path = f"/api/marketing/{created.json()['adId']}/activate"
    assert client.post(activate_path, headers=_auth(USER_TOKEN)).status_code == 403
    assert client.post(activate_path, headers=ADMIN).json()["campaign"]["status"] == "active"
    assert [ad["businessId"] for ad in client.get("/api/marketing/ads").json()] == ["b1"]


def test_whatsapp_tracking(client, memory_store, make_business) -> None:
    _seed(client, memory_store, make_business("b1"))
    assert client.post("/api/analytics/whatsapp", json={"business_id": "b1"}).json() == {"success": True}
    assert _stored(client, memory_store, "b1").analytics.whatsapp_clicks == 1


@respx.mock
def test_hybrid_search_imports_provider_hits(client, memory_store) -> None:
    respx.get(f"{PLACES}/textsearch/json").mock(
        return_value=httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [
                    {
                        "place_id": "g1",
                        "name": "Drogaria Nova",
                        "formatted_address": "Rua B, 20 - Jardim, Campinas - SP, Brasil",
                        "geometry": {"location": {"lat": -22.9, "lng": -47.06}},
                        "types": ["pharmacy"],
                    }
                ],
            },
        )
    )
    response = client.post("/api/search/hybrid", json={"term": "farmácia", "lat": -22.9, "lng": -47.06})

    body = response.json()
    assert body["imported"] == 1
    assert body["provider_available"]
    assert body["results"][0]["business_id"] == "goog_g1"
    assert body["results"][0]["distance_km"] == 0
    performance = json.loads(response.headers["X-Request-Performance"])
    assert performance["result_count"] == 1
    assert _stored(client, memory_store, "goog_g1").category == "Farmácia"


def test_chat_without_provider_apologises(client) -> None:
    response = client.post("/api/ai/chat", json={"message": "oi", "userId": "u1"})
    assert response.json() == {"text": APOLOGY_TEXT, "results": [], "action": "none"}
    assert client.post("/api/ai/chat", json={"message": "  "}).status_code == 400


@respx.mock
def test_admin_google_import(client, memory_store) -> None:
    respx.get(f"{PLACES}/details/json").mock(
        return_value=httpx.Response(200, json={"status": "OK", "result": {"formatted_phone_number": "11 3333"}})
    )
    payload = {
        "businesses": [{"google_place_id": "p1", "name": "Mercado Bom", "types": ["supermarket"]}],
        "requirePhone": True,
        "defaultCity": "Jaú",
    }
    first = client.post("/api/admin/google/import", json=payload, headers=ADMIN)
    assert first.json()["imported"] == 1
    assert first.json()["business_ids"] == ["goog_p1"]
    second = client.post("/api/admin/google/import", json=payload, headers=ADMIN)
    assert (second.json()["imported"], second.json()["skipped"]) == (0, 1)
    stored = _stored(client, memory_store, "goog_p1")
    assert (stored.city, stored.category) == ("Jaú", "Mercado")
