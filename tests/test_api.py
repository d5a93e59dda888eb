import pytest
from fastapi.testclient import TestClient

from conftest import FakeStore, status_error
from icebreaker.completion import GENERIC_ICEBREAKERS
from main import app

PROFILE = {
    "name": "Sam",
    "age": "25-34",
    "gender": "",
    "city": "Lisbon",
    "temperament": "very-shy",
    "preferredEnvironment": "small-groups",
    "bio": "I love Coffee shops",
}
AUTH = {"Authorization": "Bearer good-token"}


@pytest.fixture
def client_for(make_service):
    def _client(*replies, store=None):
        app.state.service = make_service(*replies, store=store)
        return TestClient(app)
    yield _client
    app.state.service = None


def _body(event_type="party", event_name="Party / Social Gathering"):
    return {"userProfile": PROFILE, "eventType": event_type, "eventName": event_name}


def test_generate_success(client_for, ai_batch_json):
    store = FakeStore()
    resp = client_for(ai_batch_json, store=store).post("/api/generate-icebreakers", json=_body(), headers=AUTH)

    assert resp.status_code == 200
    icebreakers = resp.json()["icebreakers"]
    assert len(icebreakers) == 6
    assert {"id", "text", "category", "difficulty", "provenance"} <= set(icebreakers[0])
    assert icebreakers[0]["provenance"] == "ai"
    assert store.batches and store.batches[0][0] == "user-1"


def test_generate_rate_limit_is_soft_failure(client_for):
    resp = client_for(status_error(429)).post("/api/generate-icebreakers", json=_body())
    assert resp.status_code == 200
    data = resp.json()
    assert data["isRateLimit"] is True
    assert data["fallbackRequired"] is True
    assert data["error"] == "Completion API error: 429"
    assert "icebreakers" not in data


def test_generate_malformed_output_returns_generic_set(client_for):
    resp = client_for("I can't do JSON today").post("/api/generate-icebreakers", json=_body())
    assert resp.status_code == 200
    icebreakers = resp.json()["icebreakers"]
    assert [i["text"] for i in icebreakers] == [t for t, _, _ in GENERIC_ICEBREAKERS]
    assert {i["provenance"] for i in icebreakers} == {"generic"}


def test_generate_internal_fault_is_500(client_for, monkeypatch):
    client = client_for()

    async def explode(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(app.state.service, "generate", explode)
    resp = client.post("/api/generate-icebreakers", json=_body())
    assert resp.status_code == 500
    assert resp.json() == {"error": "kaboom"}


def test_icebreakers_endpoint_always_returns_batch(client_for):
    resp = client_for(status_error(429)).post("/api/icebreakers", json=_body("networking", None))
    assert resp.status_code == 200
    data = resp.json()
    assert data["provenance"] == "fallback"
    assert data["isRateLimit"] is True
    assert "busy" in data["notice"]
    # very shy: only easy prompts survive, coffee bio adds its prompt
    assert all(i["difficulty"] == "easy" for i in data["icebreakers"])
    assert data["icebreakers"][-1]["id"] == "personal-coffee"


def test_preflight(client_for):
    client = client_for()
    resp = client.options(
        "/api/generate-icebreakers",
        headers={
            "Origin": "https://app.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, x-client-info, apikey, content-type",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"

    plain = client.options("/api/generate-icebreakers")
    assert plain.status_code == 200
    assert plain.content == b""


def test_cors_header_on_response(client_for, ai_batch_json):
    resp = client_for(ai_batch_json).post(
        "/api/generate-icebreakers", json=_body(), headers={"Origin": "https://app.example.com"}
    )
    assert resp.headers["access-control-allow-origin"] == "*"


def test_rating_round_trip(client_for):
    store = FakeStore()
    client = client_for(store=store)
    resp = client.post("/api/icebreakers/ai-1-0/rating", json={"rating": 5}, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json() == {"icebreakerId": "ai-1-0", "rating": 5, "saved": True}
    assert store.ratings == {("user-1", "ai-1-0"): 5}


def test_rating_validation_and_auth(client_for):
    client = client_for(store=FakeStore())
    assert client.post("/api/icebreakers/x/rating", json={"rating": 9}, headers=AUTH).status_code == 422
    assert client.post("/api/icebreakers/x/rating", json={"rating": 3}).status_code == 401
    bad = {"Authorization": "Bearer nope"}
    assert client.post("/api/icebreakers/x/rating", json={"rating": 3}, headers=bad).status_code == 401


def test_rating_without_store_is_unavailable(client_for):
    resp = client_for().post("/api/icebreakers/x/rating", json={"rating": 3}, headers=AUTH)
    assert resp.status_code == 503


def test_profile_crud(client_for):
    client = client_for(store=FakeStore())
    assert client.get("/api/profile", headers=AUTH).status_code == 404

    saved = client.put("/api/profile", json=PROFILE, headers=AUTH)
    assert saved.status_code == 200
    assert saved.json()["preferredEnvironment"] == "small-groups"
    assert saved.json()["gender"] is None

    fetched = client.get("/api/profile", headers=AUTH)
    assert fetched.json()["temperament"] == "very-shy"


def test_event_types_and_health(client_for):
    client = client_for()
    types = client.get("/api/event-types").json()
    assert {"id": "casual-meetup", "name": "Casual Meetup"} in types
    health = client.get("/api/health").json()
    assert health["status"] == "healthy"
    assert health["ai_enabled"] is False


def test_unknown_temperament_still_gets_a_batch(client_for):
    body = _body("networking", None)
    body["userProfile"] = {**PROFILE, "temperament": "shy"}
    resp = client_for(status_error(429)).post("/api/icebreakers", json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data["provenance"] == "fallback"
    assert {i["difficulty"] for i in data["icebreakers"]} != {"easy"}
