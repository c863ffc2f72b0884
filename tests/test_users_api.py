import pytest

from tests.helpers import track


def test_upsert_merges_properties(client):
    created = client.post(
        "/users",
        json={"user_id": "u1", "email": "ada@example.com", "properties": {"plan": "free"}},
    ).json()
    updated = client.post("/users", json={"user_id": "u1", "properties": {"seats": 3}}).json()

    assert created["created"] is True
    assert updated["created"] is False
    assert updated["user"]["email"] == "ada@example.com"
    assert updated["user"]["properties"] == {"plan": "free", "seats": 3}


def test_unknown_user(client):
    response = client.get("/users/nobody")

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


def test_user_with_stats_and_recent_events(client):
    track(client, "u1", "page_view", "2024-01-01T09:00:00", session_id="s1")
    track(client, "u1", "signup", "2024-01-01T09:05:00", session_id="s1")
    track(client, "u1", "page_view", "2024-01-02T09:00:00", session_id="s2")

    body = client.get("/users/u1", params={"include_events": True, "event_limit": 2}).json()

    assert body["stats"] == {
        "total_events": 3,
        "first_event": "2024-01-01T09:00:00",
        "last_event": "2024-01-02T09:00:00",
        "session_count": 2,
    }
    assert body["last_seen"] == "2024-01-02T09:00:00"
    assert len(body["recent_events"]) == 2


def test_first_event(client):
    track(client, "u1", "signup", "2024-01-03T09:00:00")
    track(client, "u1", "page_view", "2024-01-01T08:00:00")

    body = client.get("/users/u1/first-event").json()

    assert body == {"user_id": "u1", "first_event": "2024-01-01T08:00:00"}


def test_user_journey(client):
    track(client, "u1", "home", "2024-01-01T09:00:00", session_id="s1")
    track(client, "u1", "cart", "2024-01-01T09:05:00", session_id="s1")
    track(client, "u1", "home", "2024-01-02T09:00:00", session_id="s2")

    body = client.get("/users/u1/journey").json()

    assert body["total_events"] == 3
    assert [s["session_id"] for s in body["sessions"]] == ["s2", "s1"]
    assert [e["event_name"] for e in body["sessions"][1]["events"]] == ["home", "cart"]


def test_erase_user(client):
    track(client, "u1", "signup", "2024-01-01T09:00:00")
    track(client, "u2", "signup", "2024-01-01T09:00:00")

    response = client.delete("/users/u1")

    assert response.status_code == 204
    assert client.get("/users/u1").status_code == 404
    assert client.get("/events", params={"user_id": "u1"}).json()["total"] == 0
    assert client.get("/events").json()["total"] == 1


def test_erase_unknown_user(client):
    assert client.delete("/users/nobody").status_code == 404


@pytest.fixture
def listed(client):
    track(client, "u1", "signup", "2024-01-01T09:00:00", session_id="s1")
    track(client, "u2", "signup", "2024-01-02T09:00:00")
    track(client, "u2", "login", "2024-01-05T09:00:00")
    track(client, "u3", "signup", "2024-01-03T09:00:00")
    client.post("/users", json={"user_id": "u1", "cohort_id": "beta"})
    client.post("/users", json={"user_id": "u3", "cohort_id": "beta"})
    return client


def test_list_users_newest_first(listed):
    body = listed.get("/users").json()

    assert body["total"] == 3
    assert body["count"] == 3
    assert body["limit"] == 50
    assert [u["user_id"] for u in body["users"]] == ["u3", "u2", "u1"]
    assert body["users"][0]["stats"] is None


def test_list_users_filters(listed):
    beta = listed.get("/users", params={"cohort_id": "beta", "order": "asc"}).json()
    created = listed.get(
        "/users",
        params={"created_after": "2024-01-02T00:00:00", "created_before": "2024-01-02T23:59:59"},
    ).json()
    active = listed.get("/users", params={"active_since": "2024-01-04T00:00:00"}).json()

    assert [u["user_id"] for u in beta["users"]] == ["u1", "u3"]
    assert [u["user_id"] for u in created["users"]] == ["u2"]
    assert [u["user_id"] for u in active["users"]] == ["u2"]


def test_list_users_sorted_by_last_seen_with_stats(listed):
    body = listed.get(
        "/users", params={"sort": "last_seen", "limit": 1, "include_stats": True}
    ).json()

    assert body["total"] == 3
    assert body["count"] == 1
    assert body["users"][0]["user_id"] == "u2"
    assert body["users"][0]["stats"]["total_events"] == 2


def test_list_users_paging_and_cap(listed):
    second = listed.get("/users", params={"limit": 1, "offset": 1}).json()
    capped = listed.get("/users", params={"limit": 5000}).json()

    assert [u["user_id"] for u in second["users"]] == ["u2"]
    assert capped["limit"] == 1000


@pytest.mark.parametrize(
    "params",
    [
        {"sort": "email"},
        {"order": "sideways"},
        {"created_after": "2024-02-01T00:00:00", "created_before": "2024-01-01T00:00:00"},
    ],
)
def test_list_users_rejects_bad_params(client, params):
    response = client.get("/users", params=params)

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_INPUT"
