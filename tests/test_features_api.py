import pytest

from tests.helpers import track


@pytest.fixture
def seeded(client):
    track(client, "u1", "login", "2024-01-01T09:00:00")
    track(client, "u1", "export", "2024-01-01T10:00:00")
    track(client, "u1", "export", "2024-01-02T10:00:00")
    track(client, "u2", "login", "2024-01-01T12:00:00")
    return client


def test_feature_adoption(seeded):
    body = seeded.get(
        "/features/export/adoption",
        params={"start_date": "2024-01-01T00:00:00", "end_date": "2024-01-02T00:00:00"},
    ).json()

    first, second = body["series"]
    assert body["feature_event"] == "export"
    assert first == {
        "date": "2024-01-01",
        "dau": 1,
        "wau": 1,
        "mau": 1,
        "adopted_users": 1,
        "total_users": 2,
        "adoption_rate": 50.0,
    }
    # the end date covers its whole day
    assert second["dau"] == 1
    assert body["stickiness"] == {"date": "2024-01-02", "dau": 1, "mau": 1, "stickiness": 100.0}


def test_feature_adoption_window(client):
    response = client.get(
        "/features/export/adoption",
        params={"start_date": "2024-01-02T00:00:00", "end_date": "2024-01-01T00:00:00"},
    )

    assert response.status_code == 400


def test_power_users(seeded):
    body = seeded.get("/features/export/power-users", params={"min_usage": 2}).json()

    assert [u["user_id"] for u in body] == ["u1"]
    assert body[0]["usage_count"] == 2
    assert body[0]["days_active"] == 1


def test_usage_distribution(seeded):
    body = seeded.get("/features/export/distribution").json()

    buckets = {b["usage_range"]: b["user_count"] for b in body["distribution"]}
    assert body["total_users"] == 1
    assert buckets["2-5"] == 1


def test_time_to_adoption(seeded):
    body = seeded.get("/features/export/time-to-adoption").json()

    assert body == {
        "feature_event": "export",
        "sample_size": 1,
        "avg_minutes": 60.0,
        "median_minutes": 60.0,
    }


def test_adoption_counts_backfilled_users_as_known(client):
    track(client, "u1", "login", "2024-01-01T09:00:00")
    for user_id in ("u2", "u3"):
        client.post("/users", json={"user_id": user_id})
        track(client, user_id, "export", "2024-01-01T10:00:00")

    body = client.get(
        "/features/export/adoption",
        params={"start_date": "2024-01-01T00:00:00", "end_date": "2024-01-01T00:00:00"},
    ).json()

    day = body["series"][0]
    assert day["adopted_users"] == 2
    assert day["total_users"] == 3
    assert day["adoption_rate"] == 66.67
    assert client.get("/users/u2").json()["created_at"] == "2024-01-01T10:00:00"
