import pytest

from tests.helpers import track


@pytest.fixture
def seeded(client):
    track(client, "u1", "login", "2024-01-01T09:00:00")
    track(client, "u1", "login", "2024-01-08T09:00:00")
    track(client, "u2", "login", "2024-01-02T09:00:00")
    return client


def test_weekly_retention(seeded):
    body = seeded.get("/retention", params={"granularity": "week", "periods": 2}).json()

    assert body["granularity"] == "week"
    assert body["cohorts"] == [
        {
            "cohort": "2024-W01",
            "cohort_start": "2024-01-01T00:00:00",
            "cohort_size": 2,
            "retention": [100.0, 50.0],
        }
    ]


def test_unknown_granularity(client):
    response = client.get("/retention", params={"granularity": "quarter"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_INPUT"


def test_day_n_retention(seeded):
    body = seeded.get(
        "/retention/day-n", params={"days": [1, 7], "as_of": "2024-02-01T00:00:00"}
    ).json()

    assert body == [
        {"day": 1, "total_users": 2, "retained_users": 0, "retention_rate": 0.0},
        {"day": 7, "total_users": 2, "retained_users": 1, "retention_rate": 50.0},
    ]


def test_churn(seeded):
    body = seeded.get(
        "/retention/churn", params={"period": "week", "as_of": "2024-01-16T00:00:00"}
    ).json()

    assert body["previous_active"] == 2
    assert body["current_active"] == 0
    assert body["churn_rate"] == 100.0


def test_churn_period(client):
    assert client.get("/retention/churn", params={"period": "day"}).status_code == 400
