import pytest

from tests.helpers import track

STEPS = ["visit", "signup", "purchase"]
WINDOW = {"start_date": "2024-01-01T00:00:00", "end_date": "2024-01-02T00:00:00"}


@pytest.fixture
def seeded(client):
    track(client, "u1", "visit", "2024-01-01T09:00:00", device_type="mobile")
    track(client, "u1", "signup", "2024-01-01T09:10:00", device_type="mobile")
    track(client, "u1", "purchase", "2024-01-01T09:20:00", device_type="mobile")
    track(client, "u2", "visit", "2024-01-01T10:00:00", device_type="desktop")
    track(client, "u2", "signup", "2024-01-01T10:30:00", device_type="desktop")
    track(client, "u3", "visit", "2024-01-01T11:00:00", device_type="desktop")
    return client


def test_analyze_funnel(seeded):
    body = seeded.post("/funnels/analyze", json={"steps": STEPS, **WINDOW}).json()

    assert [s["user_count"] for s in body["steps"]] == [3, 2, 1]
    assert body["steps"][0]["conversion_rate"] == 100.0
    assert body["steps"][1]["step_conversion_rate"] == 66.67
    assert body["overall_conversion"] == 33.33


def test_analyze_funnel_for_cohort(seeded):
    seeded.post("/users", json={"user_id": "u1", "cohort_id": "beta"})

    body = seeded.post(
        "/funnels/analyze", json={"steps": STEPS, "cohort_id": "beta", **WINDOW}
    ).json()

    assert [s["user_count"] for s in body["steps"]] == [1, 1, 1]


def test_empty_window(seeded):
    body = seeded.post(
        "/funnels/analyze",
        json={"steps": STEPS, "start_date": "2023-01-01T00:00:00", "end_date": "2023-01-02T00:00:00"},
    ).json()

    assert [s["user_count"] for s in body["steps"]] == [0, 0, 0]
    assert body["overall_conversion"] == 0.0


@pytest.mark.parametrize(
    "payload",
    [
        {"steps": ["visit"], **WINDOW},
        {"steps": ["visit", "visit"], **WINDOW},
        {"steps": STEPS, "start_date": "2024-01-02T00:00:00", "end_date": "2024-01-01T00:00:00"},
    ],
)
def test_invalid_funnel_requests(client, payload):
    assert client.post("/funnels/analyze", json=payload).status_code == 422


def test_saved_funnel(seeded):
    created = seeded.post("/funnels", json={"name": "Checkout", "steps": STEPS})
    funnel_id = created.json()["funnel_id"]

    analysis = seeded.get(f"/funnels/{funnel_id}/analysis", params=WINDOW).json()

    assert created.status_code == 201
    assert [f["name"] for f in seeded.get("/funnels").json()] == ["Checkout"]
    assert [s["user_count"] for s in analysis["steps"]] == [3, 2, 1]


def test_saved_funnel_errors(seeded):
    funnel_id = seeded.post("/funnels", json={"name": "Checkout", "steps": STEPS}).json()["funnel_id"]

    inverted = seeded.get(
        f"/funnels/{funnel_id}/analysis",
        params={"start_date": "2024-01-02T00:00:00", "end_date": "2024-01-01T00:00:00"},
    )

    assert seeded.get("/funnels/missing/analysis", params=WINDOW).status_code == 404
    assert inverted.status_code == 400
    assert inverted.json()["error_code"] == "INVALID_INPUT"


def test_step_timings(seeded):
    body = seeded.post("/funnels/timings", json={"steps": STEPS, **WINDOW}).json()

    assert body[0]["from_step"] == "visit"
    assert body[0]["avg_minutes"] == 20.0
    assert body[0]["sample_size"] == 2
    assert body[1]["avg_minutes"] == 10.0


def test_breakdown(seeded):
    body = seeded.post(
        "/funnels/breakdown",
        json={"steps": STEPS, "breakdown_property": "device_type", **WINDOW},
    ).json()

    assert body["segments"] == [
        {"value": "desktop", "steps": [2, 1, 0], "overall_conversion": 0.0},
        {"value": "mobile", "steps": [1, 1, 1], "overall_conversion": 100.0},
    ]


def test_breakdown_property_must_be_known(client):
    response = client.post(
        "/funnels/breakdown", json={"steps": STEPS, "breakdown_property": "os", **WINDOW}
    )

    assert response.status_code == 422


def test_funnel_end_is_an_exact_instant(client):
    track(client, "u1", "visit", "2024-01-01T09:00:00")
    track(client, "u1", "signup", "2024-01-02T00:00:00")
    track(client, "u2", "visit", "2024-01-01T09:00:00")
    track(client, "u2", "signup", "2024-01-02T08:00:00")

    body = client.post("/funnels/analyze", json={"steps": ["visit", "signup"], **WINDOW}).json()

    # u1 signs up exactly at the end; u2 later that day is outside the window
    assert [s["user_count"] for s in body["steps"]] == [2, 1]
