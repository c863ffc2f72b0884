def track(client, user_id, event_name, timestamp, **extra):
    """Records one event through the API and returns the response body."""
    response = client.post(
        "/events",
        json={"user_id": user_id, "event_name": event_name, "timestamp": timestamp, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()
