def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_sweeper_is_not_started_when_disabled(client, app):
    assert app.state.lifecycle_sweeper is None
