from datetime import UTC, datetime, timedelta

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def test_create_conversation_returns_lifetime(client, bob, alice_headers, freeze_api_clock):
    response = client.post(
        "/api/v1/conversations/", json={"other_user_id": bob.id}, headers=alice_headers
    )

    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "direct"
    assert datetime.fromisoformat(body["expires_at"].replace("Z", "+00:00")) == T0 + timedelta(days=7)

    again = client.post(
        "/api/v1/conversations/", json={"other_user_id": bob.id}, headers=alice_headers
    )
    assert again.json()["id"] == body["id"]


def test_create_conversation_with_yourself_is_rejected(client, alice, alice_headers):
    response = client.post(
        "/api/v1/conversations/", json={"other_user_id": alice.id}, headers=alice_headers
    )

    assert response.status_code == 400
    assert response.json()["retryable"] is False


def test_messages_flow(client, conversation, alice_headers, bob_headers, freeze_api_clock):
    url = f"/api/v1/conversations/{conversation.id}/messages"

    sent = client.post(url, json={"text": " hi bob "}, headers=alice_headers)
    assert sent.status_code == 201
    assert sent.json()["text"] == "hi bob"

    empty = client.post(url, json={"text": "   "}, headers=alice_headers)
    assert empty.status_code == 400

    freeze_api_clock(T0 + timedelta(minutes=5))
    page = client.get(url, headers=bob_headers)
    assert page.status_code == 200
    [message] = page.json()["messages"]
    assert message["delivered_at"] is not None
    assert page.json()["next_cursor"] is not None

    read = client.post(f"/api/v1/conversations/{conversation.id}/read", headers=bob_headers)
    assert read.json() == {"updated": 1}


def test_bad_cursor_is_rejected(client, conversation, alice_headers):
    response = client.get(
        f"/api/v1/conversations/{conversation.id}/messages",
        params={"after": "not-a-date"},
        headers=alice_headers,
    )

    assert response.status_code == 400


def test_listing_and_archive(client, conversation, alice_headers, bob_headers, freeze_api_clock):
    listed = client.get("/api/v1/conversations/", headers=alice_headers)
    assert [item["conversation"]["id"] for item in listed.json()] == [conversation.id]

    archived = client.post(
        f"/api/v1/conversations/{conversation.id}/archive", headers=alice_headers
    )
    assert archived.status_code == 204

    assert client.get("/api/v1/conversations/", headers=alice_headers).json() == []
    archived_list = client.get(
        "/api/v1/conversations/", params={"status": "archived"}, headers=alice_headers
    )
    assert len(archived_list.json()) == 1
    assert len(client.get("/api/v1/conversations/", headers=bob_headers).json()) == 1


def test_pin_is_reported_in_listing(client, conversation, alice_headers, freeze_api_clock):
    client.post(f"/api/v1/conversations/{conversation.id}/pin", headers=alice_headers)

    [summary] = client.get("/api/v1/conversations/", headers=alice_headers).json()

    assert summary["pinned"] is True


def test_extend_outside_window_is_bad_request(client, conversation, alice_headers, freeze_api_clock):
    response = client.post(
        f"/api/v1/conversations/{conversation.id}/extend", headers=alice_headers
    )

    assert response.status_code == 400
    assert "last 2 days" in response.json()["detail"]


def test_extend_inside_window(client, conversation, alice_headers, freeze_api_clock):
    freeze_api_clock(T0 + timedelta(days=6))

    response = client.post(
        f"/api/v1/conversations/{conversation.id}/extend", headers=alice_headers
    )

    assert response.status_code == 200
    expires_at = datetime.fromisoformat(response.json()["expires_at"].replace("Z", "+00:00"))
    assert expires_at == T0 + timedelta(days=14)


def test_outsider_cannot_read_conversation(client, conversation, carol_headers):
    response = client.get(f"/api/v1/conversations/{conversation.id}", headers=carol_headers)

    assert response.status_code == 403


def test_missing_conversation(client, alice_headers):
    response = client.get("/api/v1/conversations/9999", headers=alice_headers)

    assert response.status_code == 404
