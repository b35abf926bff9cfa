from studymate.core.security import create_access_token


def test_missing_token_is_rejected(client, conversation):
    response = client.get(f"/api/v1/conversations/{conversation.id}")

    # HTTPBearer answers 403 on older FastAPI releases and 401 on newer ones.
    assert response.status_code in {401, 403}


def test_malformed_token_is_unauthorized(client, conversation):
    response = client.get(
        f"/api/v1/conversations/{conversation.id}",
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


def test_token_for_unknown_user_is_unauthorized(client):
    token = create_access_token(123456)

    response = client.get("/api/v1/conversations/", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"
