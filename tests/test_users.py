"""Tests for user registration endpoints."""

import pytest

pytestmark = pytest.mark.asyncio


async def test_register_user_success(test_client):
    response = await test_client.post(
        "/api/users",
        json={"username": "moonlit", "password": "pw123"}
    )

    assert response.status_code == 201
    assert response.json() == {"id": 1, "username": "moonlit"}


async def test_register_duplicate_username(test_client, test_user):
    """Test that duplicate usernames are rejected."""
    response = await test_client.post(
        "/api/users",
        json={"username": test_user.username, "password": "different"}
    )

    assert response.status_code == 409
    assert "already taken" in response.json()["error"]


async def test_register_missing_password(test_client):
    response = await test_client.post("/api/users", json={"username": "solo"})

    assert response.status_code == 400
    assert "password" in response.json()["error"]


async def test_get_user(test_client, test_user):
    response = await test_client.get(f"/api/users/{test_user.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["username"] == test_user.username
    assert "password" not in data


async def test_get_missing_user(test_client):
    response = await test_client.get("/api/users/42")

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


async def test_get_user_id_beyond_64_bits(test_client):
    response = await test_client.get("/api/users/18446744073709551616")

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}
