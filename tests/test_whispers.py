"""Tests for whisper endpoints."""

import pytest

pytestmark = pytest.mark.asyncio


async def test_create_whisper_success(test_client):
    """Test writing a whisper."""
    response = await test_client.post(
        "/api/whispers",
        json={"content": "test", "category": "thoughts"}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 1
    assert data["content"] == "test"
    assert data["category"] == "thoughts"
    assert data["viewed"] is False
    assert data["isShared"] is False
    assert data["sharedAt"] is None
    assert data["originalAuthorId"] is None
    assert "createdAt" in data


async def test_create_whisper_missing_fields(test_client):
    """Test that content and category are both required."""
    response = await test_client.post("/api/whispers", json={"content": "no category"})

    assert response.status_code == 400
    assert "category" in response.json()["error"]

    response = await test_client.post("/api/whispers", json={"category": "open"})

    assert response.status_code == 400
    assert "content" in response.json()["error"]


async def test_create_whisper_empty_content(test_client):
    response = await test_client.post(
        "/api/whispers",
        json={"content": "   ", "category": "open"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Content is required"}


async def test_create_whisper_unknown_category(test_client):
    response = await test_client.post(
        "/api/whispers",
        json={"content": "Hello", "category": "gossip"}
    )

    assert response.status_code == 400
    assert "gossip" in response.json()["error"]


async def test_list_whispers(test_client):
    """Test listing whispers in creation order."""
    for i, category in enumerate(["regrets", "memories", "open"]):
        await test_client.post(
            "/api/whispers",
            json={"content": f"Whisper number {i}", "category": category}
        )

    response = await test_client.get("/api/whispers")

    assert response.status_code == 200
    data = response.json()
    assert [w["content"] for w in data] == ["Whisper number 0", "Whisper number 1", "Whisper number 2"]
    assert [w["id"] for w in data] == [1, 2, 3]


async def test_list_whispers_empty(test_client):
    response = await test_client.get("/api/whispers")

    assert response.status_code == 200
    assert response.json() == []


async def test_mark_viewed(test_client, test_whisper):
    """Test marking a whisper viewed, twice."""
    for _ in range(2):
        response = await test_client.patch(f"/api/whispers/{test_whisper.id}/viewed")
        assert response.status_code == 200
        assert response.json()["viewed"] is True

    listing = await test_client.get("/api/whispers")
    assert listing.json()[0]["viewed"] is True


async def test_mark_viewed_not_found(test_client):
    response = await test_client.patch("/api/whispers/999/viewed")

    assert response.status_code == 404
    assert response.json() == {"error": "Whisper not found"}

    listing = await test_client.get("/api/whispers")
    assert listing.json() == []


async def test_mark_viewed_bad_id(test_client):
    response = await test_client.patch("/api/whispers/abc/viewed")

    assert response.status_code == 400
    assert "whisper_id" in response.json()["error"]


async def test_unknown_route_error_shape(test_client):
    response = await test_client.get("/api/nothing-here")

    assert response.status_code == 404
    assert "error" in response.json()


async def test_health(test_client):
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_mark_viewed_id_beyond_64_bits(test_client, test_whisper):
    response = await test_client.patch("/api/whispers/18446744073709551616/viewed")

    assert response.status_code == 404
    assert response.json() == {"error": "Whisper not found"}


async def test_unexpected_error_is_generic_500(store, monkeypatch):
    """Unexpected exceptions still render as {"error": ...}."""
    from httpx import ASGITransport, AsyncClient
    from whisper_server.main import app, get_store

    def broken():
        raise RuntimeError("connection pool on fire")

    monkeypatch.setattr(store, "get_whispers", broken)
    app.dependency_overrides[get_store] = lambda: store
    # The server error middleware re-raises after responding
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/whispers")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
