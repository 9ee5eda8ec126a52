"""Async HTTP client for the Whisper Garden API."""

import logging
import os
from typing import Optional

import httpx

from shared.schemas import Category, Share, UserPublic, Whisper

logger = logging.getLogger(__name__)

WHISPER_ENDPOINT = os.getenv("WHISPER_ENDPOINT", "http://localhost:8000")


def filter_whispers(whispers: list[Whisper], category: Optional[str] = None,
                    unviewed_only: bool = False) -> list[Whisper]:
    """Client-side filtering of a whisper listing."""
    if category:
        wanted = Category(category)
        whispers = [w for w in whispers if w.category == wanted]
    if unviewed_only:
        whispers = [w for w in whispers if not w.viewed]
    return whispers


class WhisperClient:
    """Thin wrapper over the REST API.

    Non-2xx responses raise httpx.HTTPStatusError, except a 404 from
    fetch_shared_whisper_by_code, which returns None.
    """

    def __init__(self, base_url: str = WHISPER_ENDPOINT,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = 10.0):
        self.http = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=timeout,
            headers={"Content-Type": "application/json"}
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self.http.aclose()

    async def fetch_whispers(self) -> list[Whisper]:
        response = await self.http.get("/api/whispers")
        response.raise_for_status()
        return [Whisper.model_validate(w) for w in response.json()]

    async def add_whisper(self, content: str, category: str) -> Whisper:
        response = await self.http.post(
            "/api/whispers",
            json={"content": content, "category": category}
        )
        response.raise_for_status()
        return Whisper.model_validate(response.json())

    async def mark_as_viewed(self, whisper_id: int) -> Whisper:
        response = await self.http.patch(f"/api/whispers/{whisper_id}/viewed")
        response.raise_for_status()
        return Whisper.model_validate(response.json())

    async def share_whisper(self, whisper_id: int, shared_by_user_id: int,
                            shared_to_user_id: Optional[int] = None) -> Share:
        payload = {"sharedByUserId": shared_by_user_id}
        if shared_to_user_id is not None:
            payload["sharedToUserId"] = shared_to_user_id

        response = await self.http.post(f"/api/whispers/{whisper_id}/share", json=payload)
        response.raise_for_status()
        return Share.model_validate(response.json())

    async def fetch_shared_whisper_by_code(self, share_code: str) -> Optional[Whisper]:
        response = await self.http.get(f"/api/share/{share_code}")
        if response.status_code == 404:
            logger.info("Share code not found or expired")
            return None
        response.raise_for_status()
        return Whisper.model_validate(response.json())

    async def fetch_shared_whispers(self, user_id: Optional[int] = None) -> list[Whisper]:
        params = {"userId": user_id} if user_id is not None else None
        response = await self.http.get("/api/whispers/shared", params=params)
        response.raise_for_status()
        return [Whisper.model_validate(w) for w in response.json()]

    async def register_user(self, username: str, password: str) -> UserPublic:
        response = await self.http.post(
            "/api/users",
            json={"username": username, "password": password}
        )
        response.raise_for_status()
        return UserPublic.model_validate(response.json())
