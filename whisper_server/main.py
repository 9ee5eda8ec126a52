"""Whisper Garden server - FastAPI backend for anonymous whispers."""

import logging
import time
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Depends, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.schemas import (
    Whisper, WhisperCreate, Share, ShareCreate, UserCreate, UserPublic
)
from whisper_server import config, lifecycle, queries
from whisper_server.db import database as db
from whisper_server.errors import WhisperError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Whisper Garden",
    description="Anonymous, category-tagged whispers with expiring share links",
    version=config.VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

config.setup_logging()

_store: Optional[db.WhisperStore] = None


def get_store() -> db.WhisperStore:
    """Dependency returning the process-wide store, opened on first use."""
    global _store
    if _store is None:
        _store = db.open_store(config.STORE_BACKEND, config.DB_PATH, seed=config.SEED_SAMPLES)
    return _store


# Error rendering: every failure is {"error": "..."}

@app.exception_handler(WhisperError)
async def whisper_error_handler(request: Request, exc: WhisperError):
    if exc.status_code >= 500:
        logger.error("%s during %s %s: %s", type(exc).__name__,
                     request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": "Internal server error"})

    logger.warning("%s %s rejected (%d): %s", request.method, request.url.path,
                   exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = []
    for err in exc.errors():
        name = ".".join(str(part) for part in err.get("loc", ())[1:])
        if name and name not in fields:
            fields.append(name)
    message = f"Missing or invalid fields: {', '.join(fields)}" if fields else "Invalid request body"
    logger.warning("%s %s rejected (400): %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error during %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path,
                response.status_code, elapsed_ms)
    return response


# Whisper endpoints

@app.get("/api/whispers", response_model=list[Whisper])
async def list_whispers(store: db.WhisperStore = Depends(get_store)):
    """List all whispers in creation order."""
    return queries.list_whispers(store)


@app.post("/api/whispers", response_model=Whisper, status_code=201)
async def create_whisper(body: WhisperCreate, store: db.WhisperStore = Depends(get_store)):
    """Write a new whisper."""
    whisper = store.create_whisper(body.content, body.category)
    logger.info("Whisper %d created in '%s'", whisper.id, whisper.category.value)
    return whisper


@app.patch("/api/whispers/{whisper_id}/viewed", response_model=Whisper)
async def mark_whisper_viewed(whisper_id: int, store: db.WhisperStore = Depends(get_store)):
    """Mark a whisper as viewed. Safe to repeat."""
    whisper = lifecycle.mark_viewed(store, whisper_id)
    if not whisper:
        raise HTTPException(status_code=404, detail="Whisper not found")
    return whisper


# Sharing endpoints

@app.get("/api/whispers/shared", response_model=list[Whisper])
async def list_shared_whispers(
    user_id: Optional[int] = Query(None, alias="userId"),
    store: db.WhisperStore = Depends(get_store)
):
    """List whispers that have been shared at least once."""
    return queries.list_shared_whispers(store, user_id)


@app.post("/api/whispers/{whisper_id}/share", response_model=Share, status_code=201)
async def share_whisper(whisper_id: int, body: ShareCreate,
                        store: db.WhisperStore = Depends(get_store)):
    """Share a whisper. Returns the share with its one-week code."""
    return lifecycle.share_whisper(
        store,
        whisper_id,
        body.shared_by_user_id,
        shared_to_user_id=body.shared_to_user_id
    )


@app.get("/api/share/{share_code}", response_model=Whisper)
async def open_shared_whisper(share_code: str, store: db.WhisperStore = Depends(get_store)):
    """Resolve a share code to its whisper."""
    whisper = lifecycle.resolve_share_code(store, share_code)
    if not whisper:
        raise HTTPException(status_code=404, detail="Shared whisper not found or expired")
    return whisper


# User endpoints

@app.post("/api/users", response_model=UserPublic, status_code=201)
async def register_user(body: UserCreate, store: db.WhisperStore = Depends(get_store)):
    """Register a user. The password is never returned."""
    user = store.create_user(body.username, body.password)
    logger.info("User %d registered", user.id)
    return UserPublic(id=user.id, username=user.username)


@app.get("/api/users/{user_id}", response_model=UserPublic)
async def get_user(user_id: int, store: db.WhisperStore = Depends(get_store)):
    """Get a user's public profile."""
    user = store.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserPublic(id=user.id, username=user.username)


# Health check

@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "version": config.VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
