"""Whisper lifecycle: viewing, sharing and share-code resolution.

A whisper starts Private and Unviewed. Sharing moves it to Shared (one
way; later shares add Share records but keep the first sharedAt and
originalAuthorId). Viewing moves it to Viewed (terminal). Each Share is
Active until its expiresAt and Expired from that instant on; expiry is
computed on read, never stored.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from shared.schemas import Share, Whisper
from whisper_server import config
from whisper_server.db.database import WhisperStore, fits_row_id, utcnow
from whisper_server.errors import NotFoundError, ValidationError
from whisper_server.sharecode import generate_share_code, looks_like_share_code

logger = logging.getLogger(__name__)


class ShareState(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


def share_expiry(created_at: datetime) -> datetime:
    return created_at + timedelta(days=config.SHARE_TTL_DAYS)


def share_state(share: Share, now: Optional[datetime] = None) -> ShareState:
    """Active strictly before expires_at, expired at and after it."""
    now = now or utcnow()
    if now < share.expires_at:
        return ShareState.ACTIVE
    return ShareState.EXPIRED


def mark_viewed(store: WhisperStore, whisper_id: int) -> Optional[Whisper]:
    """Mark a whisper viewed. Idempotent; returns None if it does not exist."""
    with store.write_lock:
        whisper = store.get_whisper(whisper_id)
        if whisper is None:
            return None
        if whisper.viewed:
            return whisper
        updated = store.update_whisper(whisper_id, {"viewed": True})

    logger.info("Whisper %d marked viewed", whisper_id)
    return updated


def share_whisper(store: WhisperStore, whisper_id: int, shared_by_user_id: int,
                  shared_to_user_id: Optional[int] = None,
                  now: Optional[datetime] = None) -> Share:
    """Create a share event for a whisper.

    The Share is written before the whisper is flagged, so a shared whisper
    always has at least one Share. The whole sequence runs under the store's
    write lock.

    Raises:
        ValidationError: shared_by_user_id missing, or a user id out of range
        NotFoundError: whisper does not exist
        ExhaustedError: no unique share code could be generated
    """
    if shared_by_user_id is None:
        raise ValidationError("sharedByUserId is required")
    for field, user_id in (("sharedByUserId", shared_by_user_id),
                           ("sharedToUserId", shared_to_user_id)):
        if user_id is not None and not fits_row_id(user_id):
            raise ValidationError(f"{field} is out of range")

    with store.write_lock:
        now = now or utcnow()
        whisper = store.get_whisper(whisper_id)
        if whisper is None:
            raise NotFoundError("Whisper not found")

        code = generate_share_code(store.share_code_exists)
        share = store.create_share(
            whisper_id,
            shared_by_user_id,
            code,
            expires_at=share_expiry(now),
            shared_to_user_id=shared_to_user_id,
            created_at=now,
        )

        if not whisper.is_shared:
            store.update_whisper(whisper_id, {
                "is_shared": True,
                "shared_at": now,
                "original_author_id": whisper.author_id,
            })
            logger.info("Whisper %d is now shared", whisper_id)

    logger.info("Share %d created for whisper %d by user %s (code %s...)",
                share.id, whisper_id, shared_by_user_id, code[:4])
    return share


def resolve_share_code(store: WhisperStore, share_code: str,
                       now: Optional[datetime] = None) -> Optional[Whisper]:
    """Return the whisper behind an active share code, else None.

    Does not mark the whisper viewed.
    """
    if not share_code or not looks_like_share_code(share_code):
        return None

    share = store.get_share_by_code(share_code)
    if share is None:
        return None

    if share_state(share, now) is ShareState.EXPIRED:
        logger.info("Share %d for whisper %d has expired", share.id, share.whisper_id)
        return None

    return store.get_whisper(share.whisper_id)
