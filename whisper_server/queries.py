"""Read-side queries over the whisper store."""

import logging
from typing import Optional

from shared.schemas import Whisper
from whisper_server.db.database import WhisperStore

logger = logging.getLogger(__name__)


def list_whispers(store: WhisperStore) -> list[Whisper]:
    """All whispers in creation order. Filtering is left to the caller."""
    return store.get_whispers()


def list_shared_whispers(store: WhisperStore,
                         requesting_user_id: Optional[int] = None) -> list[Whisper]:
    """Every shared whisper, in creation order.

    Visibility does not depend on the requester yet; directed shares
    (sharedToUserId) are listed to everyone like community shares.
    """
    if requesting_user_id is not None:
        logger.debug("Shared whispers requested by user %d", requesting_user_id)
    return [w for w in store.get_whispers() if w.is_shared]
