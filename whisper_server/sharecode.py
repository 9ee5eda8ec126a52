"""Share code generation."""

import logging
import re
import secrets
from typing import Callable

from whisper_server import config
from whisper_server.errors import ExhaustedError

logger = logging.getLogger(__name__)

# token_urlsafe alphabet: A-Z a-z 0-9 - _
SHARE_CODE_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,128}")


def new_token(nbytes: int = config.SHARE_CODE_BYTES) -> str:
    """A random URL-safe token. 16 bytes gives 22 characters; never fewer."""
    return secrets.token_urlsafe(max(nbytes, config.MIN_SHARE_CODE_BYTES))


def generate_share_code(exists: Callable[[str], bool],
                        max_attempts: int = config.SHARE_CODE_ATTEMPTS,
                        token_factory: Callable[[], str] = new_token) -> str:
    """Generate a share code that `exists` reports as unused.

    Args:
        exists: Returns True if a code has already been issued
        max_attempts: Number of candidates to try before giving up
        token_factory: Source of candidate codes

    Raises:
        ExhaustedError: if every candidate collided
    """
    for attempt in range(1, max_attempts + 1):
        code = token_factory()
        if not exists(code):
            return code
        logger.warning("Share code collision (attempt %d/%d)", attempt, max_attempts)

    logger.error("Share code generation exhausted after %d attempts", max_attempts)
    raise ExhaustedError(f"Could not generate a unique share code in {max_attempts} attempts")


def looks_like_share_code(code: str) -> bool:
    """Cheap shape check before touching the store."""
    return bool(SHARE_CODE_PATTERN.fullmatch(code))
