"""Runtime configuration, read from the environment."""

import logging
import os
from pathlib import Path

VERSION = "0.1.0"

# Storage
STORE_BACKEND = os.getenv("WHISPER_STORE", "sqlite")  # "sqlite" or "memory"
DB_PATH = Path(os.getenv("WHISPER_DB_PATH", Path(__file__).parent / "db" / "whispers.db"))
SEED_SAMPLES = os.getenv("WHISPER_SEED_SAMPLES", "1") == "1"

# Sharing
SHARE_TTL_DAYS = int(os.getenv("WHISPER_SHARE_TTL_DAYS", "7"))
MIN_SHARE_CODE_BYTES = 16  # 128 bits
SHARE_CODE_BYTES = max(MIN_SHARE_CODE_BYTES, int(os.getenv("WHISPER_SHARE_CODE_BYTES", "16")))
SHARE_CODE_ATTEMPTS = int(os.getenv("WHISPER_SHARE_CODE_ATTEMPTS", "5"))

# HTTP
CORS_ORIGINS = [o.strip() for o in os.getenv("WHISPER_CORS_ORIGINS", "*").split(",") if o.strip()]
HOST = os.getenv("WHISPER_HOST", "0.0.0.0")
PORT = int(os.getenv("WHISPER_PORT", "8000"))

LOG_LEVEL = os.getenv("WHISPER_LOG_LEVEL", "INFO")


def setup_logging():
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
