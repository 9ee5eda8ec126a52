"""Entity store for whispers, shares and users, with a SQLite backend."""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from shared.schemas import Category, Share, User, Whisper
from whisper_server.errors import ConflictError, NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)

# SQLite stores INTEGER keys as signed 64-bit
ROW_ID_MIN = -(2 ** 63)
ROW_ID_MAX = 2 ** 63 - 1

# Fields a whisper may change after creation
MUTABLE_FIELDS = {"viewed", "is_shared", "shared_at", "original_author_id"}

SAMPLE_WHISPERS = [
    ("Sometimes I wonder if I'm good enough for the dreams I chase...", Category.THOUGHTS),
    ("I wish I had told them how much they meant to me before it was too late.", Category.REGRETS),
    ("Why does everything feel so overwhelming today? I just want to disappear.", Category.FRUSTRATION),
    ("Remember when we used to watch the sunset from that old bridge? Those were simpler times.",
     Category.MEMORIES),
    ("I've been struggling with anxiety lately and I don't know who to talk to about it.", Category.OPEN),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fits_row_id(value: int) -> bool:
    return ROW_ID_MIN <= value <= ROW_ID_MAX


def validate_new_whisper(content: Optional[str], category) -> tuple[str, Category]:
    """Check a new whisper's fields. Returns (content, category)."""
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Content is required")
    try:
        return content, Category(category)
    except ValueError:
        allowed = ", ".join(c.value for c in Category)
        raise ValidationError(f"Unknown category '{category}'. Expected one of: {allowed}")


def apply_patch(whisper: Whisper, patch: dict) -> Whisper:
    """Return a copy of whisper with patch applied.

    Only lifecycle fields may change, and the viewed/is_shared flags never
    go back to False.
    """
    unknown = set(patch) - MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    if whisper.viewed and patch.get("viewed") is False:
        raise ValidationError("A viewed whisper cannot be marked unviewed")
    if whisper.is_shared and patch.get("is_shared") is False:
        raise ValidationError("A shared whisper cannot be unshared")
    return whisper.model_copy(update=patch)


class WhisperStore(ABC):
    """Storage for users, whispers and shares.

    Implementations assign ids monotonically and never reuse them. Every
    write takes write_lock; callers that need several operations to be
    atomic hold it around the whole sequence (it is reentrant).
    """

    def __init__(self):
        self.write_lock = threading.RLock()

    # Users

    @abstractmethod
    def create_user(self, username: str, password: str) -> User:
        """Create a user. Raises ConflictError if the username is taken."""

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]:
        ...

    # Whispers

    @abstractmethod
    def create_whisper(self, content: str, category, author_id: Optional[int] = None) -> Whisper:
        """Create an unviewed, unshared whisper. Raises ValidationError on bad input."""

    @abstractmethod
    def get_whisper(self, whisper_id: int) -> Optional[Whisper]:
        ...

    @abstractmethod
    def get_whispers(self) -> list[Whisper]:
        """All whispers in creation order."""

    @abstractmethod
    def update_whisper(self, whisper_id: int, patch: dict) -> Optional[Whisper]:
        """Apply a partial update. Returns None if the whisper does not exist."""

    # Shares

    @abstractmethod
    def create_share(self, whisper_id: int, shared_by_user_id: int, share_code: str,
                     expires_at: datetime, shared_to_user_id: Optional[int] = None,
                     created_at: Optional[datetime] = None) -> Share:
        """Record a share event.

        Raises NotFoundError if the whisper does not exist and
        ConflictError if share_code was already issued.
        """

    @abstractmethod
    def get_shares(self) -> list[Share]:
        ...

    @abstractmethod
    def get_share_by_code(self, share_code: str) -> Optional[Share]:
        ...

    def share_code_exists(self, share_code: str) -> bool:
        return self.get_share_by_code(share_code) is not None


class SqliteStore(WhisperStore):
    """WhisperStore backed by a SQLite file."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self.init_db()

    @contextmanager
    def get_db(self):
        """Get a database connection."""
        try:
            conn = sqlite3.connect(self.path, timeout=10)
        except sqlite3.Error as e:
            logger.exception("Could not open database at %s", self.path)
            raise StoreError("Storage unavailable") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except (sqlite3.Error, OverflowError) as e:
            logger.exception("Database operation failed")
            raise StoreError("Storage failure") from e
        finally:
            conn.close()

    def init_db(self):
        """Initialize the database schema."""
        with self.get_db() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT UNIQUE NOT NULL,
                    password TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS whispers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    content TEXT NOT NULL,
                    category TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    viewed INTEGER NOT NULL DEFAULT 0,
                    author_id INTEGER,
                    is_shared INTEGER NOT NULL DEFAULT 0,
                    shared_at TEXT,
                    original_author_id INTEGER,
                    FOREIGN KEY (author_id) REFERENCES users(id),
                    FOREIGN KEY (original_author_id) REFERENCES users(id)
                );

                -- Shares are never deleted, so share_code stays unique for the
                -- lifetime of the database
                CREATE TABLE IF NOT EXISTS whisper_shares (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    whisper_id INTEGER NOT NULL,
                    shared_by_user_id INTEGER NOT NULL,
                    shared_to_user_id INTEGER,
                    share_code TEXT UNIQUE NOT NULL,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (whisper_id) REFERENCES whispers(id)
                );

                CREATE INDEX IF NOT EXISTS idx_whispers_shared ON whispers(is_shared);
                CREATE INDEX IF NOT EXISTS idx_shares_whisper ON whisper_shares(whisper_id);
            """)
            conn.commit()

    # User operations

    def create_user(self, username: str, password: str) -> User:
        if not username or not password:
            raise ValidationError("Username and password are required")
        with self.write_lock, self.get_db() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO users (username, password) VALUES (?, ?)",
                    (username, password)
                )
                conn.commit()
            except sqlite3.IntegrityError:
                raise ConflictError(f"Username '{username}' is already taken")
            return User(id=cursor.lastrowid, username=username, password=password)

    def get_user(self, user_id: int) -> Optional[User]:
        if not fits_row_id(user_id):
            return None
        with self.get_db() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row:
                return User(**dict(row))
            return None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self.get_db() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?", (username,)
            ).fetchone()
            if row:
                return User(**dict(row))
            return None

    # Whisper operations

    def create_whisper(self, content: str, category, author_id: Optional[int] = None) -> Whisper:
        content, category = validate_new_whisper(content, category)
        created_at = utcnow()
        with self.write_lock, self.get_db() as conn:
            cursor = conn.execute(
                """INSERT INTO whispers (content, category, created_at, author_id)
                   VALUES (?, ?, ?, ?)""",
                (content, category.value, created_at.isoformat(), author_id)
            )
            conn.commit()
            return Whisper(
                id=cursor.lastrowid,
                content=content,
                category=category,
                created_at=created_at,
                author_id=author_id,
            )

    def get_whisper(self, whisper_id: int) -> Optional[Whisper]:
        if not fits_row_id(whisper_id):
            return None
        with self.get_db() as conn:
            row = conn.execute("SELECT * FROM whispers WHERE id = ?", (whisper_id,)).fetchone()
            if row:
                return Whisper(**dict(row))
            return None

    def get_whispers(self) -> list[Whisper]:
        with self.get_db() as conn:
            rows = conn.execute("SELECT * FROM whispers ORDER BY id").fetchall()
            return [Whisper(**dict(row)) for row in rows]

    def update_whisper(self, whisper_id: int, patch: dict) -> Optional[Whisper]:
        with self.write_lock:
            whisper = self.get_whisper(whisper_id)
            if whisper is None:
                return None
            updated = apply_patch(whisper, patch)
            with self.get_db() as conn:
                conn.execute(
                    """UPDATE whispers
                       SET viewed = ?, is_shared = ?, shared_at = ?, original_author_id = ?
                       WHERE id = ?""",
                    (int(updated.viewed), int(updated.is_shared),
                     updated.shared_at.isoformat() if updated.shared_at else None,
                     updated.original_author_id, whisper_id)
                )
                conn.commit()
            return updated

    # Share operations

    def create_share(self, whisper_id: int, shared_by_user_id: int, share_code: str,
                     expires_at: datetime, shared_to_user_id: Optional[int] = None,
                     created_at: Optional[datetime] = None) -> Share:
        created_at = created_at or utcnow()
        with self.write_lock:
            if self.get_whisper(whisper_id) is None:
                raise NotFoundError("Whisper not found")
            with self.get_db() as conn:
                try:
                    cursor = conn.execute(
                        """INSERT INTO whisper_shares
                           (whisper_id, shared_by_user_id, shared_to_user_id, share_code,
                            expires_at, created_at)
                           VALUES (?, ?, ?, ?, ?, ?)""",
                        (whisper_id, shared_by_user_id, shared_to_user_id, share_code,
                         expires_at.isoformat(), created_at.isoformat())
                    )
                    conn.commit()
                except sqlite3.IntegrityError:
                    raise ConflictError("Share code already issued")
                return Share(
                    id=cursor.lastrowid,
                    whisper_id=whisper_id,
                    shared_by_user_id=shared_by_user_id,
                    shared_to_user_id=shared_to_user_id,
                    share_code=share_code,
                    expires_at=expires_at,
                    created_at=created_at,
                )

    def get_shares(self) -> list[Share]:
        with self.get_db() as conn:
            rows = conn.execute("SELECT * FROM whisper_shares ORDER BY id").fetchall()
            return [Share(**dict(row)) for row in rows]

    def get_share_by_code(self, share_code: str) -> Optional[Share]:
        with self.get_db() as conn:
            row = conn.execute(
                "SELECT * FROM whisper_shares WHERE share_code = ?", (share_code,)
            ).fetchone()
            if row:
                return Share(**dict(row))
            return None


def seed_samples(store: WhisperStore) -> int:
    """Write the sample whispers into an empty store. Returns how many were added."""
    with store.write_lock:
        if store.get_whispers():
            return 0
        for content, category in SAMPLE_WHISPERS:
            store.create_whisper(content, category)
    logger.info("Seeded %d sample whispers", len(SAMPLE_WHISPERS))
    return len(SAMPLE_WHISPERS)


def open_store(backend: str, path: Optional[Path] = None, seed: bool = False) -> WhisperStore:
    """Build the configured store."""
    if backend == "memory":
        from whisper_server.db.memory import MemoryStore
        store = MemoryStore()
    elif backend == "sqlite":
        if path is None:
            raise ValueError("sqlite store needs a path")
        store = SqliteStore(path)
    else:
        raise ValueError(f"Unknown store backend: {backend}")

    logger.info("Opened %s store", backend)
    if seed:
        seed_samples(store)
    return store
