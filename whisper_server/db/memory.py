"""In-memory WhisperStore, used in tests and for throwaway servers."""

from datetime import datetime
from typing import Optional

from shared.schemas import Share, User, Whisper
from whisper_server.db.database import WhisperStore, apply_patch, utcnow, validate_new_whisper
from whisper_server.errors import ConflictError, NotFoundError, ValidationError


class MemoryStore(WhisperStore):
    """Dict-backed store. Records are copied on the way in and out."""

    def __init__(self):
        super().__init__()
        self.users: dict[int, User] = {}
        self.whispers: dict[int, Whisper] = {}
        self.shares: dict[int, Share] = {}
        self.share_codes: dict[str, int] = {}  # share_code -> share id
        self.next_user_id = 1
        self.next_whisper_id = 1
        self.next_share_id = 1

    def create_user(self, username: str, password: str) -> User:
        if not username or not password:
            raise ValidationError("Username and password are required")
        with self.write_lock:
            if self.get_user_by_username(username) is not None:
                raise ConflictError(f"Username '{username}' is already taken")
            user = User(id=self.next_user_id, username=username, password=password)
            self.next_user_id += 1
            self.users[user.id] = user
            return user.model_copy()

    def get_user(self, user_id: int) -> Optional[User]:
        user = self.users.get(user_id)
        return user.model_copy() if user else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        for user in list(self.users.values()):
            if user.username == username:
                return user.model_copy()
        return None

    def create_whisper(self, content: str, category, author_id: Optional[int] = None) -> Whisper:
        content, category = validate_new_whisper(content, category)
        with self.write_lock:
            whisper = Whisper(
                id=self.next_whisper_id,
                content=content,
                category=category,
                created_at=utcnow(),
                author_id=author_id,
            )
            self.next_whisper_id += 1
            self.whispers[whisper.id] = whisper
            return whisper.model_copy()

    def get_whisper(self, whisper_id: int) -> Optional[Whisper]:
        whisper = self.whispers.get(whisper_id)
        return whisper.model_copy() if whisper else None

    def get_whispers(self) -> list[Whisper]:
        with self.write_lock:
            return [w.model_copy() for w in self.whispers.values()]

    def update_whisper(self, whisper_id: int, patch: dict) -> Optional[Whisper]:
        with self.write_lock:
            whisper = self.whispers.get(whisper_id)
            if whisper is None:
                return None
            updated = apply_patch(whisper, patch)
            self.whispers[whisper_id] = updated
            return updated.model_copy()

    def create_share(self, whisper_id: int, shared_by_user_id: int, share_code: str,
                     expires_at: datetime, shared_to_user_id: Optional[int] = None,
                     created_at: Optional[datetime] = None) -> Share:
        with self.write_lock:
            if whisper_id not in self.whispers:
                raise NotFoundError("Whisper not found")
            if share_code in self.share_codes:
                raise ConflictError("Share code already issued")
            share = Share(
                id=self.next_share_id,
                whisper_id=whisper_id,
                shared_by_user_id=shared_by_user_id,
                shared_to_user_id=shared_to_user_id,
                share_code=share_code,
                expires_at=expires_at,
                created_at=created_at or utcnow(),
            )
            self.next_share_id += 1
            self.shares[share.id] = share
            self.share_codes[share_code] = share.id
            return share.model_copy()

    def get_shares(self) -> list[Share]:
        with self.write_lock:
            return [s.model_copy() for s in self.shares.values()]

    def get_share_by_code(self, share_code: str) -> Optional[Share]:
        share_id = self.share_codes.get(share_code)
        if share_id is None:
            return None
        return self.shares[share_id].model_copy()
