"""Shared data models for Whisper Garden."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    """The fixed set of whisper categories."""
    FRUSTRATION = "frustration"
    REGRETS = "regrets"
    THOUGHTS = "thoughts"
    MEMORIES = "memories"
    OPEN = "open"


class CamelModel(BaseModel):
    """Serializes as camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Whisper(CamelModel):
    """A short anonymous entry."""
    id: int
    content: str
    category: Category
    created_at: datetime
    viewed: bool = False
    author_id: Optional[int] = None
    is_shared: bool = False
    shared_at: Optional[datetime] = None
    original_author_id: Optional[int] = None  # authorId snapshot at first share


class Share(CamelModel):
    """A single share event. Never mutated after creation."""
    id: int
    whisper_id: int
    shared_by_user_id: int
    shared_to_user_id: Optional[int] = None  # None = shared to the community
    share_code: str
    expires_at: datetime
    created_at: datetime


class User(CamelModel):
    """A registered user. The password is an opaque credential."""
    id: int
    username: str
    password: str


class UserPublic(CamelModel):
    """User as exposed over HTTP."""
    id: int
    username: str


class WhisperCreate(CamelModel):
    """Request to write a new whisper."""
    content: str
    category: str


class ShareCreate(CamelModel):
    """Request to share a whisper."""
    shared_by_user_id: int
    shared_to_user_id: Optional[int] = None


class UserCreate(CamelModel):
    """Request to register a user."""
    username: str
    password: str
