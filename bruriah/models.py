"""
DATA MODELS MODULE
==================

Pydantic models for the relay's request/response bodies and for chat storage.
FastAPI and the chat client both use these so the JSON exchanged over HTTP has
one definition with explicit required and optional fields.

MODELS:
  ConversationTurn  - One message sent as context (role + content). Frozen once built.
  ProfileContext    - Optional school/city/grade used to personalise the tutor.
  RelayRequest      - Body of POST /openai (versioned).
  ErrorResponse     - Body of every relay/admin error response.
  StoredMessage     - One persisted message inside a chat.
  Chat              - A persisted conversation: owner, title, ordered messages.
  Profile           - A persisted user profile.
"""

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import DEFAULT_CHAT_TITLE, RELAY_SCHEMA_VERSION

Role = Literal["system", "user", "assistant"]
VALID_ROLES = ("system", "user", "assistant")


def utc_now() -> str:
    """ISO-8601 UTC timestamp used for created_at fields."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid4().hex


# ==============================================================================
# RELAY REQUEST / RESPONSE MODELS
# ==============================================================================

class ConversationTurn(BaseModel):
    """
    A single turn of dialogue. Only role and content travel to the model;
    anything else a caller attaches (ids, timestamps) is dropped.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    role: Role
    content: str


class ProfileContext(BaseModel):
    """Profile fields the tutor may use. Every field is optional."""
    model_config = ConfigDict(extra="ignore")

    school: Optional[str] = None
    city: Optional[str] = None
    grade: Optional[str] = None

    @field_validator("school", "city", "grade", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        # Grades often arrive as numbers; anything else that is not text is unset.
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None


class RelayRequest(BaseModel):
    """
    Request body for POST /openai.

    - version: schema version; only RELAY_SCHEMA_VERSION is accepted.
    - prompt: the new user turn. Declared optional here so the endpoint can
      answer a missing prompt with its own 400 body instead of a 422.
    - context: prior turns, oldest first. Malformed entries are dropped.
    - profileData: optional profile fields for the profile context message.
    """
    model_config = ConfigDict(extra="ignore")

    version: int = RELAY_SCHEMA_VERSION
    prompt: Optional[str] = None
    context: List[ConversationTurn] = Field(default_factory=list)
    profileData: ProfileContext = Field(default_factory=ProfileContext)

    @field_validator("context", mode="before")
    @classmethod
    def _drop_malformed_turns(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [
            {"role": item["role"], "content": item["content"]}
            for item in value
            if isinstance(item, dict)
            and item.get("role") in VALID_ROLES
            and isinstance(item.get("content"), str)
        ]

    @field_validator("profileData", mode="before")
    @classmethod
    def _default_profile(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class ErrorResponse(BaseModel):
    error: str


# ==============================================================================
# STORAGE MODELS
# ==============================================================================

class StoredMessage(BaseModel):
    """A persisted message. Order inside Chat.messages is dialogue order."""
    id: str = Field(default_factory=new_id)
    chat_id: str
    role: Role
    content: str
    created_at: str = Field(default_factory=utc_now)


class Chat(BaseModel):
    id: str = Field(default_factory=new_id)
    profile_id: str
    title: str = DEFAULT_CHAT_TITLE
    created_at: str = Field(default_factory=utc_now)
    messages: List[StoredMessage] = Field(default_factory=list)


class Profile(BaseModel):
    id: str = Field(default_factory=new_id)
    auth_user_id: str
    username: str
    school: Optional[str] = None
    city: Optional[str] = None
    grade: Optional[str] = None
    avatar_url: Optional[str] = None

    def to_context(self) -> ProfileContext:
        """The subset of the profile sent to the relay as profileData."""
        return ProfileContext(school=self.school, city=self.city, grade=self.grade)
