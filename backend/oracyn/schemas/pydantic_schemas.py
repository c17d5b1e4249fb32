from datetime import datetime
import json
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from oracyn.db.models import ChatState, ChatStatus, MessageType

"""
Pydantic schemas used for request validation and response serialization.

These schemas:
- Validate incoming API payloads
- Define response shapes sent to the client
- Act as a clean contract between frontend and backend
"""

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


def check_password_strength(value: str) -> str:
    """
    Password policy: 8-128 characters with at least one lowercase letter,
    one uppercase letter, one digit and one special character.
    """
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if len(value) > 128:
        raise ValueError("Password must be less than 128 characters long")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one number")
    if not SPECIAL_CHARACTERS.search(value):
        raise ValueError("Password must contain at least one special character")
    return value


def _check_name(value: Optional[str]) -> Optional[str]:
    if value is not None and not NAME_PATTERN.match(value):
        raise ValueError("Names can only contain letters, spaces, hyphens, and apostrophes")
    return value


# ------------------------
# AUTH & USER SCHEMAS
# ------------------------
class UserCreate(BaseModel):
    """
    Payload for user registration.
    Email and username are stored lowercased.
    """
    email: EmailStr
    username: str = Field(min_length=3, max_length=30)
    password: str
    confirm_password: str
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    profession: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=500)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        if not USERNAME_PATTERN.match(value):
            raise ValueError("Username can only contain letters, numbers, underscores, and hyphens")
        return value.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator("first_name", "last_name")
    @classmethod
    def check_names(cls, value: Optional[str]) -> Optional[str]:
        return _check_name(value)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class UserLogin(BaseModel):
    """
    Payload for user login.
    Validates user credentials before authentication.
    """
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class UserResponse(BaseModel):
    """
    Public user representation returned by the API.
    Excludes sensitive fields such as passwords and one-time tokens.
    """
    id: int
    email: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profession: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool
    is_verified: bool
    created_at: Optional[datetime] = None

    class Config:
        # Enables compatibility with SQLAlchemy ORM objects
        from_attributes = True


class TokenResponse(BaseModel):
    """
    Response returned after successful authentication.
    The refresh token is also set as an httpOnly cookie.
    """
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: int
    user: Optional[UserResponse] = None


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    profession: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar: Optional[str] = Field(default=None, max_length=500)

    @field_validator("first_name", "last_name")
    @classmethod
    def check_names(cls, value: Optional[str]) -> Optional[str]:
        return _check_name(value)


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str
    confirm_new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_new_password:
            raise ValueError("New passwords don't match")
        return self


class EmailRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class TokenRequest(BaseModel):
    token: str = Field(min_length=1)


class PasswordReset(BaseModel):
    token: str = Field(min_length=1)
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class MessageResponse(BaseModel):
    message: str


# ------------------------
# CHAT SCHEMAS
# ------------------------
class ChatCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)


class ChatUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    status: Optional[ChatStatus] = None
    state: Optional[ChatState] = None


class ChatResponse(BaseModel):
    id: int
    title: str
    state: ChatState
    status: ChatStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DocumentResponse(BaseModel):
    id: int
    chat_id: int
    name: str
    url: str = Field(validation_alias="storage_key")
    type: str = Field(validation_alias="mime_type")
    size: int = Field(validation_alias="size_bytes")
    processed: bool
    uploaded_at: datetime

    class Config:
        from_attributes = True
        # Responses are re-validated from their dumped form, which uses field names
        populate_by_name = True


class ChatMessageResponse(BaseModel):
    id: int
    chat_id: int
    role: str
    content: str
    type: str
    tokens_used: Optional[int] = None
    degraded: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class ChatSummaryResponse(ChatResponse):
    last_message: Optional[ChatMessageResponse] = None
    documents: List[DocumentResponse] = []


class ChatMessagesResponse(BaseModel):
    messages: List[ChatMessageResponse]
    documents: List[DocumentResponse]
    chat_state: ChatState


class ChatRequest(BaseModel):
    """
    Payload for sending a chat message.

    - `content`: user input text
    - `type`: message type tag (defaults to a regular message)
    """
    content: str = Field(min_length=1)
    type: MessageType = MessageType.REGULAR


class QueryRequest(BaseModel):
    prompt: str = Field(min_length=1)


class SendMessageResponse(BaseModel):
    """
    `degraded` is true when the assistant reply is the fallback text.
    In async mode `assistant_message` is null and the reply shows up in the
    chat history once the background continuation has stored it.
    """
    user_message: ChatMessageResponse
    assistant_message: Optional[ChatMessageResponse] = None
    degraded: bool = False
    mode: str


class QueryResponse(BaseModel):
    query: ChatMessageResponse
    response: Optional[ChatMessageResponse] = None
    degraded: bool = False
    mode: str


# ------------------------
# CHART SCHEMAS
# ------------------------
class ChartCreate(BaseModel):
    chat_id: int
    type: str = Field(min_length=1, max_length=50)
    label: str = Field(min_length=1, max_length=255)
    data: Any
    config: Optional[Dict[str, Any]] = None
    created_from: Optional[str] = None


class ChartUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1, max_length=255)
    data: Optional[Any] = None
    config: Optional[Dict[str, Any]] = None


class ChartGenerate(BaseModel):
    chat_id: int
    prompt: str = Field(min_length=1)
    chart_type: str = Field(default="bar", min_length=1, max_length=50)


class ChartResponse(BaseModel):
    id: int
    chat_id: int
    type: str
    label: str
    data: Any
    config: Dict[str, Any]
    created_from: str
    tokens_used: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator("data", "config", mode="before")
    @classmethod
    def parse_json_text(cls, value):
        # Stored as serialized JSON text
        if isinstance(value, str):
            return json.loads(value)
        return value


# ------------------------
# INTERNAL SCHEMAS
# ------------------------
class ProcessedCallback(BaseModel):
    processed: bool = True


# ------------------------
# STATS SCHEMAS
# ------------------------
class StatsResponse(BaseModel):
    chats: int
    documents: int
    charts: int
    tokens_used: int
