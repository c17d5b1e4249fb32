from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from .base import Base

"""
Database ORM models.

This module defines all SQLAlchemy models used by the application:
- User accounts
- Chats (conversation containers)
- Messages (one turn in a chat)
- Uploaded document metadata
- Generated charts

Every row hangs off a User and, except users themselves, off a Chat.
Deleting a chat cascades to its messages, documents and charts.
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ChatState(str, enum.Enum):
    UPLOAD = "upload"
    CHAT = "chat"
    VISUALIZE = "visualize"


class ChatStatus(str, enum.Enum):
    NONE = "none"
    STARRED = "starred"
    SAVED = "saved"


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(str, enum.Enum):
    QUERY = "query"
    RESPONSE = "response"
    REGULAR = "regular"
    SYSTEM = "system"


# ------------------------
# USER TABLE
# ------------------------
class User(Base):
    """
    Represents an application user.

    Users are never hard-deleted: deactivation clears `is_active` and
    rewrites email/username with a `deleted_` prefix so both become
    available for a new registration.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Authentication fields
    email = Column(String(320), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    # Profile fields
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    profession = Column(String(100), nullable=True)
    bio = Column(String(500), nullable=True)
    avatar = Column(String(500), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    # One-time tokens for email verification and password reset
    verification_token = Column(String(128), nullable=True, index=True)
    verification_token_expires = Column(DateTime(timezone=True), nullable=True)
    reset_token = Column(String(128), nullable=True, index=True)
    reset_token_expires = Column(DateTime(timezone=True), nullable=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    chats = relationship(
        "Chat",
        back_populates="user",
        cascade="all, delete-orphan",
    )


# ------------------------
# CHAT TABLE
# ------------------------
class Chat(Base):
    """
    A conversation container owned by exactly one user.

    `state` tracks the product flow (upload -> chat -> visualize) and
    `status` is a user-facing tag. Titles are unique per user.
    """

    __tablename__ = "chats"
    __table_args__ = (
        UniqueConstraint("user_id", "title", name="uq_chats_user_title"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title = Column(String(255), nullable=False)
    state = Column(String(20), nullable=False, default=ChatState.UPLOAD.value)
    status = Column(String(20), nullable=False, default=ChatStatus.NONE.value)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="chats")
    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
    )
    documents = relationship(
        "Document",
        back_populates="chat",
        cascade="all, delete-orphan",
    )
    charts = relationship(
        "Chart",
        back_populates="chat",
        cascade="all, delete-orphan",
    )


# ------------------------
# MESSAGE TABLE
# ------------------------
class Message(Base):
    """
    A single turn in a chat.

    Conversation order is insertion order: (created_at, id) ascending.
    Messages are never edited. `degraded` marks assistant replies that were
    substituted with the fallback text because the AI service failed.
    """

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(
        Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )

    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default=MessageType.REGULAR.value)
    tokens_used = Column(Integer, nullable=True)
    degraded = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    chat = relationship("Chat", back_populates="messages")


# ------------------------
# DOCUMENT TABLE
# ------------------------
class Document(Base):
    """
    Metadata for an uploaded file. The bytes live in the configured
    storage backend; `storage_key` is the locator returned by it.
    """

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(
        Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    storage_key = Column(String(1000), nullable=False)
    mime_type = Column(String(255), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    processed = Column(Boolean, nullable=False, default=False)

    uploaded_at = Column(DateTime(timezone=True), default=utcnow)

    chat = relationship("Chat", back_populates="documents")


# ------------------------
# CHART TABLE
# ------------------------
class Chart(Base):
    """
    An AI-generated (or user-saved) visualization. `data` and `config` are
    stored as serialized JSON text.
    """

    __tablename__ = "charts"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(
        Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(50), nullable=False)
    label = Column(String(255), nullable=False)
    data = Column(Text, nullable=False)
    config = Column(Text, nullable=False, default="{}")
    created_from = Column(Text, nullable=False, default="Unknown")
    tokens_used = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    chat = relationship("Chat", back_populates="charts")
