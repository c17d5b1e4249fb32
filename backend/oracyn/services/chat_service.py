# oracyn/services/chat_service.py
"""
Chat orchestration.

Responsibilities:
- Chat CRUD scoped to the owning user
- The message exchange: persist the user message, ask the AI service for
  a reply, persist the reply (or the fallback message when the AI service
  fails), update chat bookkeeping
- The deferred variant of the exchange, where the reply is written by a
  background continuation after the HTTP response has been sent

The orchestrator never wraps the message insert and the chat update in one
transaction; they are independent commits.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oracyn.core.errors import Conflict, NotFound, ValidationFailed
from oracyn.core.logging import get_logger
from oracyn.db.models import (
    Chat,
    ChatState,
    ChatStatus,
    Message,
    MessageRole,
    MessageType,
)
from oracyn.repositories.chat_repository import ChatRepository
from oracyn.repositories.document_repository import DocumentRepository
from oracyn.services.ai_client import AIServiceError
from oracyn.services.background import ChatLocks

LOGGER = get_logger(__name__)

# Substituted for the assistant reply whenever the AI service call fails.
FALLBACK_MESSAGE = (
    "I apologize, but I'm currently experiencing technical difficulties "
    "processing your question. Please try again in a moment. "
    "If the issue persists, please contact support."
)

DEFAULT_CHAT_TITLE = "New Chat"


@dataclass
class Exchange:
    """Outcome of one send: the user message and, when already known, the reply."""

    user_message: Message
    assistant_message: Optional[Message]
    degraded: bool
    mode: str


class ChatService:
    def __init__(self, db: Session, ai_client, locks: ChatLocks,
                 history_limit: int = 10, storage=None):
        self.db = db
        self.ai_client = ai_client
        self.locks = locks
        self.history_limit = history_limit
        self.storage = storage
        self.chats = ChatRepository(db)
        self.documents = DocumentRepository(db)

    # ----------------------------
    # Chat CRUD
    # ----------------------------
    def get_owned_chat(self, chat_id: int, user_id: int) -> Chat:
        chat = self.chats.get_owned(chat_id, user_id)
        if chat is None:
            # Someone else's chat is reported exactly like a missing one
            raise NotFound("Chat not found", code="CHAT_NOT_FOUND")
        return chat

    def list_chats(self, user_id: int) -> List[Dict]:
        """Chats newest first, each with its last message and document list."""
        summaries = []
        for chat in self.chats.list_for_user(user_id):
            summaries.append({
                "chat": chat,
                "last_message": self.chats.last_message(chat.id),
                "documents": self.documents.list_for_chat(chat.id),
            })
        return summaries

    def create_chat(self, user_id: int, title: Optional[str] = None) -> Chat:
        title = (title or "").strip()
        if title:
            if self.chats.title_exists(user_id, title):
                raise Conflict("A chat with this title already exists", code="DUPLICATE_TITLE")
        else:
            title = self._next_default_title(user_id)

        try:
            return self.chats.create(user_id, title)
        except IntegrityError as e:
            # Lost a race against a concurrent create with the same title
            self.db.rollback()
            raise Conflict("A chat with this title already exists", code="DUPLICATE_TITLE") from e

    def _next_default_title(self, user_id: int) -> str:
        taken = set(self.chats.titles_like(user_id, DEFAULT_CHAT_TITLE))
        if DEFAULT_CHAT_TITLE not in taken:
            return DEFAULT_CHAT_TITLE
        n = 2
        while f"{DEFAULT_CHAT_TITLE} ({n})" in taken:
            n += 1
        return f"{DEFAULT_CHAT_TITLE} ({n})"

    def update_chat(self, chat_id: int, user_id: int, title: Optional[str] = None,
                    status: Optional[ChatStatus] = None,
                    state: Optional[ChatState] = None) -> Chat:
        chat = self.get_owned_chat(chat_id, user_id)
        changes = {}

        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationFailed("Title cannot be empty")
            if self.chats.title_exists(user_id, title, exclude_chat_id=chat.id):
                raise Conflict("A chat with this title already exists", code="DUPLICATE_TITLE")
            changes["title"] = title
        if status is not None:
            changes["status"] = ChatStatus(status).value
        if state is not None:
            changes["state"] = ChatState(state).value

        try:
            return self.chats.update(chat, **changes)
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("A chat with this title already exists", code="DUPLICATE_TITLE") from e

    def delete_chat(self, chat_id: int, user_id: int) -> None:
        chat = self.get_owned_chat(chat_id, user_id)
        locators = [doc.storage_key for doc in self.documents.list_for_chat(chat.id)]

        self.chats.delete(chat)
        self.locks.discard(chat_id)

        if self.storage is not None:
            for locator in locators:
                self.storage.delete(locator)
        LOGGER.info(f"Deleted chat {chat_id} ({len(locators)} stored files removed)")

    def list_messages(self, chat_id: int, user_id: int):
        """Return (chat, messages in conversation order, documents)."""
        chat = self.get_owned_chat(chat_id, user_id)
        return chat, self.chats.list_messages(chat.id), self.documents.list_for_chat(chat.id)

    # ----------------------------
    # Message exchange
    # ----------------------------
    def send_message(self, chat_id: int, caller_id: int, content: str,
                     message_type: MessageType = MessageType.REGULAR) -> Exchange:
        """
        Synchronous exchange: returns once the reply (or fallback) is stored.

        Exactly one user message is written no matter what the AI service
        does. An AI failure is absorbed into a degraded fallback reply.
        """
        text = _require_content(content)

        # Serialize appends so a message and its reply stay adjacent
        with self.locks.for_chat(chat_id):
            chat = self.get_owned_chat(chat_id, caller_id)
            user_message = self.chats.add_message(
                chat.id, MessageRole.USER.value, text, MessageType(message_type).value
            )
            reply = self._reply(chat, user_message)

        return Exchange(user_message, reply, reply.degraded, "sync")

    def accept_message(self, chat_id: int, caller_id: int, content: str,
                       message_type: MessageType = MessageType.REGULAR) -> Exchange:
        """
        First half of the deferred exchange: store the user message only.
        The caller schedules `reply_in_background` for the second half.
        """
        text = _require_content(content)
        chat = self.get_owned_chat(chat_id, caller_id)

        with self.locks.for_chat(chat.id):
            user_message = self.chats.add_message(
                chat.id, MessageRole.USER.value, text, MessageType(message_type).value
            )
        self.chats.touch(chat)
        return Exchange(user_message, None, False, "async")

    def complete_exchange(self, chat_id: int, user_message_id: int) -> Optional[Message]:
        """Second half of the deferred exchange."""
        with self.locks.for_chat(chat_id):
            chat = self.chats.get(chat_id)
            user_message = self.chats.get_message(user_message_id)
            if chat is None or user_message is None:
                LOGGER.info(f"Chat {chat_id} was deleted before its reply was ready")
                return None
            return self._reply(chat, user_message)

    def _history(self, chat_id: int, before_id: int) -> List[Dict[str, str]]:
        return [
            {"role": m.role, "content": m.content}
            for m in self.chats.recent_messages(chat_id, self.history_limit, before_id=before_id)
        ]

    def _reply(self, chat: Chat, user_message: Message) -> Message:
        history = self._history(chat.id, user_message.id)

        try:
            answer = self.ai_client.answer_query(user_message.content, chat.id, history)
        except AIServiceError as e:
            LOGGER.warning(f"AI reply for chat {chat.id} failed ({e.kind}): {e}; storing fallback")
            return self._store_fallback(chat)
        except Exception:
            LOGGER.exception(f"AI client raised unexpectedly for chat {chat.id}; storing fallback")
            return self._store_fallback(chat)

        reply = self.chats.add_message(
            chat.id,
            MessageRole.ASSISTANT.value,
            answer.answer,
            MessageType.RESPONSE.value,
            tokens_used=answer.tokens_used,
        )
        self.chats.touch(chat)
        # The first successful exchange moves a fresh chat out of "upload";
        # a chat that moved on during the AI call keeps its newer state
        self.chats.advance_state(chat, ChatState.UPLOAD.value, ChatState.CHAT.value)
        return reply

    def _store_fallback(self, chat: Chat) -> Message:
        reply = self.chats.add_message(
            chat.id,
            MessageRole.ASSISTANT.value,
            FALLBACK_MESSAGE,
            MessageType.RESPONSE.value,
            degraded=True,
        )
        self.chats.touch(chat)
        return reply


def reply_in_background(session_factory, ai_client, locks: ChatLocks,
                        history_limit: int, chat_id: int, user_message_id: int) -> None:
    """
    Background continuation for the deferred exchange.

    Runs after the response was sent, so it opens its own session instead
    of reusing the request's.
    """
    db = session_factory()
    try:
        service = ChatService(db, ai_client, locks, history_limit)
        service.complete_exchange(chat_id, user_message_id)
    finally:
        db.close()


def _require_content(content: Optional[str]) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationFailed("Message content required")
    return text
