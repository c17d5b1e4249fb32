"""Repository for chats and their messages."""

from typing import List, Optional

from sqlalchemy.orm import Session

from oracyn.db.models import Chat, Message, utcnow


class ChatRepository:
    """Repository for Chat and Message operations.

    Lookups that take a `user_id` are ownership-scoped: a chat that exists
    but belongs to someone else is reported exactly like a missing one.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------
    # Chats
    # ------------------------
    def get_owned(self, chat_id: int, user_id: int) -> Optional[Chat]:
        return (
            self.db.query(Chat)
            .filter(Chat.id == chat_id, Chat.user_id == user_id)
            .first()
        )

    def get(self, chat_id: int) -> Optional[Chat]:
        return self.db.query(Chat).filter(Chat.id == chat_id).first()

    def list_for_user(self, user_id: int) -> List[Chat]:
        return (
            self.db.query(Chat)
            .filter(Chat.user_id == user_id)
            .order_by(Chat.created_at.desc(), Chat.id.desc())
            .all()
        )

    def title_exists(self, user_id: int, title: str, exclude_chat_id: Optional[int] = None) -> bool:
        query = self.db.query(Chat.id).filter(Chat.user_id == user_id, Chat.title == title)
        if exclude_chat_id is not None:
            query = query.filter(Chat.id != exclude_chat_id)
        return query.first() is not None

    def titles_like(self, user_id: int, prefix: str) -> List[str]:
        rows = (
            self.db.query(Chat.title)
            .filter(Chat.user_id == user_id, Chat.title.startswith(prefix))
            .all()
        )
        return [row[0] for row in rows]

    def create(self, user_id: int, title: str) -> Chat:
        chat = Chat(user_id=user_id, title=title)
        self.db.add(chat)
        self.db.commit()
        self.db.refresh(chat)
        return chat

    def update(self, chat: Chat, **fields) -> Chat:
        for name, value in fields.items():
            setattr(chat, name, value)
        chat.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(chat)
        return chat

    def touch(self, chat: Chat, state: Optional[str] = None) -> Chat:
        """Bump `updated_at` and optionally move the chat to `state`."""
        if state is not None:
            chat.state = state
        chat.updated_at = utcnow()
        self.db.commit()
        return chat

    def advance_state(self, chat: Chat, from_state: str, to_state: str) -> bool:
        """Move the chat to `to_state` only while it is still in `from_state`.

        The state check is part of the UPDATE, so a state written by another
        request since `chat` was loaded is never overwritten.
        """
        moved = (
            self.db.query(Chat)
            .filter(Chat.id == chat.id, Chat.state == from_state)
            .update({Chat.state: to_state, Chat.updated_at: utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(chat)
        return moved > 0

    def delete(self, chat: Chat) -> None:
        self.db.delete(chat)
        self.db.commit()

    # ------------------------
    # Messages
    # ------------------------
    def add_message(self, chat_id: int, role: str, content: str, type: str,
                    tokens_used: Optional[int] = None, degraded: bool = False) -> Message:
        message = Message(
            chat_id=chat_id,
            role=role,
            content=content,
            type=type,
            tokens_used=tokens_used,
            degraded=degraded,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def get_message(self, message_id: int) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id).first()

    def list_messages(self, chat_id: int) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(Message.chat_id == chat_id)
            .order_by(Message.created_at, Message.id)
            .all()
        )

    def last_message(self, chat_id: int) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(Message.chat_id == chat_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .first()
        )

    def recent_messages(self, chat_id: int, limit: int, before_id: Optional[int] = None) -> List[Message]:
        """Return up to `limit` messages in chronological order.

        When `before_id` is given only messages inserted before it are
        considered, which is how the history for a reply is built.
        """
        if limit <= 0:
            return []
        query = self.db.query(Message).filter(Message.chat_id == chat_id)
        if before_id is not None:
            query = query.filter(Message.id < before_id)
        newest_first = (
            query.order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(newest_first))
