"""Per-user usage aggregates."""

from typing import Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from oracyn.db.models import Chart, Chat, Document, Message, MessageRole


class StatsRepository:
    def __init__(self, db: Session):
        self.db = db

    def for_user(self, user_id: int) -> Dict[str, int]:
        """Counts of the user's chats, documents and charts, plus tokens spent.

        Tokens are the assistant replies' `tokens_used` plus the charts'.
        Rows without a token count add nothing.
        """
        chats = self.db.query(func.count(Chat.id)).filter(Chat.user_id == user_id).scalar()
        documents = self.db.query(func.count(Document.id)).filter(Document.user_id == user_id).scalar()
        charts = self.db.query(func.count(Chart.id)).filter(Chart.user_id == user_id).scalar()

        message_tokens = (
            self.db.query(func.coalesce(func.sum(Message.tokens_used), 0))
            .join(Chat, Message.chat_id == Chat.id)
            .filter(Chat.user_id == user_id, Message.role == MessageRole.ASSISTANT.value)
            .scalar()
        )
        chart_tokens = (
            self.db.query(func.coalesce(func.sum(Chart.tokens_used), 0))
            .filter(Chart.user_id == user_id)
            .scalar()
        )

        return {
            "chats": chats or 0,
            "documents": documents or 0,
            "charts": charts or 0,
            "tokens_used": int(message_tokens or 0) + int(chart_tokens or 0),
        }
