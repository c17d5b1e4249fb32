# oracyn/services/chart_service.py
"""
Chart CRUD and AI chart generation.

`data` and `config` are stored as JSON text; callers pass and receive
plain Python structures.
"""

import json
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from oracyn.core.errors import NotFound, UpstreamUnavailable, ValidationFailed
from oracyn.core.logging import get_logger
from oracyn.db.models import Chart, ChatState
from oracyn.repositories.chart_repository import ChartRepository
from oracyn.repositories.chat_repository import ChatRepository
from oracyn.services.ai_client import AIServiceError

LOGGER = get_logger(__name__)

DEFAULT_CREATED_FROM = "Unknown"


class ChartService:
    def __init__(self, db: Session, ai_client):
        self.db = db
        self.ai_client = ai_client
        self.charts = ChartRepository(db)
        self.chats = ChatRepository(db)

    def _owned_chat(self, chat_id: int, user_id: int):
        chat = self.chats.get_owned(chat_id, user_id)
        if chat is None:
            raise NotFound("Chat not found", code="CHAT_NOT_FOUND")
        return chat

    def get(self, chart_id: int, user_id: int) -> Chart:
        chart = self.charts.get_owned(chart_id, user_id)
        if chart is None:
            raise NotFound("Chart not found", code="CHART_NOT_FOUND")
        return chart

    def list_for_user(self, user_id: int) -> List[Chart]:
        return self.charts.list_for_user(user_id)

    def list_for_chat(self, chat_id: int, user_id: int) -> List[Chart]:
        chat = self._owned_chat(chat_id, user_id)
        return self.charts.list_for_chat(chat.id, user_id)

    def create(self, chat_id: int, user_id: int, type: str, label: str, data: Any,
               config: Optional[Dict[str, Any]] = None, created_from: Optional[str] = None,
               tokens_used: Optional[int] = None) -> Chart:
        if not type or not label or data is None:
            raise ValidationFailed("Missing required chart fields")
        chat = self._owned_chat(chat_id, user_id)
        return self.charts.create(
            chat_id=chat.id,
            user_id=user_id,
            type=type,
            label=label,
            data=json.dumps(data),
            config=json.dumps(config or {}),
            created_from=created_from or DEFAULT_CREATED_FROM,
            tokens_used=tokens_used,
        )

    def update(self, chart_id: int, user_id: int, label: Optional[str] = None,
               data: Any = None, config: Optional[Dict[str, Any]] = None) -> Chart:
        chart = self.get(chart_id, user_id)
        changes = {}
        if label is not None:
            changes["label"] = label
        if data is not None:
            changes["data"] = json.dumps(data)
        if config is not None:
            changes["config"] = json.dumps(config)
        return self.charts.update(chart, **changes)

    def delete(self, chart_id: int, user_id: int) -> None:
        self.charts.delete(self.get(chart_id, user_id))

    def generate(self, chat_id: int, caller_id: int, prompt: str, chart_type: str = "bar") -> Chart:
        """
        Ask the AI service for a chart and store it.

        Unlike chat replies there is no fallback: a failed generation is
        reported to the caller and nothing is stored.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationFailed("Prompt required")
        chat = self._owned_chat(chat_id, caller_id)

        try:
            generated = self.ai_client.generate_chart(prompt, chat.id, chart_type)
        except AIServiceError as e:
            LOGGER.warning(f"Chart generation for chat {chat.id} failed ({e.kind}): {e}")
            raise UpstreamUnavailable("Chart generation is temporarily unavailable") from e

        chart = self.charts.create(
            chat_id=chat.id,
            user_id=caller_id,
            type=generated.type,
            label=_label_for(prompt),
            data=json.dumps(generated.data),
            config=json.dumps(generated.config),
            created_from=prompt,
            tokens_used=generated.tokens_used,
        )
        self.chats.touch(chat, state=ChatState.VISUALIZE.value)
        return chart


def _label_for(prompt: str) -> str:
    first_line = prompt.splitlines()[0].strip()
    return first_line[:80] or "Chart"
