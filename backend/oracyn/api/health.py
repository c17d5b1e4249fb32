# oracyn/api/health.py
"""
Liveness and status endpoints.

- /health: plain liveness probe for uptime monitoring
- /api/status: configuration summary, database and AI service checks and
  background task counters; includes the caller's id when a valid token is supplied
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oracyn.api.deps import (
    get_ai_client,
    get_current_user_optional,
    get_db,
    get_settings,
    get_task_tracker,
)
from oracyn.core.config import Settings
from oracyn.core.logging import get_logger
from oracyn.db.models import User
from oracyn.services.background import TaskTracker

LOGGER = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/api/status")
def service_status(
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tracker: TaskTracker = Depends(get_task_tracker),
    ai_client=Depends(get_ai_client),
):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        LOGGER.error(f"Database check failed: {e}")
        database = "unavailable"

    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "message_mode": settings.MESSAGE_MODE,
        "ingestion_mode": settings.INGESTION_MODE,
        "storage_backend": settings.STORAGE_BACKEND,
        "database": database,
        "ai_service": ai_client.health_check(),
        "background_tasks": tracker.snapshot(),
        "user_id": current_user.id if current_user else None,
    }
