# main.py
"""
Application entry point for the Oracyn API.

This module:
- Builds the FastAPI application from a Settings instance
- Creates the shared objects (database engine, AI client, storage,
  per-chat locks, background task tracker) and keeps them on `app.state`
- Configures global middleware (CORS) and error rendering
- Registers all API routers

Run with: uvicorn oracyn.main:app
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from oracyn.api.auth import router as auth_router
from oracyn.api.charts import router as charts_router
from oracyn.api.chats import router as chats_router
from oracyn.api.health import router as health_router
from oracyn.api.internal import router as internal_router
from oracyn.api.stats import router as stats_router
from oracyn.core.config import Settings
from oracyn.core.errors import register_exception_handlers
from oracyn.core.logging import configure_logging
from oracyn.db import models  # noqa: F401 (registers the ORM models)
from oracyn.db.base import Base
from oracyn.db.engine import build_engine, build_session_factory
from oracyn.services.ai_client import AIServiceClient
from oracyn.services.background import ChatLocks, TaskTracker
from oracyn.services.storage import build_storage


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    logger = configure_logging(settings.LOG_LEVEL)

    engine = build_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.AUTO_CREATE_TABLES:
            Base.metadata.create_all(bind=engine)
        logger.info(
            f"{settings.APP_NAME} {settings.APP_VERSION} started "
            f"(environment={settings.ENVIRONMENT}, messages={settings.MESSAGE_MODE}, "
            f"ingestion={settings.INGESTION_MODE}, storage={settings.STORAGE_BACKEND})"
        )
        yield
        engine.dispose()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.ai_client = AIServiceClient.from_settings(settings)
    app.state.storage = build_storage(settings)
    app.state.chat_locks = ChatLocks()
    app.state.task_tracker = TaskTracker()

    # -----------------------------------------------------------------
    # CORS Configuration
    # -----------------------------------------------------------------
    # Credentials are allowed for the refresh cookie; browsers reject a
    # wildcard origin in that case, so production sets CORS_ORIGINS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    # -----------------------------------------------------------------
    # API Routers
    # -----------------------------------------------------------------
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(chats_router)
    app.include_router(charts_router)
    app.include_router(internal_router)
    app.include_router(stats_router)

    return app


app = create_app()
