from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

"""
Database engine and session factory construction.

Nothing here runs at import time: the application factory builds one
engine and one session factory from its settings and hands them to the
request dependencies, so tests can point each app at its own database.
"""


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for `database_url`.

    SQLite needs `check_same_thread=False` because sync endpoints and
    background tasks run in a threadpool; an in-memory SQLite database is
    pinned to a single connection so every session sees the same data.
    """
    if not database_url:
        # Fail fast if database configuration is missing
        raise RuntimeError("DATABASE_URL is not configured")

    is_sqlite = database_url.startswith("sqlite")
    kwargs = {"echo": echo, "future": True}
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)

    if is_sqlite:
        # SQLite only enforces ON DELETE CASCADE with foreign keys switched on
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    """
    SQLAlchemy session factory.

    - autocommit=False ensures explicit transaction control
    - autoflush=False prevents automatic flushes before queries
    - expire_on_commit=False keeps committed rows readable after the
      session that wrote them is closed (background continuations)
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
