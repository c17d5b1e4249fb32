"""Tests for settings, storage backends and database setup."""

from pathlib import Path

import pytest
from sqlalchemy import inspect

from oracyn.core.config import Settings
from oracyn.db.engine import build_engine
from oracyn.services.storage import (
    InlineStorage,
    LocalStorage,
    build_object_key,
    build_storage,
)
from scripts import init_db


class TestSettings:
    def test_environment_is_read(self, monkeypatch) -> None:
        monkeypatch.setenv("MESSAGE_MODE", "ASYNC")
        monkeypatch.setenv("CORS_ORIGINS", "https://app.oracyn.io, https://admin.oracyn.io")

        settings = Settings()

        assert settings.MESSAGE_MODE == "async"
        assert settings.CORS_ORIGINS == ["https://app.oracyn.io", "https://admin.oracyn.io"]

    def test_overrides_win(self) -> None:
        assert Settings(CHAT_HISTORY_LIMIT=3).CHAT_HISTORY_LIMIT == 3

    def test_unknown_override(self) -> None:
        with pytest.raises(AttributeError):
            Settings(NOT_A_SETTING=1)

    def test_invalid_mode(self) -> None:
        with pytest.raises(ValueError):
            Settings(INGESTION_MODE="eventually")

    def test_service_secret_falls_back_to_jwt_secret(self) -> None:
        assert Settings(JWT_SECRET="abc", AI_SERVICE_SECRET=None).ai_service_secret == "abc"


class TestStorage:
    def test_object_key_layout(self) -> None:
        key = build_object_key(3, 9, "C:\\reports\\q4.pdf")

        user, chat, name = key.split("/")
        assert (user, chat) == ("3", "9")
        stamp, _, base = name.partition("_")
        assert stamp.isdigit()
        assert base == "q4.pdf"

    def test_local_storage(self, tmp_path: Path) -> None:
        storage = LocalStorage(tmp_path)

        locator = storage.save("1/2/123_q4.pdf", b"bytes")

        # The locator is the object key, not a host path
        assert locator == "1/2/123_q4.pdf"
        assert (tmp_path / "1" / "2" / "123_q4.pdf").read_bytes() == b"bytes"
        storage.delete(locator)
        assert not (tmp_path / locator).exists()
        # Deleting twice is harmless
        storage.delete(locator)

    def test_inline_storage_keeps_nothing(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        storage = InlineStorage()

        locator = storage.save("1/2/123_q4.pdf", b"bytes")

        assert locator == "inline://1/2/123_q4.pdf"
        assert list(tmp_path.iterdir()) == []
        storage.delete(locator)

    def test_build_storage(self, tmp_path: Path) -> None:
        assert isinstance(build_storage(Settings(STORAGE_BACKEND="inline")), InlineStorage)
        local = build_storage(Settings(STORAGE_BACKEND="local", DATA_DIR=tmp_path))
        assert isinstance(local, LocalStorage)
        assert local.base_dir == tmp_path


def test_init_db_creates_tables(tmp_path: Path, monkeypatch) -> None:
    database = tmp_path / "oracyn.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{database}")

    init_db.main()

    tables = set(inspect(build_engine(f"sqlite:///{database}")).get_table_names())
    assert {"users", "chats", "messages", "documents", "charts"} <= tables
