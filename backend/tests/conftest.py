"""Pytest configuration and shared fixtures."""

from typing import Callable, Dict
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from oracyn.api.deps import get_ai_client
from oracyn.core.config import Settings
from oracyn.db.base import Base
from oracyn.main import create_app
from oracyn.repositories.user_repository import UserRepository
from oracyn.services.ai_client import AIAnswer, AIChart, AIServiceClient

PASSWORD = "Str0ng!Pass"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Isolated configuration: in-memory database, storage under tmp_path.

    Returns:
        Settings: Test settings instance
    """
    return Settings(
        DATABASE_URL="sqlite://",
        DATA_DIR=tmp_path / "data",
        STORAGE_BACKEND="local",
        JWT_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
        AI_SERVICE_SECRET="test-service-secret",
        AI_SERVICE_URL="http://ai.test",
        MESSAGE_MODE="sync",
        INGESTION_MODE="sync",
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    application = create_app(settings)
    Base.metadata.create_all(bind=application.state.engine)
    yield application
    application.dependency_overrides = {}


@pytest.fixture
def mock_ai_client(app: FastAPI) -> Mock:
    """Create mock AI service client wired into the app.

    Returns:
        Mock: Mocked AIServiceClient with successful default answers
    """
    client = Mock(spec=AIServiceClient)
    client.answer_query.return_value = AIAnswer(answer="ok", tokens_used=12)
    client.process_document.return_value = {"success": True}
    client.delete_document.return_value = {}
    client.health_check.return_value = {"status": "healthy"}
    client.generate_chart.return_value = AIChart(
        type="bar",
        data={"labels": ["Q1", "Q2"], "values": [10, 20]},
        config={"title": "Revenue"},
        tokens_used=30,
    )
    app.dependency_overrides[get_ai_client] = lambda: client
    return client


@pytest.fixture
def client(app: FastAPI, mock_ai_client: Mock) -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_factory(app: FastAPI):
    """Opens sessions on the same database the app uses."""
    return app.state.session_factory


@pytest.fixture
def create_user(client: TestClient, session_factory) -> Callable[..., Dict]:
    """Register a user through the API, verified unless asked otherwise."""

    def _create(email: str = "ada@oracyn.io", username: str = "ada",
                password: str = PASSWORD, verified: bool = True) -> Dict:
        response = client.post(
            "/api/auth/register",
            json={
                "email": email,
                "username": username,
                "password": password,
                "confirm_password": password,
            },
        )
        assert response.status_code == 201, response.text
        if verified:
            with session_factory() as db:
                users = UserRepository(db)
                users.update(users.get_by_email(email), is_verified=True)
        return response.json()

    return _create


@pytest.fixture
def login(client: TestClient) -> Callable[..., Dict[str, str]]:
    """Log in and return the Authorization header."""

    def _login(email: str = "ada@oracyn.io", password: str = PASSWORD) -> Dict[str, str]:
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
def auth_headers(create_user, login) -> Dict[str, str]:
    create_user()
    return login()


@pytest.fixture
def other_headers(create_user, login) -> Dict[str, str]:
    """A second, unrelated user."""
    create_user(email="grace@oracyn.io", username="grace")
    return login("grace@oracyn.io")


@pytest.fixture
def chat(client: TestClient, auth_headers: Dict[str, str]) -> Dict:
    response = client.post("/api/chats", json={"title": "Q4 Report"}, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()
