"""Tests for per-user usage statistics."""

from unittest.mock import Mock

from fastapi.testclient import TestClient

from oracyn.services.ai_client import AIServiceError

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<\n/Type /Catalog\n>>\nendobj\n"


def test_empty_account(client: TestClient, auth_headers) -> None:
    response = client.get("/api/stats", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"chats": 0, "documents": 0, "charts": 0, "tokens_used": 0}


def test_counts_and_tokens(client: TestClient, auth_headers, chat, mock_ai_client: Mock) -> None:
    url = f"/api/chats/{chat['id']}/messages"
    client.post(url, json={"content": "summarize"}, headers=auth_headers)
    # A fallback reply carries no token count
    mock_ai_client.answer_query.side_effect = AIServiceError("timed out", "timeout")
    client.post(url, json={"content": "again"}, headers=auth_headers)
    client.post(
        "/api/charts/generate",
        json={"chat_id": chat["id"], "prompt": "Revenue per quarter"},
        headers=auth_headers,
    )
    client.post(
        f"/api/chats/{chat['id']}/upload",
        files={"file": ("q4.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers,
    )

    response = client.get("/api/stats", headers=auth_headers)

    assert response.status_code == 200
    # 12 tokens for the answered message, 30 for the generated chart
    assert response.json() == {"chats": 1, "documents": 1, "charts": 1, "tokens_used": 42}


def test_other_users_activity_is_not_counted(client: TestClient, chat, auth_headers, other_headers) -> None:
    client.post(f"/api/chats/{chat['id']}/messages", json={"content": "summarize"}, headers=auth_headers)

    response = client.get("/api/stats", headers=other_headers)

    assert response.json() == {"chats": 0, "documents": 0, "charts": 0, "tokens_used": 0}


def test_requires_authentication(client: TestClient) -> None:
    response = client.get("/api/stats")

    assert response.status_code == 401
    assert response.json()["code"] == "NO_TOKEN"
