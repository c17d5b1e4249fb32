"""Tests for chat CRUD endpoints."""

from fastapi.testclient import TestClient

from oracyn.db.models import Chat, Message


class TestChatCrud:
    def test_create_chat_defaults(self, client: TestClient, auth_headers) -> None:
        response = client.post("/api/chats", json={"title": "Q4 Report"}, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Q4 Report"
        assert data["state"] == "upload"
        assert data["status"] == "none"

    def test_default_titles_are_suffixed(self, client: TestClient, auth_headers) -> None:
        titles = [
            client.post("/api/chats", json={}, headers=auth_headers).json()["title"]
            for _ in range(3)
        ]
        assert titles == ["New Chat", "New Chat (2)", "New Chat (3)"]

    def test_explicit_duplicate_title_is_conflict(self, client: TestClient, auth_headers, chat) -> None:
        response = client.post("/api/chats", json={"title": "Q4 Report"}, headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_TITLE"

    def test_same_title_for_different_users(self, client: TestClient, chat, other_headers) -> None:
        response = client.post("/api/chats", json={"title": "Q4 Report"}, headers=other_headers)
        assert response.status_code == 201

    def test_list_chats_only_returns_own(self, client: TestClient, auth_headers, chat, other_headers) -> None:
        client.post("/api/chats", json={"title": "Someone else"}, headers=other_headers)

        response = client.get("/api/chats", headers=auth_headers)
        assert response.status_code == 200
        assert [c["title"] for c in response.json()] == ["Q4 Report"]

    def test_list_chats_includes_last_message(self, client: TestClient, auth_headers, chat) -> None:
        client.post(f"/api/chats/{chat['id']}/messages", json={"content": "summarize"}, headers=auth_headers)

        summary = client.get("/api/chats", headers=auth_headers).json()[0]
        assert summary["last_message"]["role"] == "assistant"
        assert summary["last_message"]["content"] == "ok"
        assert summary["documents"] == []

    def test_update_chat(self, client: TestClient, auth_headers, chat) -> None:
        response = client.put(
            f"/api/chats/{chat['id']}",
            json={"title": "Q4 Report (final)", "status": "starred"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Q4 Report (final)"
        assert response.json()["status"] == "starred"

    def test_update_to_taken_title_is_conflict(self, client: TestClient, auth_headers, chat) -> None:
        other = client.post("/api/chats", json={"title": "Budget"}, headers=auth_headers).json()
        response = client.put(f"/api/chats/{other['id']}", json={"title": "Q4 Report"}, headers=auth_headers)
        assert response.status_code == 409

    def test_update_rejects_unknown_status(self, client: TestClient, auth_headers, chat) -> None:
        response = client.put(f"/api/chats/{chat['id']}", json={"status": "pinned"}, headers=auth_headers)
        assert response.status_code == 422

    def test_delete_chat_cascades(self, client: TestClient, auth_headers, chat, session_factory) -> None:
        client.post(f"/api/chats/{chat['id']}/messages", json={"content": "summarize"}, headers=auth_headers)

        response = client.delete(f"/api/chats/{chat['id']}", headers=auth_headers)
        assert response.status_code == 200

        assert client.get(f"/api/chats/{chat['id']}", headers=auth_headers).status_code == 404
        with session_factory() as db:
            assert db.query(Message).filter(Message.chat_id == chat["id"]).count() == 0

    def test_requires_authentication(self, client: TestClient) -> None:
        assert client.get("/api/chats").status_code == 401


class TestOwnership:
    """Someone else's chat behaves exactly like a missing one."""

    def test_get_foreign_chat(self, client: TestClient, chat, other_headers) -> None:
        response = client.get(f"/api/chats/{chat['id']}", headers=other_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "CHAT_NOT_FOUND"

    def test_update_foreign_chat(self, client: TestClient, chat, other_headers, session_factory) -> None:
        response = client.put(f"/api/chats/{chat['id']}", json={"title": "Mine now"}, headers=other_headers)

        assert response.status_code == 404
        with session_factory() as db:
            assert db.query(Chat).filter(Chat.id == chat["id"]).one().title == "Q4 Report"

    def test_delete_foreign_chat(self, client: TestClient, chat, other_headers, session_factory) -> None:
        response = client.delete(f"/api/chats/{chat['id']}", headers=other_headers)

        assert response.status_code == 404
        with session_factory() as db:
            assert db.query(Chat).filter(Chat.id == chat["id"]).count() == 1

    def test_missing_chat(self, client: TestClient, auth_headers) -> None:
        assert client.get("/api/chats/9999", headers=auth_headers).status_code == 404

    def test_foreign_chat_messages(self, client: TestClient, auth_headers, chat, other_headers) -> None:
        client.post(f"/api/chats/{chat['id']}/messages", json={"content": "summarize"}, headers=auth_headers)

        response = client.get(f"/api/chats/{chat['id']}/messages", headers=other_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "CHAT_NOT_FOUND"

    def test_foreign_chat_files(self, client: TestClient, chat, other_headers) -> None:
        response = client.get(f"/api/chats/{chat['id']}/files", headers=other_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "CHAT_NOT_FOUND"

    def test_foreign_chat_query_writes_nothing(self, client: TestClient, chat, other_headers,
                                               mock_ai_client, session_factory) -> None:
        response = client.post(
            f"/api/chats/{chat['id']}/query",
            json={"prompt": "What was Q4 revenue?"},
            headers=other_headers,
        )

        assert response.status_code == 404
        assert response.json()["code"] == "CHAT_NOT_FOUND"
        with session_factory() as db:
            assert db.query(Message).filter(Message.chat_id == chat["id"]).count() == 0
        mock_ai_client.answer_query.assert_not_called()
