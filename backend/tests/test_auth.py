"""Tests for the authentication routes and request authentication."""

from datetime import timedelta

from fastapi.testclient import TestClient

from oracyn.core.security import create_access_token
from oracyn.db.models import utcnow
from oracyn.repositories.user_repository import UserRepository
from conftest import PASSWORD


def _register_payload(**overrides):
    payload = {
        "email": "Ada@Oracyn.io",
        "username": "Ada_L",
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    }
    payload.update(overrides)
    return payload


class TestRegistration:
    def test_register_lowercases_identity(self, client: TestClient) -> None:
        response = client.post("/api/auth/register", json=_register_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "ada@oracyn.io"
        assert data["username"] == "ada_l"
        assert data["is_verified"] is False
        assert "hashed_password" not in data
        assert "verification_token" not in data

    def test_register_rejects_weak_password(self, client: TestClient) -> None:
        response = client.post(
            "/api/auth/register",
            json=_register_payload(password="weakpass", confirm_password="weakpass"),
        )
        assert response.status_code == 422

    def test_register_rejects_mismatched_confirmation(self, client: TestClient) -> None:
        response = client.post("/api/auth/register", json=_register_payload(confirm_password="Other!Pass1"))
        assert response.status_code == 422

    def test_register_rejects_bad_username(self, client: TestClient) -> None:
        response = client.post("/api/auth/register", json=_register_payload(username="no spaces"))
        assert response.status_code == 422

    def test_duplicate_email_is_conflict(self, client: TestClient) -> None:
        client.post("/api/auth/register", json=_register_payload())
        response = client.post("/api/auth/register", json=_register_payload(username="someone"))

        assert response.status_code == 409
        assert response.json()["code"] == "EMAIL_EXISTS"

    def test_duplicate_username_is_conflict(self, client: TestClient) -> None:
        client.post("/api/auth/register", json=_register_payload())
        response = client.post("/api/auth/register", json=_register_payload(email="other@oracyn.io"))

        assert response.status_code == 409
        assert response.json()["code"] == "USERNAME_EXISTS"


class TestLogin:
    def test_login_returns_tokens_and_sets_cookie(self, client: TestClient, create_user) -> None:
        create_user()
        response = client.post("/api/auth/login", json={"email": "ada@oracyn.io", "password": PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 15 * 60
        assert data["user"]["username"] == "ada"
        assert data["refresh_token"]
        assert "refreshToken" in response.cookies

    def test_wrong_password(self, client: TestClient, create_user) -> None:
        create_user()
        response = client.post("/api/auth/login", json={"email": "ada@oracyn.io", "password": "Wr0ng!Pass"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"
        assert response.headers["www-authenticate"] == "Bearer"

    def test_unknown_email(self, client: TestClient) -> None:
        response = client.post("/api/auth/login", json={"email": "nobody@oracyn.io", "password": PASSWORD})
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"


class TestAuthentication:
    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["code"] == "NO_TOKEN"

    def test_garbage_token(self, client: TestClient) -> None:
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_expired_token(self, client: TestClient, create_user, session_factory, settings) -> None:
        create_user()
        settings.ACCESS_TOKEN_EXPIRE_MINUTES = -1
        with session_factory() as db:
            token = create_access_token(UserRepository(db).get_by_email("ada@oracyn.io"), settings)

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["code"] == "TOKEN_EXPIRED"

    def test_refresh_token_is_not_an_access_token(self, client: TestClient, create_user) -> None:
        create_user()
        login = client.post("/api/auth/login", json={"email": "ada@oracyn.io", "password": PASSWORD})
        refresh_token = login.json()["refresh_token"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh_token}"})
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_me(self, client: TestClient, auth_headers) -> None:
        response = client.get("/api/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["email"] == "ada@oracyn.io"


class TestRefresh:
    def test_refresh_from_body(self, client: TestClient, create_user) -> None:
        create_user()
        login = client.post("/api/auth/login", json={"email": "ada@oracyn.io", "password": PASSWORD})

        response = client.post("/api/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
        assert response.status_code == 200
        token = response.json()["access_token"]
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 200

    def test_invalid_refresh_token_is_terminal(self, client: TestClient) -> None:
        response = client.post("/api/auth/refresh", json={"refresh_token": "forged"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_REFRESH_TOKEN"
        assert "refreshToken=" in response.headers.get("set-cookie", "")

    def test_missing_refresh_token(self, client: TestClient) -> None:
        client.cookies.clear()
        response = client.post("/api/auth/refresh")
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_REFRESH_TOKEN"


class TestProfile:
    def test_update_profile(self, client: TestClient, auth_headers) -> None:
        response = client.put(
            "/api/auth/profile",
            json={"first_name": "Ada", "profession": "Analyst"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["first_name"] == "Ada"
        assert response.json()["profession"] == "Analyst"

    def test_change_password(self, client: TestClient, auth_headers) -> None:
        new_password = "N3w!Password"
        response = client.put(
            "/api/auth/password",
            json={
                "current_password": PASSWORD,
                "new_password": new_password,
                "confirm_new_password": new_password,
            },
            headers=auth_headers,
        )
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"email": "ada@oracyn.io", "password": new_password})
        assert login.status_code == 200

    def test_change_password_wrong_current(self, client: TestClient, auth_headers) -> None:
        response = client.put(
            "/api/auth/password",
            json={
                "current_password": "Wr0ng!Pass",
                "new_password": "N3w!Password",
                "confirm_new_password": "N3w!Password",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PASSWORD"


class TestVerificationAndReset:
    def test_verify_email(self, client: TestClient, create_user, session_factory) -> None:
        create_user(verified=False)
        with session_factory() as db:
            token = UserRepository(db).get_by_email("ada@oracyn.io").verification_token

        response = client.post("/api/auth/verify-email", json={"token": token})
        assert response.status_code == 200

        with session_factory() as db:
            user = UserRepository(db).get_by_email("ada@oracyn.io")
            assert user.is_verified is True
            assert user.verification_token is None

    def test_expired_verification_token(self, client: TestClient, create_user, session_factory) -> None:
        create_user(verified=False)
        with session_factory() as db:
            users = UserRepository(db)
            user = users.get_by_email("ada@oracyn.io")
            token = user.verification_token
            users.update(user, verification_token_expires=utcnow() - timedelta(minutes=1))

        response = client.post("/api/auth/verify-email", json={"token": token})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_forgot_password_does_not_reveal_accounts(self, client: TestClient) -> None:
        response = client.post("/api/auth/forgot-password", json={"email": "nobody@oracyn.io"})
        assert response.status_code == 200

    def test_reset_password(self, client: TestClient, create_user, session_factory) -> None:
        create_user()
        client.post("/api/auth/forgot-password", json={"email": "ada@oracyn.io"})
        with session_factory() as db:
            token = UserRepository(db).get_by_email("ada@oracyn.io").reset_token
        assert token

        new_password = "R3set!Password"
        response = client.post(
            "/api/auth/reset-password",
            json={"token": token, "password": new_password, "confirm_password": new_password},
        )
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"email": "ada@oracyn.io", "password": new_password})
        assert login.status_code == 200

        # One-time token
        replay = client.post(
            "/api/auth/reset-password",
            json={"token": token, "password": new_password, "confirm_password": new_password},
        )
        assert replay.status_code == 400


class TestDeactivation:
    def test_unverified_user_cannot_delete_account(self, client: TestClient, create_user, login) -> None:
        create_user(verified=False)
        response = client.delete("/api/auth/account", headers=login())

        assert response.status_code == 403
        assert response.json()["code"] == "EMAIL_VERIFICATION_REQUIRED"

    def test_deactivation_frees_email_and_username(self, client: TestClient, auth_headers) -> None:
        response = client.delete("/api/auth/account", headers=auth_headers)
        assert response.status_code == 200

        # The old token no longer works
        me = client.get("/api/auth/me", headers=auth_headers)
        assert me.status_code == 401
        assert me.json()["code"] in ("ACCOUNT_DEACTIVATED", "USER_NOT_FOUND")

        again = client.post(
            "/api/auth/register",
            json={"email": "ada@oracyn.io", "username": "ada", "password": PASSWORD, "confirm_password": PASSWORD},
        )
        assert again.status_code == 201

    def test_deactivated_account_cannot_log_in(self, client: TestClient, auth_headers) -> None:
        client.delete("/api/auth/account", headers=auth_headers)
        response = client.post("/api/auth/login", json={"email": "ada@oracyn.io", "password": PASSWORD})
        assert response.status_code == 401
