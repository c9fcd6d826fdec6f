"""Tests for authentication: password hashing, JWT tokens and the auth API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from pms.models.user import User
from pms.services.auth import (
    authenticate_user,
    create_access_token,
    create_user,
    decode_access_token,
    get_user_from_token,
)
from pms.services.roles import GlobalRole
from tests.test_constants import TEST_PASSWORD, TEST_PASSWORD_WRONG


def _make_user(email: str = "admin@example.com", password: str | None = None) -> User:
    """Create a User instance with a hashed password (no DB)."""
    user = User(id=1, email=email, name="Admin")
    user.set_password(password if password is not None else TEST_PASSWORD)
    return user


class TestPasswordVerification:
    def test_correct_password(self):
        user = _make_user(password=TEST_PASSWORD)
        assert user.verify_password(TEST_PASSWORD) is True

    def test_wrong_password(self):
        user = _make_user(password=TEST_PASSWORD)
        assert user.verify_password(TEST_PASSWORD_WRONG) is False

    def test_empty_hash_never_verifies(self):
        user = User(id=2, email="x@example.com", name="X", password_hash="")
        assert user.verify_password(TEST_PASSWORD) is False


class TestAccessToken:
    def test_create_and_decode_token(self):
        token = create_access_token(data={"sub": "admin@example.com"})
        payload = decode_access_token(token)
        assert payload is not None
        assert payload["sub"] == "admin@example.com"
        assert "exp" in payload

    def test_invalid_token_returns_none(self):
        assert decode_access_token("not.a.valid.token") is None

    def test_tampered_token_returns_none(self):
        token = create_access_token(data={"sub": "admin@example.com"})
        assert decode_access_token(token[:-4] + "XXXX") is None


class TestUserService:
    def test_create_user_normalizes_email(self, db: Session) -> None:
        user = create_user(db, "  Boss@Example.com ", "Boss", TEST_PASSWORD, GlobalRole.SUPER_ADMIN)
        assert user.email == "boss@example.com"
        assert user.global_role == "super_admin"

    def test_authenticate(self, db: Session) -> None:
        create_user(db, "boss@example.com", "Boss", TEST_PASSWORD)
        assert authenticate_user(db, "BOSS@example.com", TEST_PASSWORD) is not None
        assert authenticate_user(db, "boss@example.com", TEST_PASSWORD_WRONG) is None
        assert authenticate_user(db, "nobody@example.com", TEST_PASSWORD) is None

    def test_get_user_from_token(self, db: Session) -> None:
        user = create_user(db, "boss@example.com", "Boss", TEST_PASSWORD)
        token = create_access_token(data={"sub": user.email})
        assert get_user_from_token(db, token).id == user.id
        assert get_user_from_token(db, "garbage") is None


@pytest.fixture
def auth_client(db: Session) -> TestClient:
    """TestClient with get_db overridden; real token handling."""
    from pms.db.session import get_db
    from pms.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


class TestAuthApi:
    def test_login_returns_token_and_user(self, db: Session, auth_client: TestClient) -> None:
        create_user(db, "boss@example.com", "Boss", TEST_PASSWORD)
        response = auth_client.post(
            "/api/auth/login", json={"email": "Boss@Example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "boss@example.com"
        assert body["user"]["workspaces"] == []
        assert "access_token" in response.cookies
        payload = decode_access_token(body["access_token"])
        assert payload["sub"] == "boss@example.com"
        assert payload["uid"] == body["user"]["id"]

    def test_login_wrong_password(self, db: Session, auth_client: TestClient) -> None:
        create_user(db, "boss@example.com", "Boss", TEST_PASSWORD)
        response = auth_client.post(
            "/api/auth/login",
            json={"email": "boss@example.com", "password": TEST_PASSWORD_WRONG},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_unknown_email_same_error(self, auth_client: TestClient) -> None:
        response = auth_client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_me_with_bearer_token(self, db: Session, auth_client: TestClient) -> None:
        user = create_user(db, "boss@example.com", "Boss", TEST_PASSWORD)
        token = create_access_token(data={"sub": user.email})
        response = auth_client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        assert response.json()["email"] == "boss@example.com"

    def test_me_lists_workspace_memberships(
        self, db: Session, auth_client: TestClient, team: dict
    ) -> None:
        owner = team["u4"]
        owner.current_workspace_id = team["workspace"].id
        db.commit()
        token = create_access_token(data={"sub": owner.email})
        response = auth_client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["current_workspace_id"] == team["workspace"].id
        assert body["workspaces"] == [{"workspace_id": team["workspace"].id, "role": "owner"}]

    def test_me_without_token_401(self, auth_client: TestClient) -> None:
        assert auth_client.get("/api/auth/me").status_code == 401

    def test_logout_clears_cookie(self, auth_client: TestClient) -> None:
        response = auth_client.post("/api/auth/logout")
        assert response.status_code == 204
        assert 'access_token=""' in response.headers["set-cookie"]
