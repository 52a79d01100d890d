"""
Unit tests for the authentication dependencies and the auth/users routers.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from app.core.auth import ACCESS_TOKEN_COOKIE
from app.core.config import settings
from app.core.database import get_db
from app.core.security import create_access_token, create_refresh_token, decode_token
from app.modules.auth.router import router as auth_router
from app.modules.auth.schemas import LoginResponse, UserResponse
from app.modules.auth.service import InvalidCredentialsError
from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository
from app.modules.users.router import router as users_router


def _make_user(role=UserRole.STUDENT, **overrides):
    user = MagicMock(spec=User)
    user.id = uuid4()
    user.username = f"{role.value}1"
    user.email = f"{role.value}@example.com"
    user.phone = "01112345678"
    user.role = role
    user.grade = None
    user.is_active = True
    user.is_verified = True
    user.last_login_at = None
    user.password_changed_at = None
    for key, value in overrides.items():
        setattr(user, key, value)
    return user


@pytest.fixture
def accounts():
    """Registry of users returned by UserRepository.get_by_id."""
    return {}


@pytest.fixture
def client(accounts):
    app = FastAPI()
    app.include_router(auth_router, prefix="/auth")
    app.include_router(users_router, prefix="/users")

    async def override_get_db():
        yield AsyncMock()

    async def get_by_id(db, user_id):
        return accounts.get(user_id)

    app.dependency_overrides[get_db] = override_get_db
    with (
        patch.object(UserRepository, "get_by_id", side_effect=get_by_id),
        patch("app.core.rate_limit.check_rate_limit", new_callable=AsyncMock, return_value=True),
    ):
        yield TestClient(app)


def _bearer(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject=str(user.id))}"}


class TestGetCurrentUser:
    """Tests for get_current_user via GET /auth/me."""

    def test_me_with_bearer_token(self, client, accounts):
        user = _make_user()
        accounts[user.id] = user

        response = client.get("/auth/me", headers=_bearer(user))

        assert response.status_code == 200
        assert response.json()["id"] == str(user.id)
        assert "password_hash" not in response.json()

    def test_me_with_cookie(self, client, accounts):
        user = _make_user()
        accounts[user.id] = user
        client.cookies.set(ACCESS_TOKEN_COOKIE, create_access_token(subject=str(user.id)))

        response = client.get("/auth/me")

        assert response.status_code == 200

    def test_me_without_token(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "NOT_AUTHENTICATED"

    def test_me_with_invalid_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "INVALID_TOKEN"

    def test_me_with_refresh_token(self, client, accounts):
        user = _make_user()
        accounts[user.id] = user
        token = create_refresh_token(subject=str(user.id))

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "INVALID_TOKEN_TYPE"

    def test_me_with_token_missing_type_claim(self, client, accounts):
        user = _make_user()
        accounts[user.id] = user
        token = jwt.encode(
            {"sub": str(user.id), "exp": datetime.now(UTC) + timedelta(minutes=5)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "INVALID_TOKEN_TYPE"

    def test_me_with_malformed_subject(self, client):
        token = create_access_token(subject="not-a-uuid")

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["detail"]["error"] == "INVALID_TOKEN_CLAIMS"

    def test_me_for_deleted_user(self, client):
        response = client.get("/auth/me", headers=_bearer(_make_user()))

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "USER_NOT_FOUND"

    def test_me_for_inactive_user(self, client, accounts):
        user = _make_user(is_active=False)
        accounts[user.id] = user

        response = client.get("/auth/me", headers=_bearer(user))

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ACCOUNT_INACTIVE"

    def test_token_issued_before_password_change_is_rejected(self, client, accounts):
        user = _make_user(password_changed_at=datetime.now(UTC) + timedelta(seconds=5))
        accounts[user.id] = user

        response = client.get("/auth/me", headers=_bearer(user))

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "PASSWORD_CHANGED"

    def test_password_change_within_same_second_revokes_token(self, client, accounts):
        user = _make_user()
        accounts[user.id] = user
        token = create_access_token(subject=str(user.id))
        issued_at = datetime.fromtimestamp(decode_token(token)["iat"], UTC)
        user.password_changed_at = issued_at + timedelta(milliseconds=300)

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "PASSWORD_CHANGED"

    def test_token_issued_after_password_change_is_accepted(self, client, accounts):
        user = _make_user(password_changed_at=datetime.now(UTC) - timedelta(seconds=1))
        accounts[user.id] = user

        response = client.get("/auth/me", headers=_bearer(user))

        assert response.status_code == 200


class TestRequireRoles:
    """Tests for require_roles via the users router."""

    def test_admin_can_fetch_user(self, client, accounts):
        admin = _make_user(UserRole.ADMIN)
        student = _make_user()
        accounts[admin.id] = admin
        accounts[student.id] = student

        response = client.get(f"/users/{student.id}", headers=_bearer(admin))

        assert response.status_code == 200
        assert response.json()["email"] == student.email

    def test_non_admin_is_forbidden(self, client, accounts):
        teacher = _make_user(UserRole.TEACHER)
        accounts[teacher.id] = teacher

        response = client.get(f"/users/{teacher.id}", headers=_bearer(teacher))

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "FORBIDDEN_ROLE"

    def test_unknown_user_returns_404(self, client, accounts):
        admin = _make_user(UserRole.ADMIN)
        accounts[admin.id] = admin

        response = client.get(f"/users/{uuid4()}", headers=_bearer(admin))

        assert response.status_code == 404

    def test_admin_deactivates_user(self, client, accounts):
        admin = _make_user(UserRole.ADMIN)
        student = _make_user()
        accounts[admin.id] = admin
        accounts[student.id] = student

        response = client.patch(
            f"/users/{student.id}/status",
            json={"is_active": False},
            headers=_bearer(admin),
        )

        assert response.status_code == 200
        assert student.is_active is False

    def test_admin_cannot_deactivate_self(self, client, accounts):
        admin = _make_user(UserRole.ADMIN)
        accounts[admin.id] = admin

        response = client.patch(
            f"/users/{admin.id}/status",
            json={"is_active": False},
            headers=_bearer(admin),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "CANNOT_DEACTIVATE_SELF"
        assert admin.is_active is True


class TestAuthEndpoints:
    """Tests for login/logout cookie handling."""

    def test_login_sets_http_only_cookie(self, client):
        user = _make_user()
        result = LoginResponse(
            access_token="access-token",
            refresh_token="refresh-token",
            user=UserResponse.model_validate(user),
        )

        with patch(
            "app.modules.auth.router.service.login",
            new_callable=AsyncMock,
            return_value=result,
        ):
            response = client.post(
                "/auth/login",
                json={"email": user.email, "password": "secret1"},
            )

        assert response.status_code == 200
        assert response.json()["access_token"] == "access-token"
        set_cookie = response.headers["set-cookie"]
        assert f"{ACCESS_TOKEN_COOKIE}=access-token" in set_cookie
        assert "httponly" in set_cookie.lower()

    def test_login_invalid_credentials(self, client):
        with patch(
            "app.modules.auth.router.service.login",
            new_callable=AsyncMock,
            side_effect=InvalidCredentialsError(),
        ):
            response = client.post(
                "/auth/login",
                json={"email": "student@example.com", "password": "wrong"},
            )

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "INVALID_CREDENTIALS"

    def test_login_rate_limited(self, client):
        with patch(
            "app.core.rate_limit.check_rate_limit",
            new_callable=AsyncMock,
            return_value=False,
        ):
            response = client.post(
                "/auth/login",
                json={"email": "student@example.com", "password": "secret1"},
            )

        assert response.status_code == 429

    def test_logout_clears_cookie(self, client):
        response = client.post("/auth/logout")

        assert response.status_code == 200
        set_cookie = response.headers["set-cookie"].lower()
        assert set_cookie.startswith(f"{ACCESS_TOKEN_COOKIE}=")
        assert "max-age=0" in set_cookie

    def test_register_validation_rejects_bad_phone(self, client):
        response = client.post(
            "/auth/register",
            json={
                "username": "student1",
                "email": "student@example.com",
                "phone": "0991234567",
                "password": "secret1",
                "confirm_password": "secret1",
            },
        )

        assert response.status_code == 422
