"""
Authentication API tests
"""
import pytest
from httpx import AsyncClient

from app.core.rate_limiter import limiter
from app.core.security import create_refresh_token, create_access_token
from app.models.user import UserRole


API = "/api/v1/auth"
TEST_PASSWORD = "testpassword123"


class TestRegister:

    async def test_register_creates_guest(self, client: AsyncClient):
        response = await client.post(f"{API}/register", json={
            "email": "New.User@Example.com",
            "password": "supersecret1",
            "first_name": "New",
            "last_name": "User",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new.user@example.com"
        assert data["role"] == "guest"
        assert data["role_level"] == 1
        assert data["full_name"] == "New User"
        assert "hashed_password" not in data

    async def test_register_duplicate_email(self, client: AsyncClient, admin_user):
        response = await client.post(f"{API}/register", json={
            "email": "admin@example.com",
            "password": "supersecret1",
        })

        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    async def test_register_short_password(self, client: AsyncClient):
        response = await client.post(f"{API}/register", json={
            "email": "short@example.com",
            "password": "short",
        })

        assert response.status_code == 422


class TestLogin:

    async def test_login_success(self, client: AsyncClient, admin_user):
        response = await client.post(f"{API}/login", json={
            "email": "admin@example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["role"] == "admin"

    async def test_login_is_case_insensitive_on_email(self, client: AsyncClient, admin_user):
        response = await client.post(f"{API}/login", json={
            "email": "ADMIN@example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 200

    async def test_login_wrong_password(self, client: AsyncClient, admin_user):
        response = await client.post(f"{API}/login", json={
            "email": "admin@example.com",
            "password": "wrong-password",
        })

        assert response.status_code == 401

    async def test_login_unknown_user(self, client: AsyncClient):
        response = await client.post(f"{API}/login", json={
            "email": "nobody@example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 401

    async def test_login_inactive_user(self, client: AsyncClient, make_user):
        await make_user(UserRole.EMPLOYEE, email="inactive@example.com", is_active=False)

        response = await client.post(f"{API}/login", json={
            "email": "inactive@example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 403

    async def test_login_is_audited(self, client: AsyncClient, admin_user, admin_headers):
        await client.post(f"{API}/login", json={"email": "admin@example.com", "password": TEST_PASSWORD})

        response = await client.get("/api/v1/audit/logs?action=LOGIN", headers=admin_headers)

        assert response.json()["total"] == 1


class TestTokens:

    async def test_me(self, client: AsyncClient, client_user, client_headers):
        response = await client.get(f"{API}/me", headers=client_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "client@example.com"
        assert response.json()["role"] == "client"

    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get(f"{API}/me")

        assert response.status_code in (401, 403)

    async def test_me_with_refresh_token_is_rejected(self, client: AsyncClient, client_user):
        token = create_refresh_token({"sub": str(client_user.id)})

        response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    async def test_me_with_malformed_subject(self, client: AsyncClient):
        token = create_access_token({"sub": "not-a-uuid"})

        response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    async def test_refresh(self, client: AsyncClient, client_user):
        token = create_refresh_token({"sub": str(client_user.id)})

        response = await client.post(f"{API}/refresh", json={"refresh_token": token})

        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_refresh_rejects_access_token(self, client: AsyncClient, client_user):
        token = create_access_token({"sub": str(client_user.id)})

        response = await client.post(f"{API}/refresh", json={"refresh_token": token})

        assert response.status_code == 401

    async def test_logout(self, client: AsyncClient, client_user, client_headers):
        response = await client.post(f"{API}/logout", headers=client_headers)

        assert response.status_code == 200
        assert response.json()["success"] is True


class TestChangePassword:

    async def test_change_password(self, client: AsyncClient, client_user, client_headers):
        response = await client.post(f"{API}/change-password", headers=client_headers, json={
            "current_password": TEST_PASSWORD,
            "new_password": "brand-new-password",
        })
        assert response.status_code == 200

        login = await client.post(f"{API}/login", json={
            "email": "client@example.com",
            "password": "brand-new-password",
        })
        assert login.status_code == 200

    async def test_change_password_wrong_current(self, client: AsyncClient, client_user, client_headers):
        response = await client.post(f"{API}/change-password", headers=client_headers, json={
            "current_password": "not-it-at-all",
            "new_password": "brand-new-password",
        })

        assert response.status_code == 400


class TestRateLimit:

    @pytest.fixture
    def limits_enforced(self, monkeypatch):
        monkeypatch.setattr(limiter, "enabled", True)
        limiter.reset()
        yield limiter
        limiter.reset()

    async def test_login_is_throttled(self, client: AsyncClient, admin_user, limits_enforced):
        for _ in range(5):
            response = await client.post(f"{API}/login", json={"email": "admin@example.com", "password": "wrong-password"})
            assert response.status_code == 401

        response = await client.post(f"{API}/login", json={"email": "admin@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 429
        assert response.headers["retry-after"] == "60"
        error = response.json()["error"]
        assert error["code"] == "RATE_LIMIT_EXCEEDED"
        assert error["details"]["retry_after_seconds"] == 60

    async def test_limits_are_off_in_tests(self, client: AsyncClient, admin_user):
        for _ in range(7):
            response = await client.post(f"{API}/login", json={"email": "admin@example.com", "password": "wrong-password"})

        assert response.status_code == 401
