"""
OAuth API tests with the provider round trip mocked out
"""
from unittest.mock import AsyncMock

import pytest

from app.core.security import create_oauth_state
from app.models.user import UserRole
from app.modules.oauth import google_oauth, microsoft_oauth, apple_oauth

API = "/api/v1/auth/oauth"


@pytest.fixture
def google_configured(monkeypatch):
    monkeypatch.setattr(google_oauth, "client_id", "google-client")
    monkeypatch.setattr(google_oauth, "client_secret", "google-secret")
    return google_oauth


@pytest.fixture
def nothing_configured(monkeypatch):
    for provider in (google_oauth, microsoft_oauth):
        monkeypatch.setattr(provider, "client_id", "")
    monkeypatch.setattr(apple_oauth, "client_id", "")


def google_profile(**overrides):
    profile = {
        "provider": "google",
        "provider_id": "g-42",
        "email": "viajero@example.com",
        "email_verified": True,
        "given_name": "Viajero",
        "family_name": "Frecuente",
        "avatar_url": "https://example.com/v.png",
    }
    profile.update(overrides)
    return profile


class TestProviders:

    async def test_lists_only_configured(self, client, nothing_configured, google_configured):
        response = await client.get(f"{API}/providers")

        assert response.json() == {"providers": [{"name": "google", "display_name": "Google"}]}

    async def test_url_for_configured_provider(self, client, google_configured):
        response = await client.get(f"{API}/google/url", params={"redirect_to": "/dashboard"})

        assert response.status_code == 200
        body = response.json()
        assert body["provider"] == "google"
        assert body["state"] in body["authorization_url"]

    async def test_url_for_unconfigured_provider(self, client, nothing_configured):
        response = await client.get(f"{API}/microsoft/url")

        assert response.status_code == 503

    async def test_url_for_unknown_provider(self, client):
        response = await client.get(f"{API}/github/url")

        assert response.status_code == 404


class TestCallback:

    async def test_new_user_is_created_as_guest(self, client, google_configured, monkeypatch):
        authenticate = AsyncMock(return_value=google_profile())
        monkeypatch.setattr(google_oauth, "authenticate", authenticate)

        response = await client.post(f"{API}/google/callback", json={
            "code": "auth-code",
            "state": create_oauth_state("google"),
        })

        assert response.status_code == 200
        body = response.json()
        assert body["is_new_user"] is True
        assert body["access_token"]
        assert body["user"]["email"] == "viajero@example.com"
        assert body["user"]["role"] == "guest"
        authenticate.assert_awaited_once_with("auth-code", user=None)

    async def test_existing_account_is_linked(self, client, google_configured, monkeypatch, make_user):
        await make_user(UserRole.EMPLOYEE, email="viajero@example.com")
        monkeypatch.setattr(google_oauth, "authenticate", AsyncMock(return_value=google_profile()))

        response = await client.post(f"{API}/google/callback", json={
            "code": "auth-code",
            "state": create_oauth_state("google"),
        })

        assert response.status_code == 200
        assert response.json()["is_new_user"] is False
        assert response.json()["user"]["role"] == "employee"

    async def test_unverified_email_does_not_take_over_account(
        self, client, google_configured, monkeypatch, make_user, db_session
    ):
        existing = await make_user(UserRole.ADMIN, email="viajero@example.com")
        monkeypatch.setattr(
            google_oauth, "authenticate", AsyncMock(return_value=google_profile(email_verified=False))
        )

        response = await client.post(f"{API}/google/callback", json={
            "code": "auth-code",
            "state": create_oauth_state("google"),
        })

        assert response.status_code == 409
        assert "access_token" not in response.json()
        await db_session.refresh(existing)
        assert existing.google_id is None

    async def test_state_for_another_provider_is_rejected(self, client, google_configured, monkeypatch):
        authenticate = AsyncMock(return_value=google_profile())
        monkeypatch.setattr(google_oauth, "authenticate", authenticate)

        response = await client.post(f"{API}/google/callback", json={
            "code": "auth-code",
            "state": create_oauth_state("microsoft"),
        })

        assert response.status_code == 401
        authenticate.assert_not_awaited()

    async def test_tampered_state_is_rejected(self, client, google_configured):
        response = await client.post(f"{API}/google/callback", json={"code": "c", "state": "not-a-token"})

        assert response.status_code == 401

    async def test_provider_failure(self, client, google_configured, monkeypatch):
        monkeypatch.setattr(google_oauth, "authenticate", AsyncMock(return_value=None))

        response = await client.post(f"{API}/google/callback", json={
            "code": "bad-code",
            "state": create_oauth_state("google"),
        })

        assert response.status_code == 401

    async def test_profile_without_email(self, client, google_configured, monkeypatch):
        monkeypatch.setattr(google_oauth, "authenticate", AsyncMock(return_value=google_profile(email="")))

        response = await client.post(f"{API}/google/callback", json={
            "code": "auth-code",
            "state": create_oauth_state("google"),
        })

        assert response.status_code == 400

    async def test_inactive_account(self, client, google_configured, monkeypatch, make_user):
        await make_user(UserRole.CLIENT, email="viajero@example.com", is_active=False)
        monkeypatch.setattr(google_oauth, "authenticate", AsyncMock(return_value=google_profile()))

        response = await client.post(f"{API}/google/callback", json={
            "code": "auth-code",
            "state": create_oauth_state("google"),
        })

        assert response.status_code == 403
