"""
Unit Tests for OAuth providers and account matching
"""
from urllib.parse import urlparse, parse_qs

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.models.user import User, UserRole
from app.modules.oauth import (
    GoogleOAuthProvider,
    MicrosoftOAuthProvider,
    AppleOAuthProvider,
    get_provider,
    google_oauth,
    microsoft_oauth,
    apple_oauth,
)
from app.services.oauth_service import find_or_create_user


class TestProfiles:

    def test_google_profile(self):
        profile = GoogleOAuthProvider.normalize_profile({
            "sub": "g-1",
            "email": "ana@example.com",
            "email_verified": True,
            "name": "Ana López",
            "given_name": "Ana",
            "family_name": "López",
            "picture": "https://example.com/a.png",
        })

        assert profile["provider"] == "google"
        assert profile["provider_id"] == "g-1"
        assert profile["given_name"] == "Ana"
        assert profile["avatar_url"] == "https://example.com/a.png"

    def test_microsoft_profile_uses_upn_without_mailbox(self):
        profile = MicrosoftOAuthProvider.normalize_profile({
            "id": "m-1",
            "mail": None,
            "userPrincipalName": "Ana@Contoso.com",
            "givenName": "Ana",
            "surname": "López",
        })

        assert profile["email"] == "ana@contoso.com"
        assert profile["provider_id"] == "m-1"
        assert profile["email_verified"] is False

    def test_apple_profile_with_first_sign_in_name(self):
        profile = AppleOAuthProvider.normalize_profile(
            {"sub": "a-1", "email": "x@privaterelay.appleid.com", "email_verified": "true"},
            {"name": {"firstName": "Ana", "lastName": "López"}},
        )

        assert profile["email_verified"] is True
        assert profile["full_name"] == "Ana López"

    def test_apple_profile_without_name(self):
        profile = AppleOAuthProvider.normalize_profile({"sub": "a-1", "email": "x@example.com"})

        assert profile["given_name"] == ""
        assert profile["email_verified"] is False


class TestAuthorizationUrls:

    def test_google_url_carries_state(self, monkeypatch):
        monkeypatch.setattr(google_oauth, "client_id", "google-client")

        url = urlparse(google_oauth.get_authorization_url("signed-state"))
        query = parse_qs(url.query)

        assert url.netloc == "accounts.google.com"
        assert query["client_id"] == ["google-client"]
        assert query["state"] == ["signed-state"]
        assert query["scope"] == ["openid email profile"]

    def test_microsoft_url_uses_tenant(self, monkeypatch):
        monkeypatch.setattr(microsoft_oauth, "client_id", "ms-client")

        url = microsoft_oauth.get_authorization_url("s")

        assert "login.microsoftonline.com" in url
        assert "state=s" in url

    def test_apple_url_uses_form_post(self, monkeypatch):
        monkeypatch.setattr(apple_oauth, "client_id", "apple-client")

        query = parse_qs(urlparse(apple_oauth.get_authorization_url("s")).query)

        assert query["response_mode"] == ["form_post"]

    def test_registry(self):
        assert get_provider("google") is google_oauth
        assert get_provider("github") is None


class TestFindOrCreateUser:

    def profile(self, **overrides):
        profile = {
            "provider": "google",
            "provider_id": "g-123",
            "email": "Ana@Example.com",
            "email_verified": True,
            "given_name": "Ana",
            "family_name": "López",
            "avatar_url": "https://example.com/a.png",
        }
        profile.update(overrides)
        return profile

    async def test_creates_guest(self, db_session):
        user, created = await find_or_create_user(db_session, self.profile())

        assert created is True
        assert user.email == "ana@example.com"
        assert user.role == UserRole.GUEST
        assert user.google_id == "g-123"
        assert user.oauth_provider == "google"
        assert user.hashed_password is None

    async def test_matches_provider_id(self, db_session):
        first, _ = await find_or_create_user(db_session, self.profile())
        await db_session.commit()

        again, created = await find_or_create_user(db_session, self.profile(email="other@example.com"))

        assert created is False
        assert again.id == first.id

    async def test_links_existing_account_by_email(self, db_session, make_user):
        existing = await make_user(UserRole.ADMIN, email="ana@example.com")

        user, created = await find_or_create_user(
            db_session, self.profile(provider_id="g-9")
        )

        assert created is False
        assert user.id == existing.id
        assert user.google_id == "g-9"
        assert user.role == UserRole.ADMIN

        count = (await db_session.execute(select(User))).scalars().all()
        assert len(count) == 1

    async def test_unverified_email_is_not_linked(self, db_session, make_user):
        existing = await make_user(UserRole.ADMIN, email="ana@example.com")

        with pytest.raises(HTTPException) as exc_info:
            await find_or_create_user(
                db_session, self.profile(provider="microsoft", provider_id="m-9", email_verified=False)
            )

        assert exc_info.value.status_code == 409
        await db_session.refresh(existing)
        assert existing.microsoft_id is None

    async def test_unverified_email_still_creates_new_account(self, db_session):
        user, created = await find_or_create_user(
            db_session, self.profile(provider="microsoft", provider_id="m-9", email_verified=False)
        )

        assert created is True
        assert user.microsoft_id == "m-9"
