"""Sign in with Apple provider for authentication."""

import json
import time
import httpx
from typing import Optional, Dict, Any
from urllib.parse import urlencode
from jose import jwt, JWTError

from app.core.config import settings
from app.core.logging_config import logger


class AppleOAuthProvider:
    """
    Handle Sign in with Apple.

    Apple has no static client secret: every token request is signed with an
    ES256 JWT built from the team id, key id and the .p8 private key. The
    profile comes from the returned ID token, checked against Apple's JWKS.
    Apple only sends the user's name on the first authorization, as a JSON
    `user` form field, so it is accepted as an extra argument.
    """

    name = "apple"
    display_name = "Apple"

    APPLE_ISSUER = "https://appleid.apple.com"
    APPLE_AUTH_URL = "https://appleid.apple.com/auth/authorize"
    APPLE_TOKEN_URL = "https://appleid.apple.com/auth/token"
    APPLE_KEYS_URL = "https://appleid.apple.com/auth/keys"
    CLIENT_SECRET_TTL = 300

    def __init__(self):
        self.client_id = settings.APPLE_CLIENT_ID
        self.team_id = settings.APPLE_TEAM_ID
        self.key_id = settings.APPLE_KEY_ID
        self.private_key = settings.APPLE_PRIVATE_KEY.replace("\\n", "\n")
        self.redirect_uri = settings.APPLE_REDIRECT_URI

    @property
    def is_configured(self) -> bool:
        return all([self.client_id, self.team_id, self.key_id, self.private_key])

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        """Generate Apple authorization URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "response_mode": "form_post",
            "scope": "name email",
        }
        if state:
            params["state"] = state
        return f"{self.APPLE_AUTH_URL}?{urlencode(params)}"

    def build_client_secret(self) -> str:
        """Short-lived ES256 client secret for the token endpoint."""
        now = int(time.time())
        claims = {
            "iss": self.team_id,
            "iat": now,
            "exp": now + self.CLIENT_SECRET_TTL,
            "aud": self.APPLE_ISSUER,
            "sub": self.client_id,
        }
        return jwt.encode(claims, self.private_key, algorithm="ES256", headers={"kid": self.key_id})

    async def exchange_code_for_tokens(self, code: str) -> Dict[str, Any]:
        """Exchange authorization code for tokens."""
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                self.APPLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.build_client_secret(),
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
            response.raise_for_status()
            return response.json()

    async def get_signing_keys(self) -> list:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(self.APPLE_KEYS_URL)
            response.raise_for_status()
            return response.json().get("keys", [])

    async def verify_id_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify an Apple ID token against Apple's published keys."""
        try:
            kid = jwt.get_unverified_header(token).get("kid")
            keys = await self.get_signing_keys()
            key = next((k for k in keys if k.get("kid") == kid), None)
            if key is None:
                logger.warning(f"[AppleOAuth] No signing key matches kid={kid}")
                return None

            return jwt.decode(
                token,
                key,
                algorithms=[key.get("alg", "RS256")],
                audience=self.client_id,
                issuer=self.APPLE_ISSUER,
                options={"verify_at_hash": False},
            )
        except JWTError as e:
            logger.error(f"[AppleOAuth] Invalid ID token: {e}")
            return None

    @staticmethod
    def normalize_profile(claims: Dict[str, Any], user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        name = (user or {}).get("name") or {}
        given_name = name.get("firstName", "")
        family_name = name.get("lastName", "")
        email_verified = claims.get("email_verified", False)
        if isinstance(email_verified, str):
            email_verified = email_verified.lower() == "true"
        return {
            "provider": "apple",
            "provider_id": claims.get("sub"),
            "email": claims.get("email"),
            "email_verified": bool(email_verified),
            "full_name": f"{given_name} {family_name}".strip(),
            "given_name": given_name,
            "family_name": family_name,
            "avatar_url": "",
        }

    async def authenticate(self, code: str, user: Optional[str] = None, **extra) -> Optional[Dict[str, Any]]:
        """
        Complete OAuth flow: exchange code and verify the ID token.

        Returns the normalized profile if successful, None otherwise.
        """
        try:
            tokens = await self.exchange_code_for_tokens(code)
        except httpx.HTTPStatusError as e:
            logger.error(f"[AppleOAuth] HTTP error during authentication: {e.response.status_code} - {e.response.text}")
            return None
        except httpx.RequestError as e:
            logger.error(f"[AppleOAuth] Request error during authentication: {e}")
            return None
        except JWTError as e:
            logger.error(f"[AppleOAuth] Could not sign client secret: {e}")
            return None

        raw_id_token = tokens.get("id_token")
        if not raw_id_token:
            logger.error("[AppleOAuth] No ID token received from token exchange")
            return None

        try:
            claims = await self.verify_id_token(raw_id_token)
        except httpx.HTTPError as e:
            logger.error(f"[AppleOAuth] Could not fetch signing keys: {e}")
            return None
        if not claims:
            return None

        user_data = None
        if user:
            try:
                user_data = json.loads(user)
            except ValueError:
                logger.warning("[AppleOAuth] Ignoring malformed user payload")

        return self.normalize_profile(claims, user_data)


# Singleton instance
apple_oauth = AppleOAuthProvider()
