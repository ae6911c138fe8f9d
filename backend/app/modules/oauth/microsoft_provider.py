"""Microsoft (Azure AD v2) OAuth provider for authentication."""

import httpx
from typing import Optional, Dict, Any
from urllib.parse import urlencode

from app.core.config import settings
from app.core.logging_config import logger


class MicrosoftOAuthProvider:
    """Handle Microsoft identity platform OAuth authentication."""

    name = "microsoft"
    display_name = "Microsoft"

    AUTHORITY = "https://login.microsoftonline.com"
    GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"
    SCOPES = "openid email profile User.Read"

    def __init__(self):
        self.client_id = settings.MICROSOFT_CLIENT_ID
        self.client_secret = settings.MICROSOFT_CLIENT_SECRET
        self.tenant_id = settings.MICROSOFT_TENANT_ID or "common"
        self.redirect_uri = settings.MICROSOFT_REDIRECT_URI

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def auth_url(self) -> str:
        return f"{self.AUTHORITY}/{self.tenant_id}/oauth2/v2.0/authorize"

    @property
    def token_url(self) -> str:
        return f"{self.AUTHORITY}/{self.tenant_id}/oauth2/v2.0/token"

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        """Generate Microsoft OAuth authorization URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "response_mode": "query",
            "scope": self.SCOPES,
            "prompt": "select_account",
        }
        if state:
            params["state"] = state
        return f"{self.auth_url}?{urlencode(params)}"

    async def exchange_code_for_token(self, code: str) -> Dict[str, Any]:
        """Exchange authorization code for an access token."""
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                    "scope": self.SCOPES,
                },
            )
            response.raise_for_status()
            return response.json()

    async def get_user_info(self, access_token: str) -> Dict[str, Any]:
        """Get the signed-in user's profile from Microsoft Graph."""
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                self.GRAPH_ME_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            return response.json()

    @staticmethod
    def normalize_profile(info: Dict[str, Any]) -> Dict[str, Any]:
        # Work accounts may have no mailbox; the UPN is then the sign-in address
        email = info.get("mail") or info.get("userPrincipalName")
        return {
            "provider": "microsoft",
            "provider_id": info.get("id"),
            "email": email.lower() if email else None,
            # Graph /me carries no verification claim
            "email_verified": False,
            "full_name": info.get("displayName") or "",
            "given_name": info.get("givenName") or "",
            "family_name": info.get("surname") or "",
            "avatar_url": "",
        }

    async def authenticate(self, code: str, **extra) -> Optional[Dict[str, Any]]:
        """
        Complete OAuth flow: exchange code and read the Graph profile.

        Returns the normalized profile if successful, None otherwise.
        """
        try:
            tokens = await self.exchange_code_for_token(code)
            access_token = tokens.get("access_token")

            if not access_token:
                logger.error("[MicrosoftOAuth] No access token received from token exchange")
                return None

            return self.normalize_profile(await self.get_user_info(access_token))
        except httpx.HTTPStatusError as e:
            logger.error(f"[MicrosoftOAuth] HTTP error during authentication: {e.response.status_code} - {e.response.text}")
            return None
        except httpx.RequestError as e:
            logger.error(f"[MicrosoftOAuth] Request error during authentication: {e}")
            return None


# Singleton instance
microsoft_oauth = MicrosoftOAuthProvider()
