"""OAuth providers module for Google, Microsoft and Apple authentication."""

from typing import Dict, List, Optional

from .google_provider import GoogleOAuthProvider, google_oauth
from .microsoft_provider import MicrosoftOAuthProvider, microsoft_oauth
from .apple_provider import AppleOAuthProvider, apple_oauth

OAUTH_PROVIDERS = {
    google_oauth.name: google_oauth,
    microsoft_oauth.name: microsoft_oauth,
    apple_oauth.name: apple_oauth,
}


def get_provider(name: str) -> Optional[object]:
    """Provider singleton by name, or None when unknown"""
    return OAUTH_PROVIDERS.get(name)


def enabled_providers() -> List[Dict[str, str]]:
    """Providers with credentials configured, for the login page"""
    return [
        {"name": provider.name, "display_name": provider.display_name}
        for provider in OAUTH_PROVIDERS.values()
        if provider.is_configured
    ]


__all__ = [
    "GoogleOAuthProvider",
    "MicrosoftOAuthProvider",
    "AppleOAuthProvider",
    "google_oauth",
    "microsoft_oauth",
    "apple_oauth",
    "OAUTH_PROVIDERS",
    "get_provider",
    "enabled_providers",
]
