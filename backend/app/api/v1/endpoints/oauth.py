from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.rate_limiter import oauth_rate_limit
from app.core.security import create_oauth_state, create_token_pair
from app.modules.oauth import enabled_providers
from app.schemas.auth import OAuthCallbackRequest, OAuthUrlResponse, OAuthTokenResponse
from app.services.oauth_service import resolve_provider, complete_oauth_login

router = APIRouter()


@router.get("/providers")
async def list_providers():
    """OAuth providers with credentials configured"""
    return {"providers": enabled_providers()}


@router.get("/{provider}/url", response_model=OAuthUrlResponse)
async def get_authorization_url(
    provider: str,
    redirect_to: Optional[str] = Query(None, description="Path to return to after sign-in")
):
    """Signed state and authorization URL for a provider"""
    oauth_provider = resolve_provider(provider)
    state = create_oauth_state(provider, redirect_to)
    return {
        "provider": provider,
        "authorization_url": oauth_provider.get_authorization_url(state),
        "state": state,
    }


@router.post("/{provider}/callback", response_model=OAuthTokenResponse)
@oauth_rate_limit()
async def oauth_callback(
    request: Request,
    provider: str,
    callback: OAuthCallbackRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange an authorization code for back office tokens (rate limited: 10/min)"""
    user, is_new_user = await complete_oauth_login(
        db, provider, callback.code, callback.state, request, apple_user=callback.user
    )
    return {**create_token_pair(user), "user": user, "is_new_user": is_new_user}
