"""
OAuth Service - turns a provider callback into a signed-in user

Shared by the JSON API callback and the dashboard redirect callback.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import logger
from app.core.security import verify_oauth_state
from app.models.user import User, UserRole
from app.modules.oauth import get_provider
from app.services.audit_service import audit_service


def resolve_provider(name: str):
    """Provider by name: 404 when unknown, 503 when not configured"""
    provider = get_provider(name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown OAuth provider: {name}"
        )
    if not provider.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{provider.display_name} sign-in is not configured"
        )
    return provider


async def find_or_create_user(db: AsyncSession, profile: Dict[str, Any]) -> Tuple[User, bool]:
    """
    Match an OAuth profile to a user.

    Lookup order: provider id, then email (linking the provider to that
    account when the provider vouches for the address). Unknown people get
    a new guest account.
    """
    provider_name = profile["provider"]
    id_column = getattr(User, f"{provider_name}_id")
    email = profile["email"].lower()

    result = await db.execute(
        select(User).where(id_column == profile["provider_id"], User.exists == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()
    if user:
        return user, False

    result = await db.execute(
        select(User).where(User.email == email, User.exists == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()
    if user:
        if not profile.get("email_verified"):
            logger.warning(f"[OAuth] Refused to link unverified {provider_name} email to existing user")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="An account with this email already exists. Sign in with your password to continue."
            )
        setattr(user, f"{provider_name}_id", profile["provider_id"])
        user.oauth_provider = user.oauth_provider or provider_name
        if not user.avatar_url and profile.get("avatar_url"):
            user.avatar_url = profile["avatar_url"]
        logger.info(f"[OAuth] Linked {provider_name} account to existing user {email}")
        return user, False

    user = User(
        email=email,
        first_name=profile.get("given_name") or None,
        last_name=profile.get("family_name") or None,
        avatar_url=profile.get("avatar_url") or None,
        oauth_provider=provider_name,
        role=UserRole.GUEST,
    )
    setattr(user, f"{provider_name}_id", profile["provider_id"])
    db.add(user)
    await db.flush()
    logger.info(f"[OAuth] Created user {email} via {provider_name}")
    return user, True


async def complete_oauth_login(
    db: AsyncSession,
    provider_name: str,
    code: str,
    state: str,
    request: Request,
    apple_user: Optional[str] = None,
) -> Tuple[User, bool]:
    """Verify state, authenticate with the provider and sign the user in"""
    client_ip = request.client.host if request.client else "unknown"
    provider = resolve_provider(provider_name)
    verify_oauth_state(state, provider_name)

    profile = await provider.authenticate(code, user=apple_user)
    if not profile or not profile.get("provider_id"):
        logger.log_auth_event(
            event=f"oauth_{provider_name}",
            success=False,
            reason="Provider authentication failed",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{provider.display_name} authentication failed"
        )

    if not profile.get("email"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{provider.display_name} did not share an email address"
        )

    user, is_new_user = await find_or_create_user(db, profile)

    if not user.is_active:
        logger.log_auth_event(
            event=f"oauth_{provider_name}",
            success=False,
            user_email=user.email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    user.last_login = datetime.utcnow()
    await audit_service.log(
        db, user, "LOGIN", "User", user.id,
        request=request,
        metadata={"provider": provider_name, "is_new_user": is_new_user},
    )
    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(
        event=f"oauth_{provider_name}",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        is_new_user=is_new_user
    )
    return user, is_new_user
