from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import uuid

from app.core.config import settings
from app.core.database import get_db
from app.core.logging_config import set_user_id
from app.core.security import decode_token
from app.models.user import User, UserRole

security = HTTPBearer()


async def _load_user_from_token(token: str, db: AsyncSession) -> User:
    """Resolve an access token to an active user"""
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    # Validate user_id is a valid UUID format
    try:
        uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format"
        )

    result = await db.execute(
        select(User).where(User.id == user_id, User.exists == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return user


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    user = await _load_user_from_token(credentials.credentials, db)

    # Rate limiter keys and log records pick the user up from here
    request.state.user_id = str(user.id)
    set_user_id(str(user.id))

    return user


def require_role_level(min_level: int):
    """Dependency factory: caller's role level must be at least `min_level`"""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role_level < min_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user

    return checker


def require_roles(*roles: UserRole):
    """Dependency factory: caller must hold one of `roles`"""
    allowed = set(roles)

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user

    return checker


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current admin user (admin or superadmin)"""
    if current_user.role_level < UserRole.ADMIN.level:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


# ==================== Dashboard (cookie) authentication ====================

def _redirect_to_login() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_303_SEE_OTHER,
        detail="Authentication required",
        headers={"Location": "/login"}
    )


async def get_optional_dashboard_user(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """User from the session cookie, or None when absent or invalid"""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        return None

    try:
        user = await _load_user_from_token(token, db)
    except HTTPException:
        return None

    request.state.user_id = str(user.id)
    set_user_id(str(user.id))
    return user


async def get_dashboard_user(
    user: Optional[User] = Depends(get_optional_dashboard_user)
) -> User:
    """Cookie-authenticated user for HTML pages; redirects to /login otherwise"""
    if user is None:
        raise _redirect_to_login()
    return user


async def get_dashboard_admin(
    user: User = Depends(get_dashboard_user)
) -> User:
    """Cookie-authenticated admin for the admin dashboard pages"""
    if user.role_level < UserRole.ADMIN.level:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user
