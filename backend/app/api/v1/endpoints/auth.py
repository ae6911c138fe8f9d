from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime
import uuid

from app.core.database import get_db
from app.core.security import (
    verify_password,
    get_password_hash,
    decode_token,
    create_token_pair,
)
from app.core.logging_config import logger, set_user_id
from app.models.user import User, UserRole
from app.schemas.auth import (
    UserRegister,
    UserLogin,
    Token,
    LoginResponse,
    UserResponse,
    RefreshTokenRequest,
    ChangePasswordRequest,
)
from app.modules.auth.dependencies import get_current_user
from app.core.rate_limiter import register_rate_limit, auth_rate_limit
from app.services.audit_service import audit_service

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@register_rate_limit()
async def register(
    request: Request,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Register new user (rate limited: 3/min). New accounts get the guest role."""
    client_ip = _client_ip(request)
    email = user_data.email.lower()

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        logger.log_auth_event(
            event="register",
            success=False,
            user_email=email,
            reason="Email already registered",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    if user_data.username:
        result = await db.execute(select(User).where(User.username == user_data.username))
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username already taken"
            )

    user = User(
        email=email,
        username=user_data.username,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        phone=user_data.phone,
        hashed_password=get_password_hash(user_data.password),
        role=UserRole.GUEST,
    )
    db.add(user)
    await db.flush()
    await audit_service.log(db, user, "REGISTER", "User", user.id, request=request)
    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(
        event="register",
        success=True,
        user_email=email,
        client_ip=client_ip,
        user_role=user.role.value
    )
    return user


@router.post("/login", response_model=LoginResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login with email and password (rate limited: 5/min)"""
    client_ip = _client_ip(request)
    email = credentials.email.lower()

    result = await db.execute(
        select(User).where(User.email == email, User.exists == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not user.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    user.last_login = datetime.utcnow()
    await audit_service.log(db, user, "LOGIN", "User", user.id, request=request)
    await db.commit()

    set_user_id(str(user.id))
    logger.log_auth_event(
        event="login",
        success=True,
        user_email=email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {**create_token_pair(user), "user": user}


@router.post("/refresh", response_model=Token)
async def refresh_token(
    token_request: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token for a new token pair"""
    payload = decode_token(token_request.refresh_token)

    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("sub")
    try:
        uuid.UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    result = await db.execute(
        select(User).where(User.id == user_id, User.exists == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    logger.log_auth_event(event="token_refresh", success=True, user_email=user.email)
    return create_token_pair(user)


@router.post("/logout")
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Logout. Tokens are stateless, the client discards them."""
    await audit_service.log(db, current_user, "LOGOUT", "User", current_user.id, request=request)
    await db.commit()
    logger.log_auth_event(
        event="logout",
        success=True,
        user_email=current_user.email,
        client_ip=_client_ip(request)
    )
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return current_user


@router.post("/change-password")
async def change_password(
    request: Request,
    password_data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change the current user's password"""
    if not verify_password(password_data.current_password, current_user.hashed_password):
        logger.log_auth_event(
            event="change_password",
            success=False,
            user_email=current_user.email,
            reason="Current password incorrect"
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    current_user.hashed_password = get_password_hash(password_data.new_password)
    await audit_service.log(db, current_user, "CHANGE_PASSWORD", "User", current_user.id, request=request)
    await db.commit()

    logger.log_auth_event(event="change_password", success=True, user_email=current_user.email)
    return {"success": True, "message": "Password changed successfully"}
