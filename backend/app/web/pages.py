"""
Dashboard pages rendered with Jinja2.

Authentication uses an HTTP-only cookie holding a regular access token, so
the same checks as the JSON API apply. Pages without a valid cookie redirect
to /login.
"""
from datetime import datetime
from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import BackOfficeError
from app.core.logging_config import logger
from app.core.rate_limiter import auth_rate_limit, oauth_rate_limit
from app.core.security import create_access_token, create_oauth_state, verify_oauth_state, verify_password
from app.models.audit_log import AuditLog
from app.models.experience import Experience
from app.models.quote import Quote
from app.models.service import Service
from app.models.user import User, UserRole
from app.models.vehicle import Vehicle
from app.modules.auth.dependencies import get_dashboard_user, get_dashboard_admin, get_optional_dashboard_user
from app.modules.oauth import enabled_providers
from app.services.audit_service import audit_service
from app.services.oauth_service import resolve_provider, complete_oauth_login
from app.services.quote_service import quote_service, serialize_public_quote
from app.web.templating import templates

router = APIRouter(include_in_schema=False)

LIST_LIMIT = 100


def _home_for(user: User) -> str:
    return "/dashboard/admin" if user.role_level >= UserRole.ADMIN.level else "/dashboard/home"


def is_same_site_path(target: Optional[str]) -> bool:
    """Absolute path on this site: no scheme, host or backslash"""
    if not target or not target.startswith("/") or "\\" in target:
        return False
    parts = urlsplit(target)
    return not parts.scheme and not parts.netloc


def _signed_in_redirect(user: User, target: Optional[str] = None) -> RedirectResponse:
    """Redirect with the session cookie set"""
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})
    response = RedirectResponse(target or _home_for(user), status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="lax",
    )
    return response


def _login_page(request: Request, error: Optional[str] = None, status_code: int = 200, email: str = ""):
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error": error, "email": email, "providers": enabled_providers()},
        status_code=status_code,
    )


def _error_page(request: Request, status_code: int, message: str, user: Optional[User] = None):
    return templates.TemplateResponse(
        request,
        "error.html",
        {"status_code": status_code, "message": message, "user": user},
        status_code=status_code,
    )


# ==================== Session ====================

@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    user: Optional[User] = Depends(get_optional_dashboard_user)
):
    if user is not None:
        return RedirectResponse(_home_for(user), status_code=status.HTTP_303_SEE_OTHER)
    return _login_page(request)


@router.post("/login")
@auth_rate_limit()
async def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: AsyncSession = Depends(get_db)
):
    client_ip = request.client.host if request.client else "unknown"
    email = email.strip().lower()

    result = await db.execute(select(User).where(User.email == email, User.exists == True))  # noqa: E712
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.hashed_password):
        logger.log_auth_event(
            event="dashboard_login", success=False, user_email=email,
            reason="Invalid credentials", client_ip=client_ip
        )
        return _login_page(request, "Incorrect email or password", status.HTTP_401_UNAUTHORIZED, email)

    if not user.is_active:
        logger.log_auth_event(
            event="dashboard_login", success=False, user_email=email,
            reason="Account inactive", client_ip=client_ip
        )
        return _login_page(request, "User account is inactive", status.HTTP_403_FORBIDDEN, email)

    user.last_login = datetime.utcnow()
    await audit_service.log(db, user, "LOGIN", "User", user.id, request=request, metadata={"channel": "dashboard"})
    await db.commit()

    logger.log_auth_event(event="dashboard_login", success=True, user_email=email, client_ip=client_ip)
    return _signed_in_redirect(user)


@router.post("/logout")
async def logout():
    response = RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return response


# ==================== OAuth redirects ====================

@router.get("/auth/oauth/{provider}/login")
async def oauth_start(request: Request, provider: str, next: Optional[str] = None):
    """Send the browser to the provider's consent screen"""
    try:
        oauth_provider = resolve_provider(provider)
    except HTTPException as exc:
        return _login_page(request, exc.detail, exc.status_code)
    # Same-site paths only
    redirect_to = next if is_same_site_path(next) else None
    state = create_oauth_state(provider, redirect_to)
    return RedirectResponse(oauth_provider.get_authorization_url(state), status_code=status.HTTP_302_FOUND)


async def _finish_oauth(
    request: Request,
    db: AsyncSession,
    provider: str,
    code: Optional[str],
    state: Optional[str],
    apple_user: Optional[str] = None,
    error: Optional[str] = None,
) -> Response:
    if error:
        return _login_page(request, f"Sign-in was cancelled ({error})", status.HTTP_400_BAD_REQUEST)
    if not code or not state:
        return _login_page(request, "Missing authorization code", status.HTTP_400_BAD_REQUEST)

    try:
        user, _ = await complete_oauth_login(db, provider, code, state, request, apple_user=apple_user)
        redirect_to = verify_oauth_state(state, provider).get("redirect_to")
    except HTTPException as exc:
        return _login_page(request, exc.detail, exc.status_code)

    return _signed_in_redirect(user, redirect_to if is_same_site_path(redirect_to) else None)


@router.get("/auth/oauth/{provider}/callback")
@oauth_rate_limit()
async def oauth_redirect_callback(
    request: Request,
    provider: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """Google and Microsoft redirect back here with ?code&state"""
    return await _finish_oauth(request, db, provider, code, state, error=error)


@router.post("/auth/oauth/{provider}/callback")
@oauth_rate_limit()
async def oauth_form_post_callback(
    request: Request,
    provider: str,
    code: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    user: Optional[str] = Form(None),
    error: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db)
):
    """Apple posts the callback as a form (response_mode=form_post)"""
    return await _finish_oauth(request, db, provider, code, state, apple_user=user, error=error)


# ==================== Dashboards ====================

@router.get("/dashboard")
async def dashboard(user: User = Depends(get_dashboard_user)):
    return RedirectResponse(_home_for(user), status_code=status.HTTP_303_SEE_OTHER)


@router.get("/dashboard/home", response_class=HTMLResponse)
async def dashboard_home(
    request: Request,
    user: User = Depends(get_dashboard_user),
    db: AsyncSession = Depends(get_db)
):
    """Quotes visible to the signed-in user"""
    query = select(Quote).where(Quote.exists == True)  # noqa: E712
    visibility = await quote_service.visibility_filter(db, user)
    if visibility is not None:
        query = query.where(visibility)
    result = await db.execute(query.order_by(Quote.created_at.desc()).limit(LIST_LIMIT))
    return templates.TemplateResponse(
        request, "home.html", {"user": user, "quotes": result.scalars().all()}
    )


@router.get("/dashboard/admin", response_class=HTMLResponse)
async def admin_dashboard(
    request: Request,
    user: User = Depends(get_dashboard_admin),
    db: AsyncSession = Depends(get_db)
):
    by_status = await db.execute(
        select(Quote.status, func.count(Quote.id))
        .where(Quote.exists == True)  # noqa: E712
        .group_by(Quote.status)
    )
    vehicles = await db.execute(select(func.count(Vehicle.id)).where(Vehicle.exists == True))  # noqa: E712
    services = await db.execute(select(func.count(Service.id)).where(Service.exists == True))  # noqa: E712

    return templates.TemplateResponse(
        request,
        "admin/index.html",
        {
            "user": user,
            "quotes_by_status": dict(by_status.all()),
            "vehicle_count": vehicles.scalar() or 0,
            "service_count": services.scalar() or 0,
            "recent_audit": await audit_service.recent(db, limit=10),
        },
    )


@router.get("/dashboard/admin/quotes", response_class=HTMLResponse)
async def admin_quotes(
    request: Request,
    status_filter: Optional[str] = None,
    user: User = Depends(get_dashboard_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(Quote).where(Quote.exists == True)  # noqa: E712
    if status_filter:
        query = query.where(Quote.status == status_filter)
    result = await db.execute(query.order_by(Quote.created_at.desc()).limit(LIST_LIMIT))
    return templates.TemplateResponse(
        request,
        "admin/quotes.html",
        {"user": user, "quotes": result.scalars().all(), "status_filter": status_filter},
    )


@router.get("/dashboard/admin/quotes/{quote_id}", response_class=HTMLResponse)
async def admin_quote_detail(
    request: Request,
    quote_id: str,
    user: User = Depends(get_dashboard_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        quote = await quote_service.get(db, quote_id)
    except BackOfficeError as exc:
        return _error_page(request, exc.status_code, exc.message, user)
    return templates.TemplateResponse(request, "admin/quote_detail.html", {"user": user, "quote": quote})


@router.get("/dashboard/admin/vehicles", response_class=HTMLResponse)
async def admin_vehicles(
    request: Request,
    user: User = Depends(get_dashboard_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Vehicle).where(Vehicle.exists == True).order_by(Vehicle.name).limit(LIST_LIMIT)  # noqa: E712
    )
    return templates.TemplateResponse(
        request, "admin/vehicles.html", {"user": user, "vehicles": result.scalars().all()}
    )


@router.get("/dashboard/admin/services", response_class=HTMLResponse)
async def admin_services(
    request: Request,
    user: User = Depends(get_dashboard_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Service).where(Service.exists == True).order_by(Service.created_at.desc()).limit(LIST_LIMIT)  # noqa: E712
    )
    return templates.TemplateResponse(
        request, "admin/services.html", {"user": user, "services": result.scalars().all()}
    )


@router.get("/dashboard/admin/experiences", response_class=HTMLResponse)
async def admin_experiences(
    request: Request,
    user: User = Depends(get_dashboard_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Experience).where(Experience.exists == True).order_by(Experience.name).limit(LIST_LIMIT)  # noqa: E712
    )
    return templates.TemplateResponse(
        request, "admin/experiences.html", {"user": user, "experiences": result.scalars().all()}
    )


@router.get("/dashboard/admin/audit", response_class=HTMLResponse)
async def admin_audit(
    request: Request,
    entity_type: Optional[str] = None,
    user: User = Depends(get_dashboard_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(AuditLog)
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    result = await db.execute(query.order_by(AuditLog.timestamp.desc()).limit(LIST_LIMIT))
    return templates.TemplateResponse(
        request,
        "admin/audit.html",
        {"user": user, "entries": result.scalars().all(), "entity_type": entity_type},
    )


# ==================== Public ====================

@router.get("/quotes/{folio}", response_class=HTMLResponse)
async def public_quote(
    request: Request,
    folio: str,
    db: AsyncSession = Depends(get_db)
):
    """Client-facing quote page reached from a share link"""
    try:
        quote = await quote_service.get_public(db, folio)
    except BackOfficeError as exc:
        return _error_page(request, exc.status_code, exc.message)
    return templates.TemplateResponse(
        request, "public_quote.html", {"quote": serialize_public_quote(quote)}
    )
