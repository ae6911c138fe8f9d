"""User management (administrators)"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.user import User, UserRole
from app.modules.auth.dependencies import get_current_admin
from app.schemas.common import ToggleStatusRequest
from app.schemas.user import UserCreate, UserUpdate
from app.services.user_service import user_service, serialize_user
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()


@router.get("")
@read_rate_limit()
async def list_users(
    request: Request,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    DataTables listing. Columns: 0 email, 1 first name, 2 last name, 3 role,
    4 active, 5 created at. Extra filters: `role`, `department_id`, `client_id`.
    """
    params = parse_datatables_params(request)
    base = user_service.visible_query(current_user)

    query = base
    if params.search:
        term = f"%{params.search}%"
        query = query.where(or_(
            User.email.ilike(term),
            User.first_name.ilike(term),
            User.last_name.ilike(term),
            User.username.ilike(term),
        ))
    role = params.filters.get("role")
    if role:
        try:
            query = query.where(User.role == UserRole(role))
        except ValueError:
            raise ValidationError(f"Invalid role: {role}", field="role")
    for key in ("department_id", "client_id"):
        if params.filters.get(key):
            query = query.where(getattr(User, key) == params.filters[key])

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[User.email, User.first_name, User.last_name, User.role, User.is_active, User.created_at],
        default_order=User.created_at.desc(),
    )
    return datatables_response(params, listing, [serialize_user(u) for u in listing["items"]])


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.get(db, user_id, current_user)
    return {"success": True, "data": serialize_user(user)}


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_user(
    request: Request,
    data: UserCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.create(db, data.model_dump(), current_user, request)
    return {"success": True, "data": serialize_user(user), "message": "User created"}


@router.put("/{user_id}")
@write_rate_limit()
async def update_user(
    request: Request,
    user_id: str,
    data: UserUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update role, organization, department and contact fields"""
    user = await user_service.update(db, user_id, data.model_dump(exclude_unset=True), current_user, request)
    return {"success": True, "data": serialize_user(user)}


@router.patch("/{user_id}/toggle-status")
@write_rate_limit()
async def toggle_user_status(
    request: Request,
    user_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.set_active(db, user_id, body.active, current_user, request)
    return {"success": True, "data": serialize_user(user)}


@router.delete("/{user_id}")
@write_rate_limit()
async def delete_user(
    request: Request,
    user_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await user_service.delete(db, user_id, current_user, request)
    return {"success": True, "message": "User deleted"}
