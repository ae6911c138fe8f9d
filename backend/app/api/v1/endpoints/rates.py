"""Rate catalog"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.catalog import Rate
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import RateCreate
from app.schemas.common import ToggleStatusRequest
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

ENTITY = "Rate"


@router.get("")
@read_rate_limit()
async def list_rates(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """DataTables listing. Columns: 0 name, 1 color, 2 created at"""
    params = parse_datatables_params(request)
    base = select(Rate).where(Rate.exists == True)  # noqa: E712

    query = base
    if params.search:
        query = query.where(Rate.name.ilike(f"%{params.search}%"))

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[Rate.name, Rate.color, Rate.created_at],
        default_order=Rate.name.asc(),
    )
    return datatables_response(params, listing, [catalog_service.serialize_rate(r) for r in listing["items"]])


@router.get("/active")
async def list_active_rates(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Rate).where(Rate.exists == True, Rate.active == True).order_by(Rate.name)  # noqa: E712
    )
    return {
        "success": True,
        "data": [{"id": r.id, "name": r.name, "color": r.color} for r in result.scalars().all()],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_rate(
    request: Request,
    data: RateCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    name = data.name.strip()
    await catalog_service.ensure_unique(
        db, Rate, Rate.name, name, "A rate with this name already exists", "name", case_insensitive=True
    )

    rate = Rate(name=name, color=data.color)
    db.add(rate)
    await db.flush()
    await audit_service.log(db, current_user, AuditAction.CREATE, ENTITY, rate.id, changes={"name": name}, request=request)
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_rate(rate), "message": "Rate created"}


@router.patch("/{rate_id}/toggle-status")
@write_rate_limit()
async def toggle_rate_status(
    request: Request,
    rate_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    rate = await catalog_service.get_or_404(db, Rate, rate_id)
    await catalog_service.set_active(db, rate, body.active, current_user, ENTITY, request)
    return {"success": True, "data": catalog_service.serialize_rate(rate)}
