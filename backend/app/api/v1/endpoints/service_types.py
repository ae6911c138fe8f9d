"""Service type catalog"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.catalog import ServiceType
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import ServiceTypeCreate
from app.schemas.common import ToggleStatusRequest
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

ENTITY = "ServiceType"


@router.get("")
@read_rate_limit()
async def list_service_types(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    params = parse_datatables_params(request)
    base = select(ServiceType).where(ServiceType.exists == True)  # noqa: E712

    query = base
    if params.search:
        query = query.where(ServiceType.name.ilike(f"%{params.search}%"))

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[ServiceType.name, ServiceType.created_at],
        default_order=ServiceType.name.asc(),
    )
    return datatables_response(
        params, listing, [catalog_service.serialize_service_type(t) for t in listing["items"]]
    )


@router.get("/active")
async def list_active_service_types(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(ServiceType)
        .where(ServiceType.exists == True, ServiceType.active == True)  # noqa: E712
        .order_by(ServiceType.name)
    )
    return {"success": True, "data": [{"id": t.id, "name": t.name} for t in result.scalars().all()]}


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_service_type(
    request: Request,
    data: ServiceTypeCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    name = data.name.strip()
    await catalog_service.ensure_unique(
        db, ServiceType, ServiceType.name, name,
        "A service type with this name already exists", "name", case_insensitive=True
    )

    service_type = ServiceType(name=name, description=data.description)
    db.add(service_type)
    await db.flush()
    await audit_service.log(
        db, current_user, AuditAction.CREATE, ENTITY, service_type.id, changes={"name": name}, request=request
    )
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_service_type(service_type), "message": "Service type created"}


@router.patch("/{service_type_id}/toggle-status")
@write_rate_limit()
async def toggle_service_type_status(
    request: Request,
    service_type_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    service_type = await catalog_service.get_or_404(db, ServiceType, service_type_id, "Service type")
    await catalog_service.set_active(db, service_type, body.active, current_user, ENTITY, request)
    return {"success": True, "data": catalog_service.serialize_service_type(service_type)}
