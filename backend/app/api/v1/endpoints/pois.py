"""Points of interest"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.catalog import POI, ServiceType
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import POICreate, POIUpdate
from app.schemas.common import ToggleStatusRequest
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction, snapshot, diff_changes
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

ENTITY = "POI"
MAX_NAME_LENGTH = 200


def _clean_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required", field="name")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters", field="name")
    return name


async def _service_type(db: AsyncSession, service_type_id: str) -> ServiceType:
    """Service type must exist and be active; both failures are a 400 on this form"""
    if not service_type_id:
        raise ValidationError("Service type is required", field="service_type_id")
    result = await db.execute(
        select(ServiceType).where(ServiceType.id == service_type_id, ServiceType.exists == True)  # noqa: E712
    )
    service_type = result.scalar_one_or_none()
    if service_type is None:
        raise ValidationError("Service type not found", field="service_type_id")
    if not service_type.active:
        raise ValidationError("Service type is not active", field="service_type_id")
    return service_type


@router.get("")
@read_rate_limit()
async def list_pois(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """DataTables listing. Columns: 0 name, 1 service type, 2 created at"""
    params = parse_datatables_params(request)
    base = (
        select(POI)
        .outerjoin(ServiceType, POI.service_type_id == ServiceType.id)
        .where(POI.exists == True)  # noqa: E712
    )

    query = base
    if params.search:
        query = query.where(POI.name.ilike(f"%{params.search}%"))
    if params.filters.get("service_type_id"):
        query = query.where(POI.service_type_id == params.filters["service_type_id"])

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[POI.name, ServiceType.name, POI.created_at],
        default_order=POI.name.asc(),
    )
    return datatables_response(params, listing, [catalog_service.serialize_poi(p) for p in listing["items"]])


@router.get("/active")
async def list_active_pois(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(POI).where(POI.exists == True, POI.active == True).order_by(POI.name)  # noqa: E712
    )
    return {"success": True, "data": [{"id": p.id, "name": p.name} for p in result.scalars().all()]}


@router.get("/{poi_id}")
async def get_poi(
    poi_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    poi = await catalog_service.get_or_404(db, POI, poi_id)
    return {"success": True, "data": catalog_service.serialize_poi(poi)}


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_poi(
    request: Request,
    data: POICreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    name = _clean_name(data.name)
    service_type = await _service_type(db, data.service_type_id)
    await catalog_service.ensure_unique(
        db, POI, POI.name, name, "A POI with this name already exists", "name", case_insensitive=True
    )

    poi = POI(name=name, service_type=service_type)
    db.add(poi)
    await db.flush()
    await audit_service.log(
        db, current_user, AuditAction.CREATE, ENTITY, poi.id,
        changes={"name": name, "service_type_id": service_type.id}, request=request
    )
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_poi(poi), "message": "POI created"}


@router.put("/{poi_id}")
@write_rate_limit()
async def update_poi(
    request: Request,
    poi_id: str,
    data: POIUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    poi = await catalog_service.get_or_404(db, POI, poi_id)
    updates = data.model_dump(exclude_unset=True)
    before = snapshot(poi, updates.keys())

    if "name" in updates:
        updates["name"] = _clean_name(updates["name"])
        await catalog_service.ensure_unique(
            db, POI, POI.name, updates["name"], "A POI with this name already exists", "name",
            exclude_id=poi_id, case_insensitive=True
        )
        poi.name = updates["name"]
    if "service_type_id" in updates:
        poi.service_type = await _service_type(db, updates["service_type_id"])

    changes = diff_changes(before, updates)
    if changes:
        await audit_service.log(db, current_user, AuditAction.UPDATE, ENTITY, poi.id, changes=changes, request=request)
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_poi(poi), "message": "POI updated"}


@router.patch("/{poi_id}/toggle-status")
@write_rate_limit()
async def toggle_poi_status(
    request: Request,
    poi_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    poi = await catalog_service.get_or_404(db, POI, poi_id)
    await catalog_service.set_active(db, poi, body.active, current_user, ENTITY, request)
    return {"success": True, "data": catalog_service.serialize_poi(poi)}


@router.delete("/{poi_id}")
@write_rate_limit()
async def delete_poi(
    request: Request,
    poi_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    poi = await catalog_service.get_or_404(db, POI, poi_id)
    await catalog_service.soft_delete(db, poi, current_user, ENTITY, request, changes={"name": poi.name})
    return {"success": True, "message": "POI deleted"}
