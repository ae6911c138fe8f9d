"""Vehicle type catalog"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import ResourceInUseError, ValidationError
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.user import User
from app.models.vehicle import Vehicle, VehicleType, generate_type_code
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import VehicleTypeCreate, VehicleTypeUpdate
from app.schemas.common import ToggleStatusRequest
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction, snapshot, diff_changes
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

ENTITY = "VehicleType"


async def _vehicles_using(db: AsyncSession, vehicle_type_id: str) -> int:
    result = await db.execute(
        select(func.count(Vehicle.id)).where(
            Vehicle.vehicle_type_id == vehicle_type_id,
            Vehicle.exists == True  # noqa: E712
        )
    )
    return result.scalar() or 0


@router.get("")
@read_rate_limit()
async def list_vehicle_types(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """DataTables listing. Columns: 0 name, 1 code, 2 default capacity, 3 sort order"""
    params = parse_datatables_params(request)
    base = select(VehicleType).where(VehicleType.exists == True)  # noqa: E712

    query = base
    if params.search:
        term = f"%{params.search}%"
        query = query.where(or_(VehicleType.name.ilike(term), VehicleType.code.ilike(term)))

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[VehicleType.name, VehicleType.code, VehicleType.default_capacity, VehicleType.sort_order],
        default_order=VehicleType.sort_order.asc(),
    )
    return datatables_response(
        params, listing, [catalog_service.serialize_vehicle_type(t) for t in listing["items"]]
    )


@router.get("/active")
async def list_active_vehicle_types(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Options for select inputs"""
    result = await db.execute(
        select(VehicleType)
        .where(VehicleType.exists == True, VehicleType.active == True)  # noqa: E712
        .order_by(VehicleType.sort_order, VehicleType.name)
    )
    return {
        "success": True,
        "data": [
            {"id": t.id, "name": t.name, "code": t.code, "default_capacity": t.default_capacity}
            for t in result.scalars().all()
        ],
    }


@router.get("/{vehicle_type_id}")
async def get_vehicle_type(
    vehicle_type_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    vehicle_type = await catalog_service.get_or_404(db, VehicleType, vehicle_type_id, "Vehicle type")
    return {"success": True, "data": catalog_service.serialize_vehicle_type(vehicle_type)}


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_vehicle_type(
    request: Request,
    data: VehicleTypeCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    name = data.name.strip()
    code = generate_type_code(name)
    if not code:
        raise ValidationError("Name must contain letters or digits", field="name")

    await catalog_service.ensure_unique(
        db, VehicleType, VehicleType.name, name,
        "A vehicle type with this name already exists", "name", case_insensitive=True
    )
    await catalog_service.ensure_unique(
        db, VehicleType, VehicleType.code, code,
        "A vehicle type with this code already exists", "name"
    )

    vehicle_type = VehicleType(
        name=name,
        code=code,
        description=data.description,
        icon=data.icon,
        default_capacity=data.default_capacity,
        trunk_capacity=data.trunk_capacity,
        sort_order=data.sort_order,
    )
    db.add(vehicle_type)
    await db.flush()
    await audit_service.log(
        db, current_user, AuditAction.CREATE, ENTITY, vehicle_type.id,
        changes={"name": name, "code": code}, request=request
    )
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_vehicle_type(vehicle_type), "message": "Vehicle type created"}


@router.put("/{vehicle_type_id}")
@write_rate_limit()
async def update_vehicle_type(
    request: Request,
    vehicle_type_id: str,
    data: VehicleTypeUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle_type = await catalog_service.get_or_404(db, VehicleType, vehicle_type_id, "Vehicle type")
    updates = data.model_dump(exclude_unset=True)

    if "name" in updates and updates["name"] is not None:
        updates["name"] = updates["name"].strip()
        updates["code"] = generate_type_code(updates["name"])
        if not updates["code"]:
            raise ValidationError("Name must contain letters or digits", field="name")
        await catalog_service.ensure_unique(
            db, VehicleType, VehicleType.name, updates["name"],
            "A vehicle type with this name already exists", "name",
            exclude_id=vehicle_type_id, case_insensitive=True
        )
        await catalog_service.ensure_unique(
            db, VehicleType, VehicleType.code, updates["code"],
            "A vehicle type with this code already exists", "name", exclude_id=vehicle_type_id
        )

    before = snapshot(vehicle_type, updates.keys())
    for key, value in updates.items():
        setattr(vehicle_type, key, value)

    changes = diff_changes(before, updates)
    if changes:
        await audit_service.log(db, current_user, AuditAction.UPDATE, ENTITY, vehicle_type.id, changes=changes, request=request)
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_vehicle_type(vehicle_type), "message": "Vehicle type updated"}


@router.patch("/{vehicle_type_id}/toggle-status")
@write_rate_limit()
async def toggle_vehicle_type_status(
    request: Request,
    vehicle_type_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle_type = await catalog_service.get_or_404(db, VehicleType, vehicle_type_id, "Vehicle type")
    await catalog_service.set_active(db, vehicle_type, body.active, current_user, ENTITY, request)
    return {"success": True, "data": catalog_service.serialize_vehicle_type(vehicle_type)}


@router.delete("/{vehicle_type_id}")
@write_rate_limit()
async def delete_vehicle_type(
    request: Request,
    vehicle_type_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete; refused while vehicles still use the type"""
    vehicle_type = await catalog_service.get_or_404(db, VehicleType, vehicle_type_id, "Vehicle type")

    in_use = await _vehicles_using(db, vehicle_type_id)
    if in_use:
        raise ResourceInUseError(f"Cannot delete: {in_use} vehicle(s) are using this type", in_use)

    await catalog_service.soft_delete(db, vehicle_type, current_user, ENTITY, request, changes={"name": vehicle_type.name})
    return {"success": True, "message": "Vehicle type deleted"}
