"""Fleet vehicles"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict

from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.catalog import Rate
from app.models.user import User
from app.models.vehicle import Vehicle, VehicleType, MaintenanceStatus
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import VehicleCreate, VehicleUpdate
from app.schemas.common import ToggleStatusRequest
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction, snapshot, diff_changes
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

ENTITY = "Vehicle"
MAINTENANCE_STATUSES = [s.value for s in MaintenanceStatus]


async def _apply_references(db: AsyncSession, vehicle: Vehicle, values: Dict[str, Any]) -> None:
    """Resolve vehicle type and rate ids onto the vehicle"""
    if values.get("vehicle_type_id"):
        vehicle.vehicle_type = await catalog_service.get_or_404(
            db, VehicleType, values["vehicle_type_id"], "Vehicle type"
        )
    if "rate_id" in values:
        if values["rate_id"]:
            vehicle.rate = await catalog_service.get_active_or_400(db, Rate, values["rate_id"], "Rate", "rate_id")
        else:
            vehicle.rate = None


async def _check_identifiers(db: AsyncSession, values: Dict[str, Any], exclude_id: str = None) -> None:
    await catalog_service.ensure_unique(
        db, Vehicle, Vehicle.license_plate, values.get("license_plate"),
        "A vehicle with this license plate already exists", "license_plate",
        exclude_id=exclude_id, case_insensitive=True
    )
    if values.get("vin"):
        await catalog_service.ensure_unique(
            db, Vehicle, Vehicle.vin, values["vin"],
            "A vehicle with this VIN already exists", "vin",
            exclude_id=exclude_id, case_insensitive=True
        )


def _normalize(values: Dict[str, Any]) -> Dict[str, Any]:
    if values.get("license_plate"):
        values["license_plate"] = values["license_plate"].strip().upper()
    if values.get("vin"):
        values["vin"] = values["vin"].strip().upper()
    status_value = values.get("maintenance_status")
    if status_value is not None and status_value not in MAINTENANCE_STATUSES:
        raise ValidationError(
            f"Invalid maintenance status. Allowed: {', '.join(MAINTENANCE_STATUSES)}",
            field="maintenance_status"
        )
    return values


@router.get("")
@read_rate_limit()
async def list_vehicles(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    DataTables listing.

    Columns: 0 name, 1 brand, 2 model, 3 year, 4 license plate, 5 capacity,
    6 maintenance status. Optional filters: vehicle_type_id, maintenance_status.
    """
    params = parse_datatables_params(request)
    base = select(Vehicle).where(Vehicle.exists == True)  # noqa: E712

    query = base
    if params.search:
        term = f"%{params.search}%"
        query = query.where(or_(
            Vehicle.name.ilike(term),
            Vehicle.brand.ilike(term),
            Vehicle.model.ilike(term),
            Vehicle.license_plate.ilike(term),
        ))
    if params.filters.get("vehicle_type_id"):
        query = query.where(Vehicle.vehicle_type_id == params.filters["vehicle_type_id"])
    if params.filters.get("maintenance_status"):
        query = query.where(Vehicle.maintenance_status == params.filters["maintenance_status"])

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[
            Vehicle.name,
            Vehicle.brand,
            Vehicle.model,
            Vehicle.year,
            Vehicle.license_plate,
            Vehicle.capacity,
            Vehicle.maintenance_status,
        ],
        default_order=Vehicle.created_at.desc(),
    )
    return datatables_response(params, listing, [catalog_service.serialize_vehicle(v) for v in listing["items"]])


@router.get("/active")
async def list_available_vehicles(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Active, operational vehicles for select inputs"""
    result = await db.execute(
        select(Vehicle)
        .where(
            Vehicle.exists == True,  # noqa: E712
            Vehicle.active == True,  # noqa: E712
            Vehicle.maintenance_status == MaintenanceStatus.OPERATIONAL.value,
        )
        .order_by(Vehicle.name)
    )
    return {
        "success": True,
        "data": [
            {"id": v.id, "name": v.name, "license_plate": v.license_plate, "capacity": v.capacity}
            for v in result.scalars().all()
        ],
    }


@router.get("/{vehicle_id}")
async def get_vehicle(
    vehicle_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await catalog_service.get_or_404(db, Vehicle, vehicle_id)
    return {"success": True, "data": catalog_service.serialize_vehicle(vehicle)}


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_vehicle(
    request: Request,
    data: VehicleCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    values = _normalize(data.model_dump())
    await _check_identifiers(db, values)

    vehicle = Vehicle(
        name=values["name"].strip(),
        brand=values["brand"].strip(),
        model=values["model"].strip(),
        year=values["year"],
        license_plate=values["license_plate"],
        vin=values.get("vin") or None,
        capacity=values["capacity"],
        color=values.get("color"),
        maintenance_status=values.get("maintenance_status") or MaintenanceStatus.OPERATIONAL.value,
        insurance_expiry=values.get("insurance_expiry"),
    )
    await _apply_references(db, vehicle, values)

    db.add(vehicle)
    await db.flush()
    await audit_service.log(
        db, current_user, AuditAction.CREATE, ENTITY, vehicle.id,
        changes={"license_plate": vehicle.license_plate, "name": vehicle.name}, request=request
    )
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_vehicle(vehicle), "message": "Vehicle created"}


@router.put("/{vehicle_id}")
@write_rate_limit()
async def update_vehicle(
    request: Request,
    vehicle_id: str,
    data: VehicleUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await catalog_service.get_or_404(db, Vehicle, vehicle_id)
    values = _normalize(data.model_dump(exclude_unset=True))
    await _check_identifiers(db, values, exclude_id=vehicle_id)

    references = {k: values.pop(k) for k in ("vehicle_type_id", "rate_id") if k in values}
    before = snapshot(vehicle, list(values.keys()) + list(references.keys()))

    for key, value in values.items():
        if value is not None or key in ("vin", "color", "insurance_expiry"):
            setattr(vehicle, key, value)
    await _apply_references(db, vehicle, references)

    after = snapshot(vehicle, before.keys())
    after.update({k: v for k, v in references.items()})
    changes = diff_changes(before, after)
    if changes:
        await audit_service.log(db, current_user, AuditAction.UPDATE, ENTITY, vehicle.id, changes=changes, request=request)
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_vehicle(vehicle), "message": "Vehicle updated"}


@router.patch("/{vehicle_id}/toggle-status")
@write_rate_limit()
async def toggle_vehicle_status(
    request: Request,
    vehicle_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await catalog_service.get_or_404(db, Vehicle, vehicle_id)
    await catalog_service.set_active(db, vehicle, body.active, current_user, ENTITY, request)
    return {"success": True, "data": catalog_service.serialize_vehicle(vehicle)}


@router.delete("/{vehicle_id}")
@write_rate_limit()
async def delete_vehicle(
    request: Request,
    vehicle_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await catalog_service.get_or_404(db, Vehicle, vehicle_id)
    await catalog_service.soft_delete(
        db, vehicle, current_user, ENTITY, request, changes={"license_plate": vehicle.license_plate}
    )
    return {"success": True, "message": "Vehicle deleted"}
