"""Transfer services (route + vehicle type + rate pricing)"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from typing import Any, Dict, Optional

from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.catalog import Rate, POI
from app.models.service import Service
from app.models.user import User
from app.models.vehicle import VehicleType
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import ServiceCreate, ServiceUpdate
from app.schemas.common import ToggleStatusRequest
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction, snapshot, diff_changes
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

ENTITY = "Service"
MAX_NOTE_LENGTH = 500


def _validate_values(values: Dict[str, Any]) -> None:
    origin = values.get("origin_poi_id")
    if origin and origin == values.get("destination_poi_id"):
        raise ValidationError("Origin and destination must be different", field="destination_poi_id")
    price = values.get("price")
    if price is not None and price <= 0:
        raise ValidationError("Price must be greater than 0", field="price")
    note = values.get("note")
    if note is not None and len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"Note must be at most {MAX_NOTE_LENGTH} characters", field="note")


async def _ensure_unique_route(db: AsyncSession, values: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
    origin = values.get("origin_poi_id")
    origin_condition = Service.origin_poi_id == origin if origin else Service.origin_poi_id.is_(None)
    await catalog_service.ensure_unique(
        db, Service, Service.destination_poi_id, values["destination_poi_id"],
        "A service with this route, vehicle type and rate already exists", "destination_poi_id",
        exclude_id=exclude_id,
        extra_conditions=(
            origin_condition,
            Service.vehicle_type_id == values["vehicle_type_id"],
            Service.rate_id == values["rate_id"],
        ),
    )


async def _resolve_references(db: AsyncSession, service: Service, values: Dict[str, Any]) -> None:
    if "origin_poi_id" in values:
        service.origin_poi = (
            await catalog_service.get_or_404(db, POI, values["origin_poi_id"], "Origin POI")
            if values["origin_poi_id"] else None
        )
    if values.get("destination_poi_id"):
        service.destination_poi = await catalog_service.get_or_404(
            db, POI, values["destination_poi_id"], "Destination POI"
        )
    if values.get("vehicle_type_id"):
        service.vehicle_type = await catalog_service.get_or_404(
            db, VehicleType, values["vehicle_type_id"], "Vehicle type"
        )
    if values.get("rate_id"):
        service.rate = await catalog_service.get_or_404(db, Rate, values["rate_id"], "Rate")


@router.get("")
@read_rate_limit()
async def list_services(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    DataTables listing.

    Columns: 0 origin, 1 destination, 2 vehicle type, 3 rate, 4 price.
    Optional filters: rate_id, vehicle_type_id.
    """
    params = parse_datatables_params(request)
    origin = aliased(POI)
    destination = aliased(POI)

    base = (
        select(Service)
        .outerjoin(origin, Service.origin_poi_id == origin.id)
        .outerjoin(destination, Service.destination_poi_id == destination.id)
        .outerjoin(VehicleType, Service.vehicle_type_id == VehicleType.id)
        .outerjoin(Rate, Service.rate_id == Rate.id)
        .where(Service.exists == True)  # noqa: E712
    )

    query = base
    if params.search:
        term = f"%{params.search}%"
        query = query.where(or_(
            origin.name.ilike(term),
            destination.name.ilike(term),
            VehicleType.name.ilike(term),
            Rate.name.ilike(term),
        ))
    if params.filters.get("rate_id"):
        query = query.where(Service.rate_id == params.filters["rate_id"])
    if params.filters.get("vehicle_type_id"):
        query = query.where(Service.vehicle_type_id == params.filters["vehicle_type_id"])

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[origin.name, destination.name, VehicleType.name, Rate.name, Service.price],
        default_order=Service.created_at.desc(),
    )
    return datatables_response(params, listing, [catalog_service.serialize_service(s) for s in listing["items"]])


@router.get("/active")
async def list_active_services(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Service)
        .where(Service.exists == True, Service.active == True)  # noqa: E712
        .order_by(Service.created_at)
    )
    return {"success": True, "data": [catalog_service.serialize_service(s) for s in result.scalars().all()]}


@router.get("/{service_id}")
async def get_service(
    service_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = await catalog_service.get_or_404(db, Service, service_id)
    return {"success": True, "data": catalog_service.serialize_service(service)}


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_service(
    request: Request,
    data: ServiceCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    values = data.model_dump()
    if values.get("note") is not None:
        values["note"] = values["note"].strip()
    _validate_values(values)

    service = Service(price=values["price"], note=values.get("note") or None)
    await _resolve_references(db, service, values)
    await _ensure_unique_route(db, values)

    db.add(service)
    await db.flush()
    await audit_service.log(
        db, current_user, AuditAction.CREATE, ENTITY, service.id,
        changes={k: values[k] for k in ("origin_poi_id", "destination_poi_id", "vehicle_type_id", "rate_id", "price")},
        request=request
    )
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_service(service), "message": "Service created"}


@router.put("/{service_id}")
@write_rate_limit()
async def update_service(
    request: Request,
    service_id: str,
    data: ServiceUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    service = await catalog_service.get_or_404(db, Service, service_id)
    updates = data.model_dump(exclude_unset=True)
    for required in ("destination_poi_id", "vehicle_type_id", "rate_id", "price"):
        if required in updates and updates[required] is None:
            updates.pop(required)
    if updates.get("note") is not None:
        updates["note"] = updates["note"].strip()

    merged = {
        "origin_poi_id": service.origin_poi_id,
        "destination_poi_id": service.destination_poi_id,
        "vehicle_type_id": service.vehicle_type_id,
        "rate_id": service.rate_id,
        "price": service.price,
        "note": service.note,
        **updates,
    }
    _validate_values(merged)

    before = snapshot(service, updates.keys())
    await _resolve_references(db, service, updates)
    await _ensure_unique_route(db, merged, exclude_id=service_id)

    if "price" in updates:
        service.price = updates["price"]
    if "note" in updates:
        service.note = updates["note"] or None

    changes = diff_changes(before, {k: merged[k] for k in updates})
    if changes:
        await audit_service.log(db, current_user, AuditAction.UPDATE, ENTITY, service.id, changes=changes, request=request)
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_service(service), "message": "Service updated"}


@router.patch("/{service_id}/toggle-status")
@write_rate_limit()
async def toggle_service_status(
    request: Request,
    service_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    service = await catalog_service.get_or_404(db, Service, service_id)
    await catalog_service.set_active(db, service, body.active, current_user, ENTITY, request)
    return {"success": True, "data": catalog_service.serialize_service(service)}


@router.delete("/{service_id}")
@write_rate_limit()
async def delete_service(
    request: Request,
    service_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    service = await catalog_service.get_or_404(db, Service, service_id)
    await catalog_service.soft_delete(db, service, current_user, ENTITY, request)
    return {"success": True, "message": "Service deleted"}
