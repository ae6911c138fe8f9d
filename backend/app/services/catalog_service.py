"""
Catalog helpers shared by the CRUD endpoints: lookups, uniqueness checks,
lifecycle toggles and response serializers.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ResourceNotFoundError, ConflictError, ValidationError
from app.models.user import User
from app.services.audit_service import audit_service, AuditAction


async def get_or_404(db: AsyncSession, model, record_id: str, label: Optional[str] = None):
    """Existing (not soft-deleted) record by id, or ResourceNotFoundError"""
    result = await db.execute(
        select(model).where(model.id == record_id, model.exists == True)  # noqa: E712
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise ResourceNotFoundError(label or model.__name__, record_id)
    return record


async def get_active_or_400(db: AsyncSession, model, record_id: str, label: str, field: str):
    """Referenced record that must exist (404) and be active (400)"""
    record = await get_or_404(db, model, record_id, label)
    if not record.active:
        raise ValidationError(f"{label} is not active", field=field)
    return record


async def ensure_unique(
    db: AsyncSession,
    model,
    column,
    value: Any,
    message: str,
    field: str,
    exclude_id: Optional[str] = None,
    case_insensitive: bool = False,
    extra_conditions: tuple = (),
) -> None:
    """Raise ConflictError when another existing record has `value` in `column`"""
    if value is None:
        return
    condition = func.lower(column) == value.lower() if case_insensitive else column == value
    query = select(func.count(model.id)).where(
        condition,
        model.exists == True,  # noqa: E712
        *extra_conditions
    )
    if exclude_id:
        query = query.where(model.id != exclude_id)
    if ((await db.execute(query)).scalar() or 0) > 0:
        raise ConflictError(message, field=field)


async def set_active(
    db: AsyncSession,
    record,
    active: bool,
    user: User,
    entity_type: str,
    request: Optional[Request] = None,
) -> None:
    previous = record.active
    if active:
        record.activate()
    else:
        record.deactivate()
    await audit_service.log(
        db, user, AuditAction.UPDATE, entity_type, record.id,
        changes={"active": {"old": previous, "new": active}},
        request=request,
    )
    await db.commit()


async def soft_delete(
    db: AsyncSession,
    record,
    user: User,
    entity_type: str,
    request: Optional[Request] = None,
    changes: Optional[Dict[str, Any]] = None,
) -> None:
    record.soft_delete(str(user.id))
    await audit_service.log(db, user, AuditAction.DELETE, entity_type, record.id, changes=changes, request=request)
    await db.commit()


def lifecycle_fields(record) -> Dict[str, Any]:
    return {
        "active": record.active,
        "status": record.lifecycle_status,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


# ==================== Serializers ====================

def serialize_rate(rate) -> Dict[str, Any]:
    return {"id": rate.id, "name": rate.name, "color": rate.color, **lifecycle_fields(rate)}


def serialize_service_type(service_type) -> Dict[str, Any]:
    return {
        "id": service_type.id,
        "name": service_type.name,
        "description": service_type.description,
        **lifecycle_fields(service_type),
    }


def serialize_poi(poi) -> Dict[str, Any]:
    service_type = poi.service_type
    return {
        "id": poi.id,
        "name": poi.name,
        "service_type": {"id": service_type.id, "name": service_type.name} if service_type else None,
        **lifecycle_fields(poi),
    }


def serialize_vehicle_type(vehicle_type) -> Dict[str, Any]:
    return {
        "id": vehicle_type.id,
        "name": vehicle_type.name,
        "code": vehicle_type.code,
        "description": vehicle_type.description,
        "icon": vehicle_type.icon,
        "default_capacity": vehicle_type.default_capacity,
        "trunk_capacity": vehicle_type.trunk_capacity,
        "sort_order": vehicle_type.sort_order,
        **lifecycle_fields(vehicle_type),
    }


def serialize_vehicle(vehicle) -> Dict[str, Any]:
    vehicle_type = vehicle.vehicle_type
    rate = vehicle.rate
    return {
        "id": vehicle.id,
        "name": vehicle.name,
        "brand": vehicle.brand,
        "model": vehicle.model,
        "year": vehicle.year,
        "license_plate": vehicle.license_plate,
        "vin": vehicle.vin,
        "vehicle_type": {
            "id": vehicle_type.id,
            "name": vehicle_type.name,
            "code": vehicle_type.code,
        } if vehicle_type else None,
        "rate": {"id": rate.id, "name": rate.name} if rate else None,
        "capacity": vehicle.capacity,
        "color": vehicle.color,
        "maintenance_status": vehicle.maintenance_status,
        "insurance_expiry": vehicle.insurance_expiry,
        "main_image_id": vehicle.main_image_id,
        "is_available": vehicle.is_available,
        **lifecycle_fields(vehicle),
    }


def serialize_service(service) -> Dict[str, Any]:
    def poi_ref(poi):
        return {"id": poi.id, "name": poi.name} if poi else None

    return {
        "id": service.id,
        "origin_poi": poi_ref(service.origin_poi),
        "destination_poi": poi_ref(service.destination_poi),
        "vehicle_type": {
            "id": service.vehicle_type.id,
            "name": service.vehicle_type.name,
        } if service.vehicle_type else None,
        "rate": {"id": service.rate.id, "name": service.rate.name} if service.rate else None,
        "price": service.price,
        "note": service.note,
        **lifecycle_fields(service),
    }


def serialize_experience(experience) -> Dict[str, Any]:
    return {
        "id": experience.id,
        "name": experience.name,
        "description": experience.description,
        "type": experience.type,
        "cost": experience.cost,
        "main_image_id": experience.main_image_id,
        "experiences": [
            {"id": child.id, "name": child.name, "type": child.type}
            for child in experience.experiences
            if child.exists
        ],
        **lifecycle_fields(experience),
    }


def serialize_provider_experiencia(item) -> Dict[str, Any]:
    return {
        "id": item.id,
        "provider_id": item.provider_id,
        "provider_name": item.provider.name if item.provider else None,
        "name": item.name,
        "description": item.description,
        "duration": item.duration,
        "price": item.price,
        "min_people": item.min_people,
        "max_people": item.max_people,
        "tipo": item.tipo,
        "availability": item.availability,
        "display_order": item.display_order,
        **lifecycle_fields(item),
    }
