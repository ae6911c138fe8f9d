"""
Activities (experiencias) sold by providers.

    GET    /provider-experiencias/all
    GET    /providers/{provider_id}/experiencias
    POST   /providers/{provider_id}/experiencias
    PUT    /providers/{provider_id}/experiencias/reorder
    GET    /providers/{provider_id}/experiencias/{experiencia_id}
    PUT    /providers/{provider_id}/experiencias/{experiencia_id}
    DELETE /providers/{provider_id}/experiencias/{experiencia_id}
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import ValidationError, ResourceNotFoundError
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.experience import Experience, ProviderExperiencia, PROVIDER_TYPE
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import (
    ProviderExperienciaCreate,
    ProviderExperienciaUpdate,
    ProviderExperienciaReorder,
)
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction, snapshot, diff_changes

router = APIRouter()

ENTITY = "ProviderExperiencia"
MAX_PER_PROVIDER = settings.MAX_EXPERIENCIAS_PER_PROVIDER


async def _provider(db: AsyncSession, provider_id: str) -> Experience:
    provider = await catalog_service.get_or_404(db, Experience, provider_id, "Provider")
    if provider.type != PROVIDER_TYPE:
        raise ValidationError("Experience is not a provider", field="provider_id")
    return provider


async def _experiencia(db: AsyncSession, provider_id: str, experiencia_id: str) -> ProviderExperiencia:
    result = await db.execute(
        select(ProviderExperiencia).where(
            ProviderExperiencia.id == experiencia_id,
            ProviderExperiencia.provider_id == provider_id,
            ProviderExperiencia.exists == True  # noqa: E712
        )
    )
    experiencia = result.scalar_one_or_none()
    if experiencia is None:
        raise ResourceNotFoundError("Experiencia", experiencia_id)
    return experiencia


async def _count(db: AsyncSession, provider_id: str) -> int:
    result = await db.execute(
        select(func.count(ProviderExperiencia.id)).where(
            ProviderExperiencia.provider_id == provider_id,
            ProviderExperiencia.exists == True  # noqa: E712
        )
    )
    return result.scalar() or 0


def _required_text(value, field: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{label} is required", field=field)
    return value


def _check_people(min_people, max_people) -> None:
    if min_people is not None and max_people is not None and min_people > max_people:
        raise ValidationError("min_people cannot exceed max_people", field="max_people")


async def _ensure_unique_name(db: AsyncSession, provider_id: str, name: str, exclude_id: str = None) -> None:
    await catalog_service.ensure_unique(
        db, ProviderExperiencia, ProviderExperiencia.name, name,
        "This provider already has an experiencia with that name", "name",
        exclude_id=exclude_id, case_insensitive=True,
        extra_conditions=(ProviderExperiencia.provider_id == provider_id,),
    )


@router.get("/provider-experiencias/all")
@read_rate_limit()
async def list_all_experiencias(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Every active experiencia across providers"""
    result = await db.execute(
        select(ProviderExperiencia)
        .join(Experience, ProviderExperiencia.provider_id == Experience.id)
        .where(
            ProviderExperiencia.exists == True,  # noqa: E712
            ProviderExperiencia.active == True,  # noqa: E712
            Experience.exists == True,  # noqa: E712
        )
        .order_by(Experience.name, ProviderExperiencia.display_order)
    )
    items = [catalog_service.serialize_provider_experiencia(e) for e in result.scalars().all()]
    return {"success": True, "data": items, "count": len(items)}


@router.get("/providers/{provider_id}/experiencias")
@read_rate_limit()
async def list_provider_experiencias(
    request: Request,
    provider_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    provider = await _provider(db, provider_id)
    result = await db.execute(
        select(ProviderExperiencia)
        .where(
            ProviderExperiencia.provider_id == provider.id,
            ProviderExperiencia.exists == True  # noqa: E712
        )
        .order_by(ProviderExperiencia.display_order, ProviderExperiencia.created_at)
    )
    items = [catalog_service.serialize_provider_experiencia(e) for e in result.scalars().all()]
    return {
        "success": True,
        "data": items,
        "provider": {"id": provider.id, "name": provider.name},
        "count": len(items),
    }


@router.post("/providers/{provider_id}/experiencias", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_provider_experiencia(
    request: Request,
    provider_id: str,
    data: ProviderExperienciaCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    provider = await _provider(db, provider_id)
    name = _required_text(data.name, "name", "Name")
    description = _required_text(data.description, "description", "Description")
    _check_people(data.min_people, data.max_people)

    count = await _count(db, provider.id)
    if count >= MAX_PER_PROVIDER:
        raise ValidationError(f"A provider can have at most {MAX_PER_PROVIDER} experiencias")
    await _ensure_unique_name(db, provider.id, name)

    experiencia = ProviderExperiencia(
        provider=provider,
        name=name,
        description=description,
        duration=data.duration,
        price=data.price,
        min_people=data.min_people,
        max_people=data.max_people,
        tipo=data.tipo,
        availability=data.availability,
        display_order=count,
    )
    db.add(experiencia)
    await db.flush()
    await audit_service.log(
        db, current_user, AuditAction.CREATE, ENTITY, experiencia.id,
        changes={"provider_id": provider.id, "name": name, "price": data.price},
        request=request
    )
    await db.commit()

    return {
        "success": True,
        "data": catalog_service.serialize_provider_experiencia(experiencia),
        "message": "Experiencia created",
    }


@router.put("/providers/{provider_id}/experiencias/reorder")
@write_rate_limit()
async def reorder_provider_experiencias(
    request: Request,
    provider_id: str,
    body: ProviderExperienciaReorder,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    provider = await _provider(db, provider_id)
    if not body.experiencias:
        raise ValidationError("experiencias must not be empty", field="experiencias")

    ids = [item.id for item in body.experiencias]
    if len(set(ids)) != len(ids):
        raise ValidationError("Duplicated experiencia ids", field="experiencias")

    result = await db.execute(
        select(ProviderExperiencia).where(
            ProviderExperiencia.id.in_(ids),
            ProviderExperiencia.provider_id == provider.id,
            ProviderExperiencia.exists == True  # noqa: E712
        )
    )
    by_id = {e.id: e for e in result.scalars().all()}
    unknown = [i for i in ids if i not in by_id]
    if unknown:
        raise ValidationError(
            f"Experiencias do not belong to this provider: {', '.join(unknown)}", field="experiencias"
        )

    for item in body.experiencias:
        by_id[item.id].display_order = item.order

    await audit_service.log(
        db, current_user, AuditAction.REORDER, ENTITY, provider.id,
        changes={"order": {item.id: item.order for item in body.experiencias}},
        request=request
    )
    await db.commit()

    ordered = sorted(by_id.values(), key=lambda e: e.display_order)
    return {
        "success": True,
        "data": [catalog_service.serialize_provider_experiencia(e) for e in ordered],
        "message": "Experiencias reordered",
    }


@router.get("/providers/{provider_id}/experiencias/{experiencia_id}")
async def get_provider_experiencia(
    provider_id: str,
    experiencia_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _provider(db, provider_id)
    experiencia = await _experiencia(db, provider_id, experiencia_id)
    return {"success": True, "data": catalog_service.serialize_provider_experiencia(experiencia)}


@router.put("/providers/{provider_id}/experiencias/{experiencia_id}")
@write_rate_limit()
async def update_provider_experiencia(
    request: Request,
    provider_id: str,
    experiencia_id: str,
    data: ProviderExperienciaUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await _provider(db, provider_id)
    experiencia = await _experiencia(db, provider_id, experiencia_id)
    updates = data.model_dump(exclude_unset=True)

    if "name" in updates:
        updates["name"] = _required_text(updates["name"], "name", "Name")
        await _ensure_unique_name(db, provider_id, updates["name"], exclude_id=experiencia_id)
    if "description" in updates:
        updates["description"] = _required_text(updates["description"], "description", "Description")
    if "price" in updates and updates["price"] is None:
        updates.pop("price")
    _check_people(
        updates.get("min_people", experiencia.min_people),
        updates.get("max_people", experiencia.max_people),
    )

    active = updates.pop("active", None)
    before = snapshot(experiencia, updates.keys())
    for key, value in updates.items():
        setattr(experiencia, key, value)
    changes = diff_changes(before, updates)

    if active is not None and active != experiencia.active:
        changes["active"] = {"old": experiencia.active, "new": active}
        if active:
            experiencia.activate()
        else:
            experiencia.deactivate()

    if changes:
        await audit_service.log(db, current_user, AuditAction.UPDATE, ENTITY, experiencia.id, changes=changes, request=request)
    await db.commit()

    return {
        "success": True,
        "data": catalog_service.serialize_provider_experiencia(experiencia),
        "message": "Experiencia updated",
    }


@router.delete("/providers/{provider_id}/experiencias/{experiencia_id}")
@write_rate_limit()
async def delete_provider_experiencia(
    request: Request,
    provider_id: str,
    experiencia_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await _provider(db, provider_id)
    experiencia = await _experiencia(db, provider_id, experiencia_id)
    await catalog_service.soft_delete(
        db, experiencia, current_user, ENTITY, request, changes={"name": experiencia.name}
    )
    return {"success": True, "message": "Experiencia deleted"}
