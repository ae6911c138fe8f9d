"""Experiences and providers"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.core.database import get_db
from app.core.exceptions import ValidationError, ResourceInUseError
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.experience import (
    Experience,
    ProviderExperiencia,
    experience_links,
    EXPERIENCE_TYPE,
    PROVIDER_TYPE,
)
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.catalog import ExperienceCreate, ExperienceUpdate
from app.schemas.common import ToggleStatusRequest
from app.services import catalog_service
from app.services.audit_service import audit_service, AuditAction, snapshot, diff_changes
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

ENTITY = "Experience"
EXPERIENCE_TYPES = (EXPERIENCE_TYPE, PROVIDER_TYPE)


def _check_type(value: str) -> str:
    if value not in EXPERIENCE_TYPES:
        raise ValidationError(f"Type must be one of: {', '.join(EXPERIENCE_TYPES)}", field="type")
    return value


async def _included_experiences(db: AsyncSession, ids: List[str], own_id: str = None) -> List[Experience]:
    """Resolve included experience ids, rejecting self references and unknown ids"""
    unique_ids = list(dict.fromkeys(ids))
    if own_id and own_id in unique_ids:
        raise ValidationError("An experience cannot include itself", field="experience_ids")
    if not unique_ids:
        return []
    result = await db.execute(
        select(Experience).where(Experience.id.in_(unique_ids), Experience.exists == True)  # noqa: E712
    )
    found = {e.id: e for e in result.scalars().all()}
    missing = [i for i in unique_ids if i not in found]
    if missing:
        raise ValidationError(f"Unknown experiences: {', '.join(missing)}", field="experience_ids")
    return [found[i] for i in unique_ids]


async def _dependencies(db: AsyncSession, experience: Experience) -> List[dict]:
    """Records that reference the experience: parents that include it and provider activities"""
    parents = await db.execute(
        select(Experience)
        .join(experience_links, experience_links.c.parent_id == Experience.id)
        .where(experience_links.c.child_id == experience.id, Experience.exists == True)  # noqa: E712
        .order_by(Experience.name)
    )
    dependencies = [
        {"id": p.id, "name": p.name, "type": p.type, "relation": "included_in"}
        for p in parents.scalars().all()
    ]
    if experience.type == PROVIDER_TYPE:
        activities = await db.execute(
            select(ProviderExperiencia)
            .where(
                ProviderExperiencia.provider_id == experience.id,
                ProviderExperiencia.exists == True  # noqa: E712
            )
            .order_by(ProviderExperiencia.display_order)
        )
        dependencies.extend(
            {"id": a.id, "name": a.name, "type": "ProviderExperiencia", "relation": "offered_by"}
            for a in activities.scalars().all()
        )
    return dependencies


@router.get("")
@read_rate_limit()
async def list_experiences(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """DataTables listing. Columns: 0 name, 1 type, 2 cost, 3 created at. Filter: type"""
    params = parse_datatables_params(request)
    base = select(Experience).where(Experience.exists == True)  # noqa: E712

    query = base
    if params.search:
        term = f"%{params.search}%"
        query = query.where(or_(Experience.name.ilike(term), Experience.description.ilike(term)))
    if params.filters.get("type"):
        query = query.where(Experience.type == params.filters["type"])

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[Experience.name, Experience.type, Experience.cost, Experience.created_at],
        default_order=Experience.name.asc(),
    )
    return datatables_response(
        params, listing, [catalog_service.serialize_experience(e) for e in listing["items"]]
    )


@router.get("/active")
async def list_active_experiences(
    type: str = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = select(Experience).where(Experience.exists == True, Experience.active == True)  # noqa: E712
    if type:
        query = query.where(Experience.type == type)
    result = await db.execute(query.order_by(Experience.name))
    return {
        "success": True,
        "data": [{"id": e.id, "name": e.name, "type": e.type, "cost": e.cost} for e in result.scalars().all()],
    }


@router.get("/{experience_id}")
async def get_experience(
    experience_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    experience = await catalog_service.get_or_404(db, Experience, experience_id)
    return {"success": True, "data": catalog_service.serialize_experience(experience)}


@router.get("/{experience_id}/dependencies")
async def get_experience_dependencies(
    experience_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Whether the experience can be changed or removed without affecting other records"""
    experience = await catalog_service.get_or_404(db, Experience, experience_id)
    dependencies = await _dependencies(db, experience)
    return {
        "success": True,
        "data": {
            "can_modify": not dependencies,
            "dependency_count": len(dependencies),
            "dependencies": dependencies,
            "target_name": experience.name,
            "target_type": experience.type,
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_experience(
    request: Request,
    data: ExperienceCreate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    name = data.name.strip()
    if not name:
        raise ValidationError("Name is required", field="name")
    included = await _included_experiences(db, data.experience_ids)

    experience = Experience(
        name=name,
        description=data.description,
        type=_check_type(data.type),
        cost=data.cost,
        experiences=included,
    )
    db.add(experience)
    await db.flush()
    await audit_service.log(
        db, current_user, AuditAction.CREATE, ENTITY, experience.id,
        changes={"name": name, "type": experience.type, "experience_ids": [e.id for e in included]},
        request=request
    )
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_experience(experience), "message": "Experience created"}


@router.put("/{experience_id}")
@write_rate_limit()
async def update_experience(
    request: Request,
    experience_id: str,
    data: ExperienceUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    experience = await catalog_service.get_or_404(db, Experience, experience_id)
    updates = data.model_dump(exclude_unset=True)
    included_ids = updates.pop("experience_ids", None)

    if "name" in updates:
        updates["name"] = (updates["name"] or "").strip()
        if not updates["name"]:
            raise ValidationError("Name is required", field="name")
    if "type" in updates:
        _check_type(updates["type"])
        if experience.type == PROVIDER_TYPE and updates["type"] != PROVIDER_TYPE:
            activities = await db.execute(
                select(func.count(ProviderExperiencia.id)).where(
                    ProviderExperiencia.provider_id == experience.id,
                    ProviderExperiencia.exists == True  # noqa: E712
                )
            )
            count = activities.scalar() or 0
            if count:
                raise ResourceInUseError(
                    f"Cannot change type: provider has {count} experiencia(s)", count
                )

    before = snapshot(experience, updates.keys())
    for key, value in updates.items():
        if value is not None or key == "description":
            setattr(experience, key, value)
    changes = diff_changes(before, updates)

    if included_ids is not None:
        previous = [e.id for e in experience.experiences]
        included = await _included_experiences(db, included_ids, own_id=experience.id)
        experience.experiences = included
        if previous != [e.id for e in included]:
            changes["experience_ids"] = {"old": previous, "new": [e.id for e in included]}

    if changes:
        await audit_service.log(db, current_user, AuditAction.UPDATE, ENTITY, experience.id, changes=changes, request=request)
    await db.commit()

    return {"success": True, "data": catalog_service.serialize_experience(experience), "message": "Experience updated"}


@router.patch("/{experience_id}/toggle-status")
@write_rate_limit()
async def toggle_experience_status(
    request: Request,
    experience_id: str,
    body: ToggleStatusRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    experience = await catalog_service.get_or_404(db, Experience, experience_id)
    await catalog_service.set_active(db, experience, body.active, current_user, ENTITY, request)
    return {"success": True, "data": catalog_service.serialize_experience(experience)}


@router.delete("/{experience_id}")
@write_rate_limit()
async def delete_experience(
    request: Request,
    experience_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete; refused while other records depend on the experience"""
    experience = await catalog_service.get_or_404(db, Experience, experience_id)
    dependencies = await _dependencies(db, experience)
    if dependencies:
        raise ResourceInUseError(
            f"Cannot delete: {len(dependencies)} record(s) depend on this experience", len(dependencies)
        )
    await catalog_service.soft_delete(db, experience, current_user, ENTITY, request, changes={"name": experience.name})
    return {"success": True, "message": "Experience deleted"}
