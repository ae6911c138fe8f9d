"""
Audit trail endpoints (admin only).
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from datetime import datetime
from typing import Optional

from app.core.database import get_db
from app.models.audit_log import AuditLog
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.schemas.audit import AuditLogResponse
from app.services.audit_service import audit_service
from app.utils.pagination import paginate

router = APIRouter()


def _serialize(entry: AuditLog) -> dict:
    return AuditLogResponse(
        id=str(entry.id),
        user_id=str(entry.user_id) if entry.user_id else None,
        username=entry.username,
        action=entry.action,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        changes=entry.changes,
        metadata=entry.meta,
        ip_address=entry.ip_address,
        timestamp=entry.timestamp,
    ).model_dump()


async def _page(db: AsyncSession, conditions: list, page: int, page_size: int) -> dict:
    query = select(AuditLog)
    if conditions:
        query = query.where(and_(*conditions))
    result = await paginate(db, query.order_by(AuditLog.timestamp.desc()), page, page_size)
    result["items"] = [_serialize(entry) for entry in result["items"]]
    return {"success": True, **result}


@router.get("/logs")
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    user_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List audit entries with filtering and pagination"""
    conditions = []
    if action:
        conditions.append(AuditLog.action == action)
    if entity_type:
        conditions.append(AuditLog.entity_type == entity_type)
    if user_id:
        conditions.append(AuditLog.user_id == user_id)
    if start_date:
        conditions.append(AuditLog.timestamp >= start_date)
    if end_date:
        conditions.append(AuditLog.timestamp <= end_date)
    return await _page(db, conditions, page, page_size)


@router.get("/user/{user_id}")
async def list_user_audit_logs(
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Everything a user did"""
    return await _page(db, [AuditLog.user_id == user_id], page, page_size)


@router.get("/entity/{entity_type}")
async def list_entity_type_audit_logs(
    entity_type: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await _page(db, [AuditLog.entity_type == entity_type], page, page_size)


@router.get("/entity/{entity_type}/{entity_id}")
async def list_entity_audit_logs(
    entity_type: str,
    entity_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """History of a single record"""
    return await _page(
        db, [AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id], page, page_size
    )


@router.get("/statistics")
async def get_audit_statistics(
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Totals, breakdowns by action and entity type, and most active users"""
    return {"success": True, "data": await audit_service.statistics(db, days=days)}
