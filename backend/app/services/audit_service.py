"""
Audit Service - records data changes in the audit trail

Every entry is added to the caller's session, so it commits (or rolls back)
together with the change it describes.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Iterable, List
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import logger, get_request_id
from app.models.audit_log import AuditLog
from app.models.user import User


class AuditAction:
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    DUPLICATE = "DUPLICATE"
    SHARE = "SHARE"
    UPLOAD = "UPLOAD"
    REORDER = "REORDER"
    SET_PRIMARY = "SET_PRIMARY"


def snapshot(obj: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """Plain dict of the given attributes, for diffing"""
    return {name: getattr(obj, name, None) for name in fields}


def diff_changes(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """`{field: {"old": ..., "new": ...}}` for every field whose value changed"""
    return {
        key: {"old": before.get(key), "new": value}
        for key, value in after.items()
        if before.get(key) != value
    }


class AuditService:
    """Writes and queries audit log entries"""

    async def log(
        self,
        db: AsyncSession,
        user: Optional[User],
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        meta = dict(metadata or {})
        ip_address = None
        user_agent = None
        if request is not None:
            ip_address = request.client.host if request.client else None
            user_agent = request.headers.get("user-agent")
            meta.setdefault("request_id", getattr(request.state, "request_id", None) or get_request_id())
            meta.setdefault("path", request.url.path)

        entry = AuditLog(
            user_id=str(user.id) if user else None,
            username=user.email if user else None,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id else None,
            changes=jsonable_encoder(changes) if changes else None,
            meta=jsonable_encoder(meta) if meta else None,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(entry)

        logger.log_audit_event(
            action,
            entity_type,
            entity_id=str(entity_id) if entity_id else None,
            actor=user.email if user else None,
        )
        return entry

    async def statistics(self, db: AsyncSession, days: int = 30, top: int = 10) -> Dict[str, Any]:
        """Totals, counts by action and entity type, and most active users"""
        since = datetime.utcnow() - timedelta(days=days)
        window = AuditLog.timestamp >= since

        total = (await db.execute(select(func.count(AuditLog.id)))).scalar() or 0
        recent = (await db.execute(select(func.count(AuditLog.id)).where(window))).scalar() or 0

        by_action = await db.execute(
            select(AuditLog.action, func.count(AuditLog.id))
            .where(window)
            .group_by(AuditLog.action)
        )
        by_entity = await db.execute(
            select(AuditLog.entity_type, func.count(AuditLog.id))
            .where(window)
            .group_by(AuditLog.entity_type)
        )
        top_users = await db.execute(
            select(AuditLog.user_id, AuditLog.username, func.count(AuditLog.id).label("count"))
            .where(window, AuditLog.user_id.isnot(None))
            .group_by(AuditLog.user_id, AuditLog.username)
            .order_by(desc("count"))
            .limit(top)
        )

        return {
            "period_days": days,
            "total_entries": total,
            "entries_in_period": recent,
            "by_action": {action: count for action, count in by_action.all()},
            "by_entity_type": {entity: count for entity, count in by_entity.all()},
            "top_users": [
                {"user_id": user_id, "username": username, "count": count}
                for user_id, username, count in top_users.all()
            ],
        }

    async def recent(self, db: AsyncSession, limit: int = 10) -> List[AuditLog]:
        result = await db.execute(
            select(AuditLog).order_by(AuditLog.timestamp.desc()).limit(limit)
        )
        return list(result.scalars().all())


audit_service = AuditService()
