"""
User Service - administrator account management

Admins manage accounts at or below their own role level. Superadmin
accounts are invisible to plain admins, and nobody can deactivate or
delete their own account.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthorizationError, ConflictError, ResourceNotFoundError
from app.core.logging_config import logger
from app.core.security import get_password_hash
from app.models.user import User, UserRole
from app.services.audit_service import audit_service, AuditAction, diff_changes

ENTITY = "User"

# Fields an administrator may change on an existing account
EDITABLE_FIELDS = ("role", "first_name", "last_name", "phone", "department_id", "client_id")


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "phone": user.phone,
        "role": user.role.value,
        "role_level": user.role_level,
        "department_id": user.department_id,
        "client_id": user.client_id,
        "is_active": user.is_active,
        "oauth_provider": user.oauth_provider,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
        "last_login": user.last_login,
    }


def _plain(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value.value if isinstance(value, UserRole) else value for key, value in values.items()}


class UserService:

    @staticmethod
    def visible_query(actor: User):
        """Existing accounts the actor may see"""
        query = select(User).where(User.exists == True)  # noqa: E712
        if actor.role != UserRole.SUPERADMIN:
            query = query.where(User.role != UserRole.SUPERADMIN)
        return query

    @staticmethod
    def check_can_assign(actor: User, role: UserRole) -> None:
        if role.level > actor.role_level:
            raise AuthorizationError(f"Cannot assign the {role.value} role")

    @staticmethod
    def check_can_manage(actor: User, target: User) -> None:
        if target.role_level > actor.role_level:
            raise AuthorizationError("Cannot modify a user with a higher role")

    @staticmethod
    def check_not_self(actor: User, target: User, action: str) -> None:
        if str(actor.id) == str(target.id):
            raise AuthorizationError(f"Cannot {action} your own account")

    async def get(self, db: AsyncSession, user_id: str, actor: User) -> User:
        result = await db.execute(self.visible_query(actor).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise ResourceNotFoundError(ENTITY, user_id)
        return user

    async def create(
        self,
        db: AsyncSession,
        data: Dict[str, Any],
        actor: User,
        request: Optional[Request] = None,
    ) -> User:
        self.check_can_assign(actor, data["role"])
        email = data["email"].lower()

        # Soft-deleted accounts still hold their email and username
        conditions = [User.email == email]
        if data.get("username"):
            conditions.append(User.username == data["username"])
        existing = (await db.execute(select(User).where(or_(*conditions)))).scalars().first()
        if existing is not None:
            field = "email" if existing.email == email else "username"
            raise ConflictError(f"A user with this {field} already exists", field=field)

        user = User(
            email=email,
            username=data.get("username"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            phone=data.get("phone"),
            department_id=data.get("department_id"),
            client_id=data.get("client_id"),
            hashed_password=get_password_hash(data["password"]),
            role=data["role"],
        )
        db.add(user)
        await db.flush()
        await audit_service.log(
            db, actor, AuditAction.CREATE, ENTITY, user.id,
            changes={"email": email, "role": user.role.value},
            request=request,
        )
        await db.commit()
        await db.refresh(user)

        logger.info(f"[Users] {actor.email} created {user.role.value} account {user.id}")
        return user

    async def update(
        self,
        db: AsyncSession,
        user_id: str,
        data: Dict[str, Any],
        actor: User,
        request: Optional[Request] = None,
    ) -> User:
        user = await self.get(db, user_id, actor)
        self.check_can_manage(actor, user)

        updates = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
        if updates.get("role") is None:
            updates.pop("role", None)
        else:
            self.check_can_assign(actor, updates["role"])
            if updates["role"] != user.role:
                self.check_not_self(actor, user, "change the role of")

        before = _plain({key: getattr(user, key) for key in updates})
        for key, value in updates.items():
            setattr(user, key, value)
        changes = diff_changes(before, _plain(updates))

        if changes:
            await audit_service.log(db, actor, AuditAction.UPDATE, ENTITY, user.id, changes=changes, request=request)
        await db.commit()
        await db.refresh(user)
        return user

    async def set_active(
        self,
        db: AsyncSession,
        user_id: str,
        active: bool,
        actor: User,
        request: Optional[Request] = None,
    ) -> User:
        user = await self.get(db, user_id, actor)
        self.check_can_manage(actor, user)
        if not active:
            self.check_not_self(actor, user, "deactivate")

        previous = user.is_active
        user.is_active = active
        if previous != active:
            await audit_service.log(
                db, actor, AuditAction.UPDATE, ENTITY, user.id,
                changes={"is_active": {"old": previous, "new": active}},
                request=request,
            )
        await db.commit()
        await db.refresh(user)
        return user

    async def delete(
        self,
        db: AsyncSession,
        user_id: str,
        actor: User,
        request: Optional[Request] = None,
    ) -> None:
        """Soft delete: the row stays for audit history and cannot sign in"""
        user = await self.get(db, user_id, actor)
        self.check_can_manage(actor, user)
        self.check_not_self(actor, user, "delete")

        user.is_active = False
        user.exists = False
        await audit_service.log(
            db, actor, AuditAction.DELETE, ENTITY, user.id,
            changes={"email": user.email, "role": user.role.value},
            request=request,
        )
        await db.commit()
        logger.info(f"[Users] {actor.email} deleted account {user.id}")


user_service = UserService()
