from sqlalchemy import Column, Boolean, DateTime
from sqlalchemy.orm import declared_attr
from datetime import datetime
from typing import Optional

from app.core.types import GUID


class LifecycleMixin:
    """
    Soft-delete lifecycle shared by every domain record.

    `exists=False` marks a record as deleted; `active` toggles visibility in
    option lists without deleting. Listing queries filter on `exists`.
    """

    active = Column(Boolean, default=True, nullable=False)
    exists = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    @declared_attr
    def deleted_by_id(cls):
        return Column(GUID, nullable=True)

    @property
    def lifecycle_status(self) -> str:
        if not self.exists:
            return "deleted"
        return "active" if self.active else "archived"

    def activate(self) -> None:
        self.active = True
        self.exists = True

    def deactivate(self) -> None:
        self.active = False

    def soft_delete(self, user_id: Optional[str] = None) -> None:
        self.exists = False
        self.active = False
        self.deleted_at = datetime.utcnow()
        self.deleted_by_id = user_id

    def restore(self) -> None:
        """Bring a deleted record back; it stays inactive until activated"""
        self.exists = True
        self.active = False
        self.deleted_at = None
        self.deleted_by_id = None
