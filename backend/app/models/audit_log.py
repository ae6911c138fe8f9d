from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, generate_uuid, JSONType


class AuditLog(Base):
    """Audit trail of create/update/delete actions on domain records"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=True, index=True)
    username = Column(String(255), nullable=True)

    # Action details
    action = Column(String(50), nullable=False, index=True)  # CREATE, UPDATE, DELETE, LOGIN, ...
    entity_type = Column(String(50), nullable=False, index=True)  # Quote, Vehicle, ExperienceImage, ...
    entity_id = Column(GUID, nullable=True, index=True)

    # Change details
    changes = Column(JSONType, nullable=True)  # {"field": {"old": ..., "new": ...}}
    meta = Column("metadata", JSONType, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = relationship("User", foreign_keys=[user_id], lazy="selectin")

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type} by {self.user_id}>"
