from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Text
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    CLIENT = "client"
    DEPARTMENT_MANAGER = "department_manager"
    EMPLOYEE = "employee"
    EMPLOYEE_AMEXING = "employee_amexing"
    DRIVER = "driver"
    GUEST = "guest"

    @property
    def level(self) -> int:
        return ROLE_LEVELS[self]


# Higher level grants everything a lower level can do
ROLE_LEVELS = {
    UserRole.SUPERADMIN: 7,
    UserRole.ADMIN: 6,
    UserRole.CLIENT: 5,
    UserRole.DEPARTMENT_MANAGER: 4,
    UserRole.EMPLOYEE: 3,
    UserRole.EMPLOYEE_AMEXING: 3,
    UserRole.DRIVER: 2,
    UserRole.GUEST: 1,
}

ADMIN_ROLES = {UserRole.SUPERADMIN, UserRole.ADMIN}


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    hashed_password = Column(String(255), nullable=True)

    role = Column(SQLEnum(UserRole), default=UserRole.GUEST, nullable=False)
    department_id = Column(GUID, nullable=True, index=True)
    client_id = Column(GUID, nullable=True, index=True)  # Organization the user belongs to
    phone = Column(String(20), nullable=True)

    is_active = Column(Boolean, default=True)
    exists = Column(Boolean, default=True, nullable=False)

    # OAuth fields
    google_id = Column(String(255), unique=True, nullable=True)
    microsoft_id = Column(String(255), unique=True, nullable=True)
    apple_id = Column(String(255), unique=True, nullable=True)
    oauth_provider = Column(String(50), nullable=True)  # 'google', 'microsoft', 'apple' or None
    avatar_url = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email

    @property
    def role_level(self) -> int:
        return self.role.level

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self):
        return f"<User {self.email}>"
