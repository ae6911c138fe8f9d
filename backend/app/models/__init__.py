# Re-export all models for convenient imports
from app.models.user import User, UserRole, ADMIN_ROLES
from app.models.catalog import Rate, ServiceType, POI
from app.models.vehicle import VehicleType, Vehicle, VehicleImage, MaintenanceStatus
from app.models.experience import (
    Experience,
    ExperienceImage,
    ProviderExperiencia,
    experience_links,
    EXPERIENCE_TYPE,
    PROVIDER_TYPE,
)
from app.models.service import Service
from app.models.quote import Quote, QuoteStatus, UPDATABLE_STATUSES
from app.models.audit_log import AuditLog

__all__ = [
    # User
    "User",
    "UserRole",
    "ADMIN_ROLES",
    # Catalog
    "Rate",
    "ServiceType",
    "POI",
    # Fleet
    "VehicleType",
    "Vehicle",
    "VehicleImage",
    "MaintenanceStatus",
    # Experiences
    "Experience",
    "ExperienceImage",
    "ProviderExperiencia",
    "experience_links",
    "EXPERIENCE_TYPE",
    "PROVIDER_TYPE",
    # Transfers
    "Service",
    # Quotes
    "Quote",
    "QuoteStatus",
    "UPDATABLE_STATUSES",
    # Admin
    "AuditLog",
]
