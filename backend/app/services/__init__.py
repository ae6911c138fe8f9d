from app.services.storage_service import StorageService, storage_service
from app.services.audit_service import AuditService, audit_service
from app.services.quote_service import QuoteService, quote_service
from app.services.image_service import ImageService, experience_image_service, vehicle_image_service

__all__ = [
    # Infrastructure
    "StorageService",
    "storage_service",
    "AuditService",
    "audit_service",
    # Domain services
    "QuoteService",
    "quote_service",
    "ImageService",
    "experience_image_service",
    "vehicle_image_service",
]
