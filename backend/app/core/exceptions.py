"""
Custom Exceptions for the Travel Back Office
============================================

Services raise these instead of generic Exception so the API layer can map
them to a status code and a stable error code.

Usage:
    from app.core.exceptions import ResourceNotFoundError, ConflictError

    if not vehicle:
        raise ResourceNotFoundError("Vehicle", vehicle_id)

    if plate_taken:
        raise ConflictError("License plate already exists", field="license_plate")
"""

from typing import Optional, Any, Dict


class BackOfficeError(Exception):
    """Base exception for all back office errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(BackOfficeError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(BackOfficeError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(BackOfficeError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class QuoteNotFoundError(ResourceNotFoundError):
    """Quote not found"""

    def __init__(self, quote_id: str):
        super().__init__("Quote", quote_id)


class ImageNotFoundError(ResourceNotFoundError):
    """Image not found for the given parent"""

    def __init__(self, image_id: str):
        super().__init__("Image", image_id)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(BackOfficeError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidFileTypeError(ValidationError):
    """File type not allowed"""

    def __init__(self, file_type: str, allowed_types: list):
        super().__init__(
            f"File type '{file_type}' not allowed. Allowed: {', '.join(allowed_types)}"
        )
        self.code = "INVALID_FILE_TYPE"
        self.details = {"file_type": file_type, "allowed_types": allowed_types}


class FileTooLargeError(ValidationError):
    """Uploaded file exceeds the size limit"""

    status_code = 413

    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(
            f"File too large: {size_bytes} bytes (max {max_bytes // 1024 // 1024}MB)"
        )
        self.code = "FILE_TOO_LARGE"
        self.details = {"size_bytes": size_bytes, "max_bytes": max_bytes}


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(BackOfficeError):
    """Resource state conflicts with the request (duplicates, dependencies)"""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFLICT", details=details)


class ResourceInUseError(ConflictError):
    """Resource is referenced by other records and cannot be removed"""

    def __init__(self, message: str, dependency_count: int):
        super().__init__(message)
        self.code = "RESOURCE_IN_USE"
        self.details = {"dependency_count": dependency_count}


# ============================================
# Storage Errors
# ============================================

class StorageError(BackOfficeError):
    """Storage operation failed"""

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="STORAGE_ERROR", details=details)


class S3UploadError(StorageError):
    """S3 upload failed"""

    def __init__(self, key: str, message: str = "Upload failed"):
        super().__init__(f"Failed to upload to S3: {message}")
        self.code = "S3_UPLOAD_FAILED"
        self.details["s3_key"] = key


class S3DeleteError(StorageError):
    """S3 delete or move failed"""

    def __init__(self, key: str, message: str = "Delete failed"):
        super().__init__(f"Failed to delete from S3: {message}")
        self.code = "S3_DELETE_FAILED"
        self.details["s3_key"] = key


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: BackOfficeError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
