# Pydantic schemas
from app.schemas.auth import (
    UserRegister,
    UserLogin,
    RefreshTokenRequest,
    ChangePasswordRequest,
    Token,
    UserResponse,
    LoginResponse,
    OAuthCallbackRequest,
    OAuthUrlResponse,
    OAuthTokenResponse,
)
from app.schemas.common import ToggleStatusRequest, ReorderImagesRequest
from app.schemas.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteStatusUpdate,
    ServiceItemsUpdate,
    ShareLinkResponse,
)
from app.schemas.audit import AuditLogResponse
