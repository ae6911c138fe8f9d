from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


def parse_csv_list(v: Any) -> List[str]:
    """Parse a comma-separated (or JSON) list setting"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in v.split(',') if item.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Travel Back Office"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # ==========================================
    # Redis (rate limit storage)
    # ==========================================
    REDIS_URL: str = ""

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # 8 hours
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    OAUTH_STATE_EXPIRE_MINUTES: int = 10
    BCRYPT_ROUNDS: int = 12  # 4 for tests (fast), 12 for prod (secure)
    AUTH_COOKIE_NAME: str = "access_token"
    AUTH_COOKIE_SECURE: bool = False

    # ==========================================
    # Google OAuth
    # ==========================================
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/auth/oauth/google/callback"

    # ==========================================
    # Microsoft (Azure AD) OAuth
    # ==========================================
    MICROSOFT_CLIENT_ID: str = ""
    MICROSOFT_CLIENT_SECRET: str = ""
    MICROSOFT_TENANT_ID: str = "common"
    MICROSOFT_REDIRECT_URI: str = "http://localhost:8000/auth/oauth/microsoft/callback"

    # ==========================================
    # Apple Sign-In
    # ==========================================
    APPLE_CLIENT_ID: str = ""  # Services ID
    APPLE_TEAM_ID: str = ""
    APPLE_KEY_ID: str = ""
    APPLE_PRIVATE_KEY: str = ""  # PEM contents of the .p8 key
    APPLE_REDIRECT_URI: str = "http://localhost:8000/auth/oauth/apple/callback"

    # ==========================================
    # AWS S3
    # ==========================================
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-2"
    S3_BUCKET_NAME: str = ""
    S3_ENDPOINT_URL: str = ""  # Set for MinIO / localstack
    S3_PREFIX: str = ""  # e.g. "dev/", "prod/"
    S3_ENCRYPTION_TYPE: str = "AES256"
    S3_DELETION_STRATEGY: str = "move"  # "soft", "move" or "hard"
    S3_PRESIGNED_URL_EXPIRES: int = 86400  # 24 hours

    @property
    def effective_bucket_name(self) -> str:
        """Get the effective S3 bucket name"""
        return self.S3_BUCKET_NAME or "backoffice-media"

    # ==========================================
    # Image Upload
    # ==========================================
    MAX_IMAGE_SIZE: int = 250 * 1024 * 1024  # 250MB
    ALLOWED_IMAGE_TYPES_STR: str = "image/jpeg,image/jpg,image/png,image/webp"

    @property
    def ALLOWED_IMAGE_TYPES(self) -> List[str]:
        """Parse allowed image MIME types from comma-separated string"""
        return parse_csv_list(self.ALLOWED_IMAGE_TYPES_STR)

    # ==========================================
    # Quotes
    # ==========================================
    QUOTE_IVA_RATE: float = 0.16
    QUOTE_VALIDITY_DAYS: int = 30
    MAX_EXPERIENCIAS_PER_PROVIDER: int = 50

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:8000,http://127.0.0.1:8000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_READ: str = "400/15 minutes"
    RATE_LIMIT_WRITE: str = "200/15 minutes"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def BASE_DIR(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def TEMPLATES_DIR(self) -> Path:
        return self.BASE_DIR / "templates"

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG

    def get_share_url(self, folio: str) -> str:
        """Get public share URL for a quote"""
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/quotes/{folio}"


# Create settings instance
settings = Settings()
