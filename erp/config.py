from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # App Settings
    APP_NAME: str = "ERP Suite Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    PORT: int = 8000

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # File storage for export and print artifacts
    UPLOAD_DIR: str = "uploads"

    # Company (seller) details used for GST place-of-supply decisions
    COMPANY_NAME: str = "ERP Suite Pvt Ltd"
    COMPANY_STATE: str = "Karnataka"
    COMPANY_GSTIN: Optional[str] = None

    # HR policy
    LEAVE_ENTITLEMENT_DAYS: int = 21  # Annual leave entitlement per employee
    STANDARD_WORKING_HOURS: int = 8  # Hours beyond this count as overtime
    DEFAULT_WORKING_DAYS: int = 22  # Working days used by bulk payroll generation

    # Export / print job retention
    EXPORT_EXPIRY_DAYS: int = 7
    PRINT_EXPIRY_HOURS: int = 24
    STALE_JOB_MINUTES: int = 60  # PENDING/PROCESSING jobs older than this are marked FAILED by cleanup

    # Background jobs
    SCHEDULER_ENABLED: bool = True

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins with blanks removed."""
        return [origin for origin in self.CORS_ORIGINS if origin]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
