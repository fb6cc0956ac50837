from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./procureflow.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "ProcureFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - JSON list or comma-separated
    CORS_ORIGINS: str = "*"

    # Procurement policy
    # Invoice subtotal may exceed the GRN received amount by this fraction
    # (tax/freight headroom). 0.20 allows up to 120% of the received amount.
    INVOICE_SUBTOTAL_TOLERANCE: Decimal = Decimal("0.20")
    INVOICE_DUE_DAYS: int = 30

    # Roles (comma-separated) that may settle a pending payment directly
    ADMIN_ROLES: str = "admin,super_admin"

    # Document numbering
    DOCUMENT_NUMBER_PADDING: int = 3
    SEQUENCE_MAX_RETRIES: int = 3

    @field_validator('INVOICE_SUBTOTAL_TOLERANCE')
    @classmethod
    def validate_tolerance(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("INVOICE_SUBTOTAL_TOLERANCE cannot be negative")
        return v

    @field_validator('LOG_LEVEL')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def cors_origins_list(self) -> list[str]:
        value = self.CORS_ORIGINS.strip()
        if value.startswith("["):
            return json.loads(value)
        return [origin.strip() for origin in value.split(',') if origin.strip()]

    @property
    def admin_roles(self) -> set[str]:
        return {role.strip().lower() for role in self.ADMIN_ROLES.split(',') if role.strip()}

    @property
    def invoice_subtotal_ceiling_factor(self) -> Decimal:
        return Decimal("1") + self.INVOICE_SUBTOTAL_TOLERANCE

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
