"""Application configuration using Pydantic settings."""

import os
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Reporting Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Authentication & Account Security
    MAX_LOGIN_ATTEMPTS: int = 5
    ACCOUNT_LOCKOUT_MINUTES: int = 30

    # Roles
    ADMIN_ROLE_NAME: str = "Admin"
    DEFAULT_ROLE_NAME: str = "User"

    # Identity providers, tried in order. "builtin" validates our own HS256
    # tokens, "entra" validates Microsoft Entra ID (Azure AD) RS256 tokens.
    IDENTITY_PROVIDER_CHAIN: list[str] = ["builtin"]
    ENTRA_TENANT_ID: str = ""
    ENTRA_CLIENT_ID: str = ""
    ENTRA_ADMIN_GROUP: str = ""  # Entra group object id that maps to the Admin role
    ENTRA_AUTO_PROVISION: bool = True

    # SSRS report server (used when a report does not carry its own server)
    SSRS_SERVER_URL: str = ""
    SSRS_USERNAME: Optional[str] = None
    SSRS_PASSWORD: Optional[str] = None
    SSRS_TIMEOUT_SECONDS: float = 60.0
    SSRS_REPORT_SERVER_PATH: str = "/"  # catalogue folder shown when browsing "/"
    SSRS_CATALOG_CACHE_SECONDS: int = 300

    # Power BI
    POWERBI_EMBED_BASE_URL: str = "https://app.powerbi.com/reportEmbed"
    # Service principal used by the admin workspace browser and embed tokens
    POWERBI_TENANT_ID: str = ""
    POWERBI_CLIENT_ID: str = ""
    POWERBI_CLIENT_SECRET: str = ""
    POWERBI_API_URL: str = "https://api.powerbi.com"
    POWERBI_AUTHORITY_URL: str = "https://login.microsoftonline.com"
    POWERBI_TIMEOUT_SECONDS: float = 30.0

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:4200"]

    # Trusted hosts for production (the validator rejects "*" in production)
    ALLOWED_HOSTS: list[str] = ["*"]

    # Pagination
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 500

    # Monitoring
    SENTRY_DSN: Optional[str] = None
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # 'text' or 'json' (json for production)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate SECRET_KEY is not using insecure defaults in production."""
        insecure_defaults = [
            "dev-secret-key-change-in-production",
            "your-secret-key-here",
            "change-me",
            "secret",
        ]

        # Read ENVIRONMENT directly; Settings is not fully initialized yet
        environment = os.getenv("ENVIRONMENT", "development")

        if environment == "production" and (v in insecure_defaults or len(v) < 32):
            raise ValueError(
                "Insecure SECRET_KEY detected in production! "
                "Generate a secure key with: openssl rand -hex 32"
            )

        return v

    @field_validator("ALLOWED_HOSTS")
    @classmethod
    def validate_allowed_hosts(cls, v: list[str]) -> list[str]:
        """Validate ALLOWED_HOSTS is configured for production."""
        environment = os.getenv("ENVIRONMENT", "development")

        if environment == "production" and "*" in v:
            raise ValueError(
                "ALLOWED_HOSTS=['*'] is insecure in production! "
                "Set specific domains like ['reports.example.com']"
            )

        return v

    @property
    def entra_issuer(self) -> str:
        return f"https://login.microsoftonline.com/{self.ENTRA_TENANT_ID}/v2.0"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
