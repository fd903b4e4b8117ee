"""
Settings for the attendance engine, read from the environment and `.env`
"""
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

APP_ENVS = ("local", "staging", "prod")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Storage and auth (required)
    DATABASE_URL: str = Field(..., description="PostgreSQL URL, or sqlite:/// for local runs")
    JWT_SECRET_KEY: str = Field(..., description="Signing key for bearer tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="Bearer token lifetime")

    APP_ENV: str = Field(default="local", description="local, staging or prod")
    LOG_LEVEL: str = Field(default="INFO")
    ALLOWED_ORIGINS: str = Field(default="*", description="Comma-separated CORS origins; '*' outside prod only")
    VERSION: Optional[str] = Field(default=None, description="Build identifier (git SHA or semver)")

    # Work dates and shift instants are derived in this zone; timestamps are stored in UTC
    ORG_TIMEZONE: str = Field(default="Asia/Kolkata", description="Organization timezone (IANA name)")
    # ISO weekdays (Mon=1 .. Sun=7) used when no working rule is configured
    DEFAULT_WEEKEND_DAYS: List[int] = Field(default=[6, 7])

    FINALIZATION_BUFFER_MINUTES: int = Field(
        default=30,
        description="Minutes after shift end before the current day's record may be finalized",
    )
    FINALIZATION_MAX_WORKERS: int = Field(default=1, description="Worker threads for the finalization job")
    EVENT_TIME_TOLERANCE_SECONDS: int = Field(
        default=0,
        description="How far a client-captured event time may lead the server clock",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        if v not in APP_ENVS:
            raise ValueError(f"APP_ENV must be one of {list(APP_ENVS)}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {list(LOG_LEVELS)}")
        return v.upper()

    @field_validator("ORG_TIMEZONE")
    @classmethod
    def validate_org_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"ORG_TIMEZONE is not a known timezone: {v}")
        return v

    @field_validator("DEFAULT_WEEKEND_DAYS")
    @classmethod
    def validate_weekend_days(cls, v: List[int]) -> List[int]:
        if any(day < 1 or day > 7 for day in v):
            raise ValueError("DEFAULT_WEEKEND_DAYS must contain ISO weekdays between 1 and 7")
        return sorted(set(v))

    @field_validator("FINALIZATION_MAX_WORKERS")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("FINALIZATION_MAX_WORKERS must be at least 1")
        return v

    def validate_production(self) -> None:
        """
        Extra checks for APP_ENV=prod.

        Raises:
            ValueError: JWT_SECRET_KEY shorter than 32 characters, or wildcard/empty ALLOWED_ORIGINS
        """
        if self.APP_ENV != "prod":
            return
        if len(self.JWT_SECRET_KEY) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters in production environment")
        if not self.ALLOWED_ORIGINS or self.ALLOWED_ORIGINS == "*":
            raise ValueError("ALLOWED_ORIGINS must be explicitly set (not '*') in production environment")

    def get_allowed_origins_list(self) -> List[str]:
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()

if settings.APP_ENV == "prod":
    settings.validate_production()
