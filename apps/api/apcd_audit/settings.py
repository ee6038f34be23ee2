"""Application settings and configuration."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_POSTGRES_PASSWORD = "apcd_dev_password"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "apcd"
    postgres_password: str = DEFAULT_POSTGRES_PASSWORD
    postgres_db: str = "apcd"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    # Redis (Celery broker for scheduled verification)
    redis_url: str = "redis://localhost:6379/0"

    # Environment
    environment: str = "development"

    # Logging
    log_level: str = "INFO"

    # Audit chain verification
    audit_verify_chunk_size: int = 500
    audit_verify_timeout_seconds: Optional[float] = None  # None disables the deadline
    audit_status_cache_policy: Literal["full_only", "any"] = "full_only"
    audit_recent_default_hours: int = 24

    # Periodic verification (worker beat schedule)
    audit_verify_schedule_cron: str = "0 2 * * *"
    audit_verify_schedule_hours: int = 24

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    def validate_production_settings(self):
        """Validate settings for production environment."""
        if self.audit_verify_chunk_size <= 0:
            raise ValueError("AUDIT_VERIFY_CHUNK_SIZE must be > 0")
        if self.audit_recent_default_hours <= 0:
            raise ValueError("AUDIT_RECENT_DEFAULT_HOURS must be > 0")
        if len(self.audit_verify_schedule_cron.split()) != 5:
            raise ValueError(
                "AUDIT_VERIFY_SCHEDULE_CRON must be a 5-field cron expression "
                f"(got '{self.audit_verify_schedule_cron}')"
            )

        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if not self.database_url and self.postgres_password == DEFAULT_POSTGRES_PASSWORD:
                raise ValueError(
                    "POSTGRES_PASSWORD (or DATABASE_URL) is required in production. "
                    "Do not use the development default."
                )
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must list explicit origins in production."
                )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
