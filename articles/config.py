"""
Configuration management for the Article Desk.

Uses pydantic-settings for type-safe configuration with environment variable support.
"""

from pathlib import Path
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    user: str = "article_desk"
    password: str = ""  # Required: Set POSTGRES_PASSWORD in .env
    host: str = "localhost"
    port: int = 5432
    db: str = "article_desk"

    # Full URL override (e.g. sqlite:///./desk.db for local work)
    url_override: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    @property
    def url(self) -> str:
        """Construct database URL."""
        if self.url_override:
            return self.url_override
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"


class StorageSettings(BaseSettings):
    """Blob storage settings for attachment files."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    upload_dir: Path = Field(default=Path("./uploads"))
    base_url: str = "/api/files"


class RuntimeSettings(BaseSettings):
    """Engine runtime settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v):
        """Accept log levels in any case."""
        return str(v).upper()


class APISettings(BaseSettings):
    """API server settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    reload: bool = False
    admin_key: str = ""  # Required for merge/delete: Set API_ADMIN_KEY in .env (use: openssl rand -hex 32)
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


class Settings(BaseSettings):
    """Main settings class that combines all settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    api: APISettings = Field(default_factory=APISettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience function for quick access
settings = get_settings()


# =============================================================================
# Classification vocabularies
# =============================================================================

# Multimedia labels an article can carry (a set per article)
MULTIMEDIA_TYPES = [
    "Photo",
    "Graphic",
    "Video",
    "Audio",
    "Other",
]

# Kinds of files attached to an article
ATTACHMENT_TYPES = [
    "word_document",
    "photo",
    "graphic",
    "other",
]
