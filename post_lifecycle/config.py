"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate environment variables at startup.
The orchestrator never reads settings directly: it receives an immutable
LifecycleConfig built from them (or constructed by hand in tests).
"""

import math
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache
from typing import ClassVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        ...,
        description="Database connection URL",
    )

    # Retention
    DELETE_REMOVED_POSTS_AFTER_HOURS: int = Field(
        default=24,
        ge=0,
        description="Hours an author-deleted stub is kept before it is destroyed. 0 = destroy immediately.",
    )
    DEFAULT_LOCALE: str = Field(
        default="en",
        description="Locale used for the deleted-by-author placeholder text",
    )
    SWEEP_BATCH_SIZE: int = Field(
        default=500,
        ge=1,
        description="Max posts handled by a single destroy_stubs / destroy_old_hidden_posts run",
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR",
    )
    LOG_JSON: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False for human-readable output)",
    )

    SUPPORTED_LOCALES: ClassVar[set[str]] = {"en", "fr", "de"}

    @field_validator("DEFAULT_LOCALE")
    @classmethod
    def warn_unsupported_locale(cls, v: str) -> str:
        """Log a warning if the locale has no placeholder translation."""
        import logging

        if v not in cls.SUPPORTED_LOCALES:
            logging.getLogger(__name__).warning(
                f"Locale '{v}' has no deleted-by-author translation, falling back to 'en'."
            )
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()


# -----------------------------------------------------------------------------
# Lifecycle configuration
# -----------------------------------------------------------------------------

# Posts hidden by the community for this long are destroyed. Not configurable.
HIDDEN_POST_THRESHOLD = timedelta(days=30)

# {count} is the number of hours before the stub is destroyed.
DELETED_BY_AUTHOR_TEMPLATES = {
    "en": {
        "one": "(post withdrawn by author, will be automatically deleted in {count} hour unless flagged)",
        "other": "(post withdrawn by author, will be automatically deleted in {count} hours unless flagged)",
    },
    "fr": {
        "one": "(message retiré par son auteur, il sera supprimé automatiquement dans {count} heure sauf s'il est signalé)",
        "other": "(message retiré par son auteur, il sera supprimé automatiquement dans {count} heures sauf s'il est signalé)",
    },
    "de": {
        "one": "(Beitrag vom Verfasser zurückgezogen, wird in {count} Stunde automatisch gelöscht, sofern nicht gemeldet)",
        "other": "(Beitrag vom Verfasser zurückgezogen, wird in {count} Stunden automatisch gelöscht, sofern nicht gemeldet)",
    },
}


@dataclass(frozen=True)
class LifecycleConfig:
    """Retention knobs injected into PostDestroyer."""

    stub_retention_window: timedelta = timedelta(hours=24)
    hidden_post_threshold: timedelta = HIDDEN_POST_THRESHOLD
    locale: str = "en"
    sweep_batch_size: int = 500
    placeholder_templates: dict = field(default_factory=lambda: DELETED_BY_AUTHOR_TEMPLATES)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LifecycleConfig":
        settings = settings or get_settings()
        return cls(
            stub_retention_window=timedelta(hours=settings.DELETE_REMOVED_POSTS_AFTER_HOURS),
            locale=settings.DEFAULT_LOCALE,
            sweep_batch_size=settings.SWEEP_BATCH_SIZE,
        )

    @property
    def immediate_stub_removal(self) -> bool:
        """A zero window means author deletions skip the stub stage."""
        return self.stub_retention_window <= timedelta(0)

    @property
    def stub_retention_hours(self) -> int:
        return math.ceil(self.stub_retention_window.total_seconds() / 3600)

    def deleted_by_author_text(self) -> str:
        """Localized placeholder that replaces the raw of an author-deleted post."""
        templates = self.placeholder_templates.get(self.locale) or self.placeholder_templates["en"]
        count = self.stub_retention_hours
        template = templates["one"] if count == 1 else templates["other"]
        return template.format(count=count)
