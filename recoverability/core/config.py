"""Core configuration settings.

Centralized configuration using Pydantic Settings for environment
variable management with sensible defaults.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from recoverability.schemas.results import Platform

DEFAULT_FRAMEWORKS = ["SOC2", "ISO 27001", "NIS2", "DORA"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "Veeam Recoverability Posture"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # =========================================================================
    # Assessment
    # =========================================================================

    organization: str = Field(default="Default", alias="ORGANIZATION")

    # Comma-separated platform tags that must be represented in every run
    sla_platforms: Annotated[list[Platform], NoDecode] = Field(default_factory=list, alias="SLA_PLATFORMS")

    # Applied when a record carries no RTO target of its own (0 = none)
    default_rto_target_minutes: int = Field(default=0, ge=0, alias="DEFAULT_RTO_TARGET_MINUTES")
    stale_days: int = Field(default=30, ge=1, alias="STALE_DAYS")
    positive_pass_rate_threshold: float = Field(default=95.0, ge=0, le=100)
    frameworks: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_FRAMEWORKS))

    # Source discovery (case-insensitive filename patterns)
    surebackup_file_pattern: str = "*ahv*.json"
    verification_file_pattern: str = "*azure*.json"
    restore_job_file_pattern: str = "*aws*.json"
    manual_file_pattern: str = "*.csv"

    # Output
    output_dir: str = Field(default="./posture-output", alias="OUTPUT_DIR")

    # =========================================================================
    # Snapshot History
    # =========================================================================

    # Unset disables trend tracking entirely
    snapshot_dir: str | None = Field(default=None, alias="SNAPSHOT_DIR")
    snapshot_backend: Literal["json", "sqlite"] = Field(default="json", alias="SNAPSHOT_BACKEND")
    snapshot_database_url: str | None = Field(default=None, alias="SNAPSHOT_DATABASE_URL")
    slow_query_threshold_ms: float = Field(default=500.0, alias="SLOW_QUERY_THRESHOLD_MS")
    enable_query_logging: bool = Field(default=False, alias="ENABLE_QUERY_LOGGING")

    # Notifications
    teams_webhook_url: str | None = None
    notification_enabled: bool = False
    notification_min_severity: str = "warning"  # info, warning, error, critical

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("sla_platforms", mode="before")
    @classmethod
    def parse_sla_platforms(cls, v: str | list | None) -> list[Platform]:
        """Parse SLA platforms from a comma-separated string or list."""
        if v is None:
            return []
        items = v.split(",") if isinstance(v, str) else v
        platforms: list[Platform] = []
        for item in items:
            if isinstance(item, str) and not item.strip():
                continue
            platform = Platform.parse(item)
            if platform is None:
                raise ValueError(
                    f"Unknown SLA platform: {item}. "
                    f"Valid platforms: {', '.join(p.value for p in Platform)}"
                )
            if platform not in platforms:
                platforms.append(platform)
        return platforms

    @field_validator("frameworks", mode="before")
    @classmethod
    def parse_frameworks(cls, v: str | list[str]) -> list[str]:
        """Parse frameworks from string or list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def trend_enabled(self) -> bool:
        """Check if a snapshot location is configured."""
        if self.snapshot_backend == "sqlite" and self.snapshot_database_url:
            return True
        return bool(self.snapshot_dir)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
