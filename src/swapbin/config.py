"""Centralized configuration management for SwapBin.

This module provides a Pydantic Settings-based configuration system that
consolidates database, raw data, logging, sync engine and partner credential
settings with environment variable integration and type validation.
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROFILE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class DatabaseConfig(BaseModel):
    """Database configuration settings."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(
        default=Path("data/duckdb/swapbin.duckdb"),
        description="Path to DuckDB database file",
    )
    create_dirs: bool = Field(
        default=True, description="Automatically create database directories"
    )

    @field_validator("path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure database path has correct extension."""
        if not str(v).endswith((".db", ".duckdb")):
            raise ValueError("Database path must end with .db or .duckdb")
        return v


class DataConfig(BaseModel):
    """Raw data output configuration."""

    model_config = ConfigDict(frozen=True)

    raw_data_path: Path = Field(
        default=Path("data/raw"), description="Path to raw data directory"
    )
    save_raw_data: bool = Field(
        default=True, description="Write synced transactions to Parquet files"
    )


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_to_file: bool = Field(default=False, description="Enable file logging")
    log_file_path: Path = Field(
        default=Path("logs/swapbin.log"), description="Path to log file"
    )
    max_file_size_mb: int = Field(
        default=50, ge=1, le=1000, description="Maximum log file size in MB"
    )
    backup_count: int = Field(
        default=5, ge=1, le=50, description="Number of log file backups to keep"
    )


class SyncConfig(BaseModel):
    """Pagination engine settings shared by every partner connector."""

    model_config = ConfigDict(frozen=True)

    page_size: int = Field(
        default=100, ge=1, le=1000, description="Records requested per page"
    )
    offset_rollback: int = Field(
        default=500,
        ge=0,
        description="Records re-scanned on the next run for offset cursors",
    )
    lookback_days: int = Field(
        default=5,
        ge=1,
        le=365,
        description="First-run window for watermark cursors",
    )
    max_pages: int | None = Field(
        default=None,
        ge=1,
        description="Optional safety bound on pages fetched per run",
    )
    request_timeout: float = Field(
        default=30.0, gt=0, le=300.0, description="HTTP timeout in seconds"
    )


class PartnerCredentials(BaseModel):
    """API credentials for a single exchange partner."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = Field(default=None, description="Partner API key")

    def as_mapping(self) -> dict[str, str]:
        """Return the configured credentials as a plain string mapping."""
        return {
            key: value
            for key, value in self.model_dump().items()
            if isinstance(value, str) and value
        }


class PartnersConfig(BaseModel):
    """Credentials for every supported exchange partner."""

    model_config = ConfigDict(frozen=True)

    changenow: PartnerCredentials = Field(default_factory=PartnerCredentials)
    godex: PartnerCredentials = Field(default_factory=PartnerCredentials)

    def credentials_for(self, partner_id: str) -> dict[str, str]:
        """Look up the credential mapping for a partner.

        Unknown partners get an empty mapping, which connectors treat as
        "not configured".
        """
        partner = getattr(self, partner_id, None)
        if not isinstance(partner, PartnerCredentials):
            return {}
        return partner.as_mapping()


class SwapBinSettings(BaseSettings):
    """Main application settings with environment variable integration.

    Environment variables are loaded with the SWAPBIN_ prefix.
    For nested configs, use double underscores:
    SWAPBIN_PARTNERS__GODEX__API_KEY, SWAPBIN_SYNC__MAX_PAGES

    Profile Support:
    - Loads from .env.{profile} files (e.g., .env.dev, .env.prod)
    - Falls back to .env
    """

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    partners: PartnersConfig = Field(default_factory=PartnersConfig)

    profile: str = Field(
        default="default",
        description="Profile name (e.g., personal, business)",
    )

    @field_validator("profile")
    @classmethod
    def validate_profile_name(cls, v: str) -> str:
        """Ensure profile name is safe for use as a filename."""
        if not v:
            raise ValueError("Profile name cannot be empty")
        if not _PROFILE_PATTERN.match(v):
            raise ValueError(
                "Profile name must contain only alphanumeric characters, "
                "dashes, and underscores"
            )
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Load settings from a profile-specific env file when one exists."""
        init_dict = init_settings.init_kwargs if init_settings else {}
        profile = init_dict.get("profile", "dev")  # type: ignore[reportUnknownMemberType]

        profile_env_file = Path(f".env.{profile}")
        if profile_env_file.exists():
            env_file = str(profile_env_file)
        else:
            env_file = ".env"

        from pydantic_settings import DotEnvSettingsSource

        custom_dotenv = DotEnvSettingsSource(
            settings_cls,
            env_file=env_file,
            env_file_encoding="utf-8",
        )

        # Later sources override earlier ones
        return (
            init_settings,
            env_settings,
            custom_dotenv,
            file_secret_settings,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SWAPBIN_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    def create_directories(self) -> None:
        """Create necessary directories for the application."""
        directories = [
            self.database.path.parent,
            self.data.raw_data_path,
        ]
        if self.logging.log_to_file:
            directories.append(self.logging.log_file_path.parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def configured_partners(self) -> list[str]:
        """Return the ids of partners that have credentials configured."""
        return [
            partner_id
            for partner_id in type(self.partners).model_fields
            if self.partners.credentials_for(partner_id)
        ]


_settings_cache: dict[str, SwapBinSettings] = {}
_current_profile: str = "default"


def _validate_profile(profile: str) -> None:
    if not profile:
        raise ValueError("Profile name cannot be empty")
    if not _PROFILE_PATTERN.match(profile):
        raise ValueError(
            f"Invalid profile: {profile}. "
            "Profile name must contain only alphanumeric characters, dashes, and underscores"
        )


def get_settings(profile: str | None = None) -> SwapBinSettings:
    """Get the settings instance for the specified profile.

    Settings are loaded once per profile and cached.

    Args:
        profile: Profile name. Defaults to the current profile.

    Returns:
        SwapBinSettings: The configuration instance for the profile

    Raises:
        ValueError: If configuration is invalid
    """
    if profile is None:
        profile = _current_profile

    if profile in _settings_cache:
        return _settings_cache[profile]

    try:
        settings = SwapBinSettings(profile=profile)
        if settings.database.create_dirs:
            settings.create_directories()
    except Exception as e:
        raise ValueError(f"Configuration error for profile '{profile}': {e}") from e

    _settings_cache[profile] = settings
    return settings


def set_current_profile(profile: str) -> None:
    """Set the current active profile.

    Raises:
        ValueError: If profile name contains invalid characters
    """
    global _current_profile

    _validate_profile(profile)
    _current_profile = profile


def get_current_profile() -> str:
    """Get the current active profile name."""
    return _current_profile


def reload_settings(profile: str | None = None) -> SwapBinSettings:
    """Reload settings from the environment, discarding the cached copy."""
    if profile is None:
        profile = _current_profile

    _settings_cache.pop(profile, None)
    return get_settings(profile)


def clear_settings_cache() -> None:
    """Drop every cached settings instance."""
    _settings_cache.clear()


def get_database_path() -> Path:
    """Get the configured database path for the current profile."""
    return get_settings().database.path


def get_raw_data_path() -> Path:
    """Get the configured raw data path for the current profile."""
    return get_settings().data.raw_data_path

