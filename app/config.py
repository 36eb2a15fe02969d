# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads layered configuration using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import get_settings
#   print(get_settings().LOGGING.minimum_level)
#
# Sources, lowest to highest precedence:
# 1. appsettings.json                 (base file)
# 2. appsettings.<ENVIRONMENT>.json   (optional overlay)
# 3. .env file in project root        (if exists)
# 4. System environment variables     (nested with "__", e.g.
#                                      LOGGING__MINIMUM_LEVEL=debug)
#
# The JSON files are read from APP_CONFIG_DIR (default: working directory).
# The overlay is picked by ENVIRONMENT as resolved from init arguments,
# environment variables (any case) or .env, so it always matches
# Settings.ENVIRONMENT.
# The Settings class validates all values at startup, catching configuration
# errors early rather than at runtime.
# =============================================================================

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from core.models.log_event import LoggingConfiguration

BASE_SETTINGS_FILE = "appsettings.json"


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into a copy of base; nested dicts merge, everything else replaces."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def settings_files(config_dir: str | Path | None = None, environment: str | None = None) -> list[Path]:
    """
    The JSON settings files for an environment, base file first.

    The directory defaults to APP_CONFIG_DIR (or the working directory) and
    the environment to "development".
    """
    directory = Path(config_dir or os.environ.get("APP_CONFIG_DIR") or ".")
    environment = environment or "development"
    return [
        directory / BASE_SETTINGS_FILE,
        directory / f"appsettings.{environment}.json",
    ]


def _resolve_environment(*sources: PydanticBaseSettingsSource) -> str | None:
    """ENVIRONMENT from the first source that sets it (init, env, .env)."""
    for source in sources:
        value = source().get("ENVIRONMENT")
        if value:
            return str(value)
    return None


class LayeredJsonSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source reading the base file and the environment overlay.

    Missing files are skipped; a file that exists but is not valid JSON
    fails startup.
    """

    def __init__(self, settings_cls: type[BaseSettings], files: list[Path]):
        super().__init__(settings_cls)
        self.files = files
        self._data: dict[str, Any] = {}
        for path in files:
            if path.is_file():
                with open(path, encoding="utf-8") as f:
                    self._data = _deep_merge(self._data, json.load(f))

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {
            name: self._data[name]
            for name in self.settings_cls.model_fields
            if name in self._data
        }


class Settings(BaseSettings):
    """
    Application settings loaded from settings files and the environment.

    Uses pydantic-settings to:
    - Merge the base and environment settings files
    - Let environment variables override any value
    - Validate types and constraints

    Access via `get_settings()` at the composition root.
    """

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    APP_NAME: str = Field(
        default="Forecast API",
        description="Application name (also attached to log events)"
    )

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Add a Trace-level debug sink (stderr) to the configured sinks"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:4200",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Forecast Settings
    # -------------------------------------------------------------------------

    FORECAST_SEED: int | None = Field(
        default=None,
        description="Seed for the forecast generator (unset: random per request)"
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    # Global minimum level, per-category overrides and sinks.
    # See appsettings.json for a full example.

    LOGGING: LoggingConfiguration = Field(
        default_factory=LoggingConfiguration,
        description="Log router configuration"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        # LOGGING__MINIMUM_LEVEL -> LOGGING.minimum_level
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The overlay follows ENVIRONMENT as the higher sources resolve it
        environment = _resolve_environment(init_settings, env_settings, dotenv_settings)

        # Earlier sources win
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            LayeredJsonSettingsSource(settings_cls, settings_files(environment=environment)),
        )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:4200, https://myapp.com" -> ["http://localhost:4200", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only read the settings files and validate
    once, not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()
