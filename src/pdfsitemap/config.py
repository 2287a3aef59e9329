"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments (how an embedding application overrides them)
  2. Environment variables  (PDFSITEMAP__CACHE__TTL_HOURS=6)
  3. pdfsitemap.yaml        (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional. All fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("pdfsitemap")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")
_DEFAULT_UPLOADS_DIR = str(Path(_DEFAULT_DATA_DIR) / "uploads")


def _find_config_file() -> str | None:
    """Return the path of the first pdfsitemap.yaml found, or None."""
    candidates = [
        Path("pdfsitemap.yaml"),
        Path(platformdirs.user_config_dir("pdfsitemap")) / "pdfsitemap.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class UploadsSettings(BaseModel):
    base_dir: str = _DEFAULT_UPLOADS_DIR
    base_url: str = "http://localhost/uploads"


class SitemapSettings(BaseModel):
    name: str = "pdf_files"
    cache_key: str = "pdf-sitemap"
    site_url: str = "http://localhost"
    extensions: frozenset[str] = frozenset({"pdf"})
    stylesheet_url: str | None = None

    @field_validator("extensions")
    @classmethod
    def _normalise_extensions(cls, value: frozenset[str]) -> frozenset[str]:
        normalised = frozenset(ext.strip().lstrip(".").lower() for ext in value)
        normalised = normalised - {""}
        if not normalised:
            raise ValueError("at least one file extension is required")
        return normalised


class CacheSettings(BaseModel):
    backend: Literal["sqlite", "memory"] = "sqlite"
    ttl_hours: float = Field(default=24, gt=0)
    db_path: str = _DEFAULT_DB_PATH


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: PDFSITEMAP__CACHE__BACKEND=memory
        env_prefix="PDFSITEMAP__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    uploads: UploadsSettings = UploadsSettings()
    sitemap: SitemapSettings = SitemapSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
