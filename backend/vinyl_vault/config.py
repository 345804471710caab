"""Vinyl Vault application configuration.

Loads settings from a single YAML file:
  * vinylvault.settings.yaml  (override with VINYL_VAULT_SETTINGS)

The resulting AppConfig is frozen. It is built once at startup and handed
to every component that needs it; nothing reads configuration from module
globals.

Environment overrides (applied after the file):
  * VINYL_VAULT_UPLOAD_DIR
  * VINYL_VAULT_DB_PATH
  * VINYL_VAULT_SESSION_SECRET
  * VINYL_VAULT_LOG_LEVEL
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("vinylvault.settings.yaml")
SETTINGS_ENV = "VINYL_VAULT_SETTINGS"

MIB = 1 << 20


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(_Frozen):
    host:            str       = "0.0.0.0"
    port:            int       = 8080
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(_Frozen):
    level: str = "info"


class DatabaseSettings(_Frozen):
    path: str = "vinylvault.duckdb"


class StorageSettings(_Frozen):
    """Managed roots and upload limits.

    ``audio_dir`` and ``cover_art_dir`` default to subdirectories of
    ``upload_dir``. When set explicitly they must still lie inside it, since
    stored references are always relative to ``upload_dir``.
    """
    upload_dir:          str = "./uploads"
    audio_dir:           str = ""
    cover_art_dir:       str = ""
    max_audio_file_size: int = Field(default=500 * MIB, gt=0)
    max_cover_art_size:  int = Field(default=10 * MIB, gt=0)
    max_archive_files:   int = Field(default=100, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _default_subdirs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        upload_dir = data.get("upload_dir") or "./uploads"
        data["upload_dir"] = upload_dir
        if not data.get("audio_dir"):
            data["audio_dir"] = str(Path(upload_dir) / "audio")
        if not data.get("cover_art_dir"):
            data["cover_art_dir"] = str(Path(upload_dir) / "covers")
        return data

    @model_validator(mode="after")
    def _subdirs_inside_upload_dir(self) -> "StorageSettings":
        root = Path(os.path.abspath(self.upload_dir))
        for name in ("audio_dir", "cover_art_dir"):
            candidate = Path(os.path.abspath(getattr(self, name)))
            if candidate != root and root not in candidate.parents:
                raise ValueError(f"{name} must be inside upload_dir: {getattr(self, name)}")
        return self


class AuthSettings(_Frozen):
    session_secret:      str = "change-me-in-production"
    session_max_age:     int = 14 * 24 * 3600
    password_min_length: int = Field(default=8, ge=1)


class ConversionSettings(_Frozen):
    ffmpeg_binary:   str = "ffmpeg"
    temp_dir:        str = ""
    timeout_seconds: int = Field(default=600, gt=0)


class AppConfig(_Frozen):
    server:     ServerSettings     = Field(default_factory=ServerSettings)
    logging:    LoggingSettings    = Field(default_factory=LoggingSettings)
    database:   DatabaseSettings   = Field(default_factory=DatabaseSettings)
    storage:    StorageSettings    = Field(default_factory=StorageSettings)
    auth:       AuthSettings       = Field(default_factory=AuthSettings)
    conversion: ConversionSettings = Field(default_factory=ConversionSettings)

    @field_validator("logging")
    @classmethod
    def _check_level(cls, value: LoggingSettings) -> LoggingSettings:
        if getattr(logging, value.level.upper(), None) is None:
            raise ValueError(f"unknown log level: {value.level}")
        return value

    @property
    def conversion_temp_dir(self) -> str:
        """Scratch directory for transcoded files (outside the managed roots)."""
        if self.conversion.temp_dir:
            return self.conversion.temp_dir
        return str(Path(self.storage.upload_dir).parent / ".vinylvault-tmp")


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------

_PATH_FIELDS = {
    "storage": ("upload_dir", "audio_dir", "cover_art_dir"),
    "database": ("path",),
    "conversion": ("temp_dir",),
}


def _resolve_relative_paths(data: Dict[str, Any], base_dir: Path) -> Dict[str, Any]:
    """Resolve relative filesystem settings against the settings file directory."""
    for section, keys in _PATH_FIELDS.items():
        values = data.get(section)
        if not isinstance(values, dict):
            continue
        for key in keys:
            raw = values.get(key)
            if raw and not Path(raw).is_absolute():
                values[key] = str(base_dir / raw)
    return data


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    overrides = {
        "VINYL_VAULT_UPLOAD_DIR": ("storage", "upload_dir"),
        "VINYL_VAULT_DB_PATH": ("database", "path"),
        "VINYL_VAULT_SESSION_SECRET": ("auth", "session_secret"),
        "VINYL_VAULT_LOG_LEVEL": ("logging", "level"),
    }
    for env_name, (section, key) in overrides.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value
            logger.debug("Config override from %s", env_name)
    return data


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load settings into a frozen *AppConfig*.

    Args:
        settings_path: Explicit settings file. Falls back to the
            VINYL_VAULT_SETTINGS env var, then ./vinylvault.settings.yaml.

    Returns:
        The validated configuration.
    """
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV, SETTINGS_FILE))
    settings_path = Path(settings_path)

    data = _load_yaml(settings_path)
    data = _resolve_relative_paths(data, settings_path.resolve().parent)
    data = _apply_env_overrides(data)

    config = AppConfig(**data)
    if config.auth.session_secret == AuthSettings().session_secret:
        logger.warning("Using the default session secret; set auth.session_secret")
    logger.info(
        "Settings loaded (upload_dir=%s, database=%s, log_level=%s)",
        config.storage.upload_dir,
        config.database.path,
        config.logging.level,
    )
    return config
