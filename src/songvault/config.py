"""Configuration management for the SongVault server.

Settings come from environment variables (optionally loaded from a ``.env``
file by the caller).  Missing required values raise :class:`ConfigError`,
which the CLI treats as fatal.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from songvault.errors import ConfigError

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

_DEFAULT_PORT = 3000
_DEFAULT_HOST = "127.0.0.1"
_DEFAULT_SONGS_FOLDER = "./songs"
_DEFAULT_CLOUD_FOLDER = "songs"
_DEFAULT_MAX_UPLOAD_FILES = 10
_SQLITE_PREFIXES = ("sqlite:///", "sqlite://")

StorageType = Literal["local", "remote"]


# ---------------------------------------------------------------------------
# Config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    """Settings that control the HTTP server."""

    host: str = Field(default=_DEFAULT_HOST, description="Interface to bind")
    port: int = Field(default=_DEFAULT_PORT, ge=1, le=65535, description="TCP port")
    public_base_url: str = Field(default="", description="Base URL prefixed to local playback URLs")
    max_upload_files: int = Field(default=_DEFAULT_MAX_UPLOAD_FILES, ge=1, description="Files accepted per upload")
    log_level: str = Field(default="info", description="Logging level")
    log_dir: Path | None = Field(default=None, description="Directory for rotating log files")

    @property
    def base_url(self) -> str:
        return (self.public_base_url or f"http://localhost:{self.port}").rstrip("/")


class CloudinaryConfig(BaseModel):
    """Cloudinary account credentials for remote storage."""

    cloud_name: str = Field(default="", description="Cloudinary cloud name")
    api_key: str = Field(default="", description="Cloudinary API key")
    api_secret: SecretStr = Field(default=SecretStr(""), description="Cloudinary API secret")
    folder: str = Field(default=_DEFAULT_CLOUD_FOLDER, description="Folder uploads are placed in")

    def missing(self) -> list[str]:
        """Return the environment variable names of unset credentials."""
        names = []
        if not self.cloud_name:
            names.append("CLOUD_NAME")
        if not self.api_key:
            names.append("CLOUD_API_KEY")
        if not self.api_secret.get_secret_value():
            names.append("CLOUD_API_SECRET")
        return names


class StorageConfig(BaseModel):
    """Object store and catalog store settings."""

    database_uri: str = Field(description="SQLite catalog location (path or sqlite:/// URI)")
    type: StorageType = Field(default="local", description="Object store backend")
    songs_folder: Path = Field(default=Path(_DEFAULT_SONGS_FOLDER), description="Folder for local storage")
    cloudinary: CloudinaryConfig = Field(default_factory=CloudinaryConfig)

    @property
    def database_path(self) -> Path:
        return resolve_database_path(self.database_uri)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig

    def is_remote(self) -> bool:
        return self.storage.type == "remote"

    def is_cloudinary_configured(self) -> bool:
        """Return True if all Cloudinary credentials are set."""
        return not self.storage.cloudinary.missing()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def resolve_database_path(uri: str) -> Path:
    """Turn ``DATABASE_URI`` into a filesystem path.

    Accepts a bare path or a ``sqlite:///`` URI.
    """
    for prefix in _SQLITE_PREFIXES:
        if uri.startswith(prefix):
            uri = uri[len(prefix) :]
            break
    if not uri:
        raise ConfigError("DATABASE_URI does not name a database file")
    return Path(uri).expanduser()


def _get(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from environment variables.

    Raises :class:`ConfigError` when ``DATABASE_URI`` is missing, when remote
    storage is selected without the full Cloudinary credential triple, or when
    a value fails validation.
    """
    env = os.environ if environ is None else environ

    database_uri = _get(env, "DATABASE_URI")
    if database_uri is None:
        raise ConfigError("DATABASE_URI is missing")

    server: dict = {}
    for key, name in (
        ("host", "HOST"),
        ("port", "PORT"),
        ("public_base_url", "PUBLIC_BASE_URL"),
        ("max_upload_files", "MAX_UPLOAD_FILES"),
        ("log_level", "LOG_LEVEL"),
        ("log_dir", "LOG_DIR"),
    ):
        value = _get(env, name)
        if value is not None:
            server[key] = value

    storage: dict = {"database_uri": database_uri}
    storage_type = _get(env, "STORAGE_TYPE")
    if storage_type is not None:
        storage["type"] = storage_type.lower()
    songs_folder = _get(env, "SONGS_FOLDER")
    if songs_folder is not None:
        storage["songs_folder"] = songs_folder

    cloudinary: dict = {}
    for key, name in (
        ("cloud_name", "CLOUD_NAME"),
        ("api_key", "CLOUD_API_KEY"),
        ("api_secret", "CLOUD_API_SECRET"),
        ("folder", "CLOUD_FOLDER"),
    ):
        value = _get(env, name)
        if value is not None:
            cloudinary[key] = value
    storage["cloudinary"] = cloudinary

    try:
        config = AppConfig.model_validate({"server": server, "storage": storage})
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    if config.is_remote():
        missing = config.storage.cloudinary.missing()
        if missing:
            raise ConfigError(f"Remote storage selected but {', '.join(missing)} not set")

    return config
