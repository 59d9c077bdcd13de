"""Tests for songvault.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from songvault.config import (
    AppConfig,
    CloudinaryConfig,
    ServerConfig,
    StorageConfig,
    load_config,
    resolve_database_path,
)
from songvault.errors import ConfigError

_REMOTE_ENV = {
    "DATABASE_URI": "sqlite:///tmp/catalog.db",
    "STORAGE_TYPE": "remote",
    "CLOUD_NAME": "demo",
    "CLOUD_API_KEY": "1234",
    "CLOUD_API_SECRET": "s3cr3t",
}

# ---------------------------------------------------------------------------
# 1. Default values
# ---------------------------------------------------------------------------


def test_server_config_defaults():
    cfg = ServerConfig()
    assert cfg.port == 3000
    assert cfg.host == "127.0.0.1"
    assert cfg.max_upload_files == 10
    assert cfg.log_level == "info"
    assert cfg.log_dir is None


def test_base_url_defaults_to_port():
    assert ServerConfig(port=8080).base_url == "http://localhost:8080"


def test_base_url_strips_trailing_slash():
    assert ServerConfig(public_base_url="https://music.example.com/").base_url == "https://music.example.com"


def test_storage_config_defaults():
    cfg = StorageConfig(database_uri="catalog.db")
    assert cfg.type == "local"
    assert cfg.songs_folder == Path("./songs")
    assert cfg.cloudinary.folder == "songs"


# ---------------------------------------------------------------------------
# 2. load_config
# ---------------------------------------------------------------------------


def test_load_config_minimal():
    cfg = load_config({"DATABASE_URI": "catalog.db"})
    assert cfg.storage.database_path == Path("catalog.db")
    assert cfg.storage.type == "local"
    assert cfg.server.port == 3000


def test_load_config_missing_database_uri():
    with pytest.raises(ConfigError, match="DATABASE_URI"):
        load_config({})


def test_load_config_blank_database_uri():
    with pytest.raises(ConfigError, match="DATABASE_URI"):
        load_config({"DATABASE_URI": "   "})


def test_load_config_reads_server_values(tmp_path: Path):
    cfg = load_config(
        {
            "DATABASE_URI": "catalog.db",
            "PORT": "4000",
            "HOST": "0.0.0.0",
            "PUBLIC_BASE_URL": "https://songs.example.com",
            "MAX_UPLOAD_FILES": "3",
            "LOG_LEVEL": "debug",
            "LOG_DIR": str(tmp_path),
            "SONGS_FOLDER": str(tmp_path / "music"),
        }
    )
    assert cfg.server.port == 4000
    assert cfg.server.host == "0.0.0.0"
    assert cfg.server.base_url == "https://songs.example.com"
    assert cfg.server.max_upload_files == 3
    assert cfg.server.log_level == "debug"
    assert cfg.server.log_dir == tmp_path
    assert cfg.storage.songs_folder == tmp_path / "music"


def test_load_config_invalid_port():
    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config({"DATABASE_URI": "catalog.db", "PORT": "not-a-port"})


def test_load_config_unknown_storage_type():
    with pytest.raises(ConfigError):
        load_config({"DATABASE_URI": "catalog.db", "STORAGE_TYPE": "ftp"})


def test_load_config_storage_type_case_insensitive():
    cfg = load_config({**_REMOTE_ENV, "STORAGE_TYPE": "REMOTE"})
    assert cfg.is_remote()


def test_load_config_remote():
    cfg = load_config(_REMOTE_ENV)
    assert cfg.is_remote()
    assert cfg.is_cloudinary_configured()
    assert cfg.storage.cloudinary.cloud_name == "demo"
    assert cfg.storage.cloudinary.api_secret.get_secret_value() == "s3cr3t"


@pytest.mark.parametrize("missing", ["CLOUD_NAME", "CLOUD_API_KEY", "CLOUD_API_SECRET"])
def test_load_config_remote_requires_credentials(missing: str):
    env = {k: v for k, v in _REMOTE_ENV.items() if k != missing}
    with pytest.raises(ConfigError, match=missing):
        load_config(env)


def test_local_mode_ignores_missing_credentials():
    cfg = load_config({"DATABASE_URI": "catalog.db", "STORAGE_TYPE": "local"})
    assert not cfg.is_remote()
    assert not cfg.is_cloudinary_configured()


def test_load_config_reads_os_environ(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URI", "from-env.db")
    monkeypatch.setenv("PORT", "3100")
    cfg = load_config()
    assert cfg.storage.database_path == Path("from-env.db")
    assert cfg.server.port == 3100


# ---------------------------------------------------------------------------
# 3. Helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("uri", "expected"),
    [
        ("catalog.db", Path("catalog.db")),
        ("sqlite:///data/catalog.db", Path("data/catalog.db")),
        ("sqlite:////var/lib/songvault.db", Path("/var/lib/songvault.db")),
    ],
)
def test_resolve_database_path(uri: str, expected: Path):
    assert resolve_database_path(uri) == expected


def test_resolve_database_path_empty_uri():
    with pytest.raises(ConfigError):
        resolve_database_path("sqlite:///")


def test_cloudinary_missing_lists_unset_fields():
    cfg = CloudinaryConfig(cloud_name="demo")
    assert cfg.missing() == ["CLOUD_API_KEY", "CLOUD_API_SECRET"]


def test_secret_not_in_repr():
    cfg = AppConfig.model_validate(
        {"storage": {"database_uri": "x.db", "cloudinary": {"api_secret": "hunter2"}}}
    )
    assert "hunter2" not in repr(cfg)
