"""Tests for settings loading."""
from pathlib import Path

import pydantic
import pytest

from vinyl_vault.config import AppConfig, StorageSettings, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "VINYL_VAULT_SETTINGS",
        "VINYL_VAULT_UPLOAD_DIR",
        "VINYL_VAULT_DB_PATH",
        "VINYL_VAULT_SESSION_SECRET",
        "VINYL_VAULT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config.storage.max_audio_file_size == 500 * (1 << 20)
        assert config.storage.max_cover_art_size == 10 * (1 << 20)
        assert config.storage.max_archive_files == 100
        assert config.auth.password_min_length == 8

    def test_subdirectories_follow_upload_dir(self):
        storage = StorageSettings(upload_dir="/data/music")

        assert Path(storage.audio_dir) == Path("/data/music/audio")
        assert Path(storage.cover_art_dir) == Path("/data/music/covers")

    def test_explicit_subdirectory_wins(self):
        storage = StorageSettings(upload_dir="/data/music", audio_dir="/data/music/lossless")
        assert storage.audio_dir == "/data/music/lossless"

    @pytest.mark.parametrize("field", ["audio_dir", "cover_art_dir"])
    @pytest.mark.parametrize("outside", ["/fast/audio", "/data/music-evil", "/data/music/../covers"])
    def test_subdirectory_outside_upload_dir_rejected(self, field, outside):
        with pytest.raises(pydantic.ValidationError):
            StorageSettings(upload_dir="/data/music", **{field: outside})

    def test_config_is_frozen(self):
        config = AppConfig()
        with pytest.raises(pydantic.ValidationError):
            config.storage.upload_dir = "/elsewhere"

    def test_conversion_temp_dir_is_outside_upload_dir(self):
        config = AppConfig(storage=StorageSettings(upload_dir="/data/uploads"))
        assert Path(config.conversion_temp_dir) == Path("/data/.vinylvault-tmp")


class TestLoadConfig:
    def test_relative_paths_resolve_against_settings_file(self, tmp_path):
        settings = tmp_path / "conf" / "vinylvault.settings.yaml"
        settings.parent.mkdir()
        settings.write_text(
            "storage:\n"
            "  upload_dir: media\n"
            "  max_archive_files: 10\n"
            "database:\n"
            "  path: db/vault.duckdb\n"
        )

        config = load_config(settings)

        assert Path(config.storage.upload_dir) == tmp_path.resolve() / "conf" / "media"
        assert Path(config.storage.audio_dir) == tmp_path.resolve() / "conf" / "media" / "audio"
        assert Path(config.database.path) == tmp_path.resolve() / "conf" / "db" / "vault.duckdb"
        assert config.storage.max_archive_files == 10

    def test_settings_env_var(self, tmp_path, monkeypatch):
        settings = tmp_path / "custom.yaml"
        settings.write_text("server:\n  port: 9999\n")
        monkeypatch.setenv("VINYL_VAULT_SETTINGS", str(settings))

        assert load_config().server.port == 9999

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VINYL_VAULT_UPLOAD_DIR", str(tmp_path / "env-uploads"))
        monkeypatch.setenv("VINYL_VAULT_SESSION_SECRET", "from-env")
        monkeypatch.setenv("VINYL_VAULT_LOG_LEVEL", "debug")

        config = load_config(tmp_path / "absent.yaml")

        assert config.storage.upload_dir == str(tmp_path / "env-uploads")
        assert config.auth.session_secret == "from-env"
        assert config.logging.level == "debug"

    def test_unknown_log_level(self, tmp_path):
        settings = tmp_path / "bad.yaml"
        settings.write_text("logging:\n  level: chatty\n")

        with pytest.raises(pydantic.ValidationError):
            load_config(settings)

    def test_non_positive_limit_rejected(self, tmp_path):
        settings = tmp_path / "bad.yaml"
        settings.write_text("storage:\n  max_audio_file_size: 0\n")

        with pytest.raises(pydantic.ValidationError):
            load_config(settings)
