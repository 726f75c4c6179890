"""
Tests for environment-driven store configuration
"""

from pathlib import Path

import pytest

from toki_store.config import (
    ENV_TEMPLATE, StoreConfig, create_env_file, get_data_root, get_environment_mode,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("TOKI_DATA_DIR", "TOKI_JSON_INDENT", "TOKI_EXTRACT_EXIF"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APP_ENV", "test")


class TestEnvironmentMode:

    def test_test_mode(self):
        assert get_environment_mode() == "test"

    def test_unknown_mode_falls_back(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "staging")
        assert get_environment_mode() == "development"

    def test_data_roots_differ(self):
        assert get_data_root("test").name == "data_test"
        assert get_data_root("development").name == "data"
        assert get_data_root("test") != get_data_root("production")

    def test_production_root_honours_xdg(self, monkeypatch, tmp_path):
        if get_data_root("production").parts[-2] == "Toki":
            pytest.skip("Windows data root")
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert get_data_root("production") == tmp_path / "toki" / "data"


class TestStoreConfig:

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TOKI_DATA_DIR", str(tmp_path / "trips"))
        monkeypatch.setenv("TOKI_JSON_INDENT", "none")
        monkeypatch.setenv("TOKI_EXTRACT_EXIF", "false")

        config = StoreConfig.from_environment("test")

        assert config.data_dir == tmp_path / "trips"
        assert config.media_dir == tmp_path / "trips" / "media"
        assert config.json_indent is None
        assert config.extract_exif is False

    def test_defaults(self):
        config = StoreConfig.from_environment("test")
        assert config.data_dir == get_data_root("test")
        assert config.json_indent == 2
        assert config.extract_exif is True

    def test_for_directory(self, tmp_path):
        config = StoreConfig.for_directory(str(tmp_path), json_indent=4)
        assert isinstance(config.data_dir, Path)
        assert config.json_indent == 4

    def test_test_mode_refuses_production_store(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        monkeypatch.setenv("LOCALAPPDATA", str(tmp_path))
        config = StoreConfig(data_dir=get_data_root("production"))
        with pytest.raises(ValueError, match="SAFETY ERROR"):
            config.validate_safety("test")
        config.validate_safety("production")

    def test_env_template(self, tmp_path):
        target = tmp_path / ".env"
        create_env_file(str(target))
        assert target.read_text() == ENV_TEMPLATE
        assert "TOKI_DATA_DIR" in ENV_TEMPLATE
