"""Tests for gateway settings loading."""

import pytest

from halogw.core.config import Settings

SETTINGS_YAML = """\
default_provider: azure-openai
default_model: gpt-4o
log_level: DEBUG
server:
  host: 127.0.0.1
  port: 8000
"""


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    for name in ("HALOGW_DEFAULT_PROVIDER", "HALOGW_DEFAULT_MODEL", "HALOGW_LOG_LEVEL", "HALOGW_SERVER__PORT"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "settings.yaml"
    path.write_text(SETTINGS_YAML)
    return path


class TestSettingsLoad:
    def test_yaml_values(self, config_path):
        settings = Settings.load(config_path)
        assert settings.default_model == "gpt-4o"
        assert settings.log_level == "DEBUG"
        assert settings.server.host == "127.0.0.1"
        assert settings.server.port == 8000

    def test_env_beats_yaml(self, config_path, monkeypatch):
        monkeypatch.setenv("HALOGW_DEFAULT_PROVIDER", "openai")
        monkeypatch.setenv("HALOGW_SERVER__PORT", "9999")

        settings = Settings.load(config_path)

        assert settings.default_provider == "openai"
        assert settings.server.port == 9999
        # Keys the environment does not set still come from the file
        assert settings.server.host == "127.0.0.1"
        assert settings.default_model == "gpt-4o"

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HALOGW_DEFAULT_PROVIDER", raising=False)
        settings = Settings.load(tmp_path / "absent.yaml")
        assert settings.default_provider == "azure-openai"
        assert settings.server.port == 8000
