"""Configuration management using Pydantic Settings.

Gateway behaviour lives here. Provider credentials are read separately by
``ProviderEnvironment`` from the ``AZURE_OPENAI_*``/``OPENAI_*``/``AZURE_FOUNDRY_*``
variables.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HALOGW_",
        env_nested_delimiter="__",
    )

    default_provider: str = "azure-openai"
    default_model: str = "gpt-5-nano"
    default_deployment: str | None = None
    server: ServerConfig = ServerConfig()
    log_level: str = "INFO"

    # Gateway API key; empty disables authentication
    api_key: str = ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # HALOGW_* variables win over values loaded from settings.yaml
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def load(cls, config_path: Path | None = None) -> Settings:
        """Load settings from YAML file, then overlay HALOGW_* env vars."""
        data: dict = {}
        if config_path and config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        return cls(**data)


def get_project_root() -> Path:
    """Walk up from CWD to find pyproject.toml, or fall back to CWD."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return current


def load_settings() -> Settings:
    """Load settings from the project root's config/settings.yaml."""
    root = get_project_root()
    return Settings.load(root / "config" / "settings.yaml")
