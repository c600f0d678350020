"""Bridge configuration — loads from tgportal.yaml + environment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _load_yaml_config() -> dict[str, Any]:
    """Load tgportal.yaml from TGPORTAL_CONFIG_PATH or the working directory."""
    config_path = os.getenv("TGPORTAL_CONFIG_PATH")
    search_paths = [Path(config_path)] if config_path else [Path("tgportal.yaml")]
    for path in search_paths:
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}
    return {}


class _EnvFirstSettings(BaseSettings):
    """Settings where environment variables override values passed from YAML."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, dotenv_settings, file_secret_settings


class BridgeSettings(_EnvFirstSettings):
    """Portal behaviour settings."""

    alias_template: str = Field(
        default="telegram_{name}",
        description="Alias localpart for public channels; {name} is the channel username",
    )
    saved_messages_name: str = "Saved Messages (Telegram)"
    private_chat_topic: str = "Telegram private chat"
    unsupported_file_notice: str = "Sending files is not yet supported."

    photo_caption: str = "Uploaded photo"
    audio_caption: str = "Uploaded audio"
    video_caption: str = "Uploaded video"
    document_caption: str = "Uploaded document"

    @field_validator("alias_template")
    @classmethod
    def _require_name_placeholder(cls, value: str) -> str:
        if "{name}" not in value:
            raise ValueError("alias_template must contain the {name} placeholder")
        return value

    def format_alias(self, username: str) -> str:
        return self.alias_template.replace("{name}", username)

    model_config = SettingsConfigDict(env_prefix="TGPORTAL_BRIDGE_")


class TGPortalConfig(_EnvFirstSettings):
    """Root configuration."""

    # Storage
    data_dir: str = Field(default="./data")
    db_journal_mode: Literal["WAL", "DELETE"] = Field(default="WAL")
    db_busy_timeout_ms: int = Field(default=5000, ge=100, le=120000)

    bridge: BridgeSettings = Field(default_factory=BridgeSettings)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="'json' or 'console'")

    model_config = SettingsConfigDict(
        env_prefix="TGPORTAL_",
        env_nested_delimiter="__",
    )

    @classmethod
    def load(cls) -> TGPortalConfig:
        """Load config from YAML + env vars (env takes precedence)."""
        yaml_cfg = _load_yaml_config()

        bridge_data = yaml_cfg.pop("bridge", {})

        # Only pass the YAML sub-config if it has data;
        # otherwise let pydantic-settings pick up env vars
        kwargs: dict[str, Any] = {**yaml_cfg}
        if bridge_data:
            kwargs["bridge"] = BridgeSettings(**bridge_data)

        return cls(**kwargs)


# Singleton
_config: TGPortalConfig | None = None


def get_config() -> TGPortalConfig:
    """Get or create the global config."""
    global _config
    if _config is None:
        _config = TGPortalConfig.load()
    return _config
