"""
Configuration

Service settings loaded from a YAML file and DEADSWITCH_* environment
variables. Environment values override the file.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
    YamlConfigSettingsSource,
)

from deadswitch.exceptions import ConfigurationError
from deadswitch.notifiers.base import NotifierKind

DEFAULT_CONFIG_FILE = "deadswitch.yaml"

# RFC 9110 token characters
_METHOD_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Z]+$")


class WebhookSettings(BaseModel):
    """Settings for the generic webhook notifier."""

    url: str
    method: str = "POST"
    body: dict[str, Any] | None = None  # Base JSON payload
    headers: list[tuple[str, str]] = Field(default_factory=list)

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str) -> str:
        method = value.strip().upper()
        if not _METHOD_PATTERN.match(method):
            raise ValueError(f"invalid HTTP method: {value!r}")
        return method

    @field_validator("headers", mode="before")
    @classmethod
    def _headers_from_mapping(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            return list(value.items())
        return value


class SlackSettings(BaseModel):
    """Settings for the Slack notifier."""

    url: str
    icon_emoji: str
    color: str


class NotifierSettings(BaseModel):
    """One configured notifier. The section matching ``type`` is required."""

    type: NotifierKind
    webhook: WebhookSettings | None = None
    slack: SlackSettings | None = None

    @model_validator(mode="after")
    def _require_section(self) -> NotifierSettings:
        if self.type == NotifierKind.WEBHOOK and self.webhook is None:
            raise ValueError("no webhook settings found")
        if self.type == NotifierKind.SLACK and self.slack is None:
            raise ValueError("no slack settings found")
        return self


class Settings(BaseSettings):
    """Settings for the deadswitch service."""

    model_config = SettingsConfigDict(
        env_prefix="DEADSWITCH_",
        env_nested_delimiter="__",
        yaml_file=DEFAULT_CONFIG_FILE,
        extra="ignore",
    )

    # Heartbeat
    timeout: int = Field(default=30, gt=0)  # seconds

    # Server
    host: str = "127.0.0.1"
    port: int = 3030

    # Notifiers
    http_timeout: float = Field(default=10.0, gt=0)  # seconds, per request
    notifiers: list[NotifierSettings] = Field(default_factory=list)

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )


def load_settings(config_file: str | Path | None = None, **overrides: Any) -> Settings:
    """
    Load settings from a YAML file and the environment.

    Args:
        config_file: YAML file to read. When omitted, deadswitch.yaml in the
                     working directory is used if it exists.
        **overrides: Values that take precedence over every other source

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the file is missing or unreadable, or any
                            value fails validation
    """
    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigurationError(f"config file not found: {path}")
    else:
        path = Path(DEFAULT_CONFIG_FILE)

    class FileSettings(Settings):
        model_config = SettingsConfigDict(yaml_file=path)

    try:
        return FileSettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration:\n{e}") from e
    except (yaml.YAMLError, SettingsError) as e:
        raise ConfigurationError(f"could not parse {path}: {e}") from e
