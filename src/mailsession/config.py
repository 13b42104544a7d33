"""Configuration settings for mailsession using pydantic-settings."""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, SecretStr, field_validator
from pydantic_core import ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from mailsession.exceptions import ConfigError
from mailsession.flags import EXCLUSIVE_FLAGS, FlagPolicy
from mailsession.transport.imap import DEFAULT_TIMEOUT


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source that loads configuration from a YAML file.

    Looks for config file in the following order:
    1. MAILSESSION_CONFIG_FILE environment variable
    2. ./mailsession.yaml (current directory)
    3. $XDG_CONFIG_HOME/mailsession/config.yaml (defaults to ~/.config)
    """

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get field value from YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML config."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load and cache YAML config file."""
        if not hasattr(self, "_yaml_data"):
            self._yaml_data = self._read_yaml_file()
        return self._yaml_data

    def _read_yaml_file(self) -> dict[str, Any]:
        """Read YAML config from file with improved error messages."""
        xdg_config = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        config_paths = [
            os.environ.get("MAILSESSION_CONFIG_FILE"),
            Path.cwd() / "mailsession.yaml",
            Path(xdg_config) / "mailsession" / "config.yaml",
        ]

        for path in config_paths:
            if not path:
                continue
            path_obj = Path(path)
            if not path_obj.exists():
                continue
            try:
                with open(path_obj) as f:
                    data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                mark = getattr(e, "problem_mark", None)
                raise ConfigError(
                    f"Invalid YAML syntax: {getattr(e, 'problem', None) or e}",
                    file_path=str(path_obj),
                    line=mark.line if mark else None,
                    col=mark.column if mark else None,
                ) from e
            except OSError as e:
                raise ConfigError(
                    f"Cannot read config file: {e}",
                    file_path=str(path_obj),
                ) from e
            if data is None:
                return {}
            if not isinstance(data, dict):
                raise ConfigError("Top-level YAML value must be a mapping", file_path=str(path_obj))
            return data

        return {}


def _parse_validation_error(error: ValidationError) -> str:
    """Convert Pydantic ValidationError to user-friendly message."""
    errors = error.errors()
    if not errors:
        return "Unknown validation error"

    err = errors[0]
    loc = err.get("loc", ())
    msg = err.get("msg", "")
    field_name = ".".join(str(part) for part in loc)

    if err.get("type") == "missing" and field_name:
        return f"Missing required field '{field_name}'"
    if field_name:
        return f"Invalid value for '{field_name}': {msg}"
    return str(error)


class Settings(BaseSettings):
    """Session settings loaded from environment variables with MAILSESSION_ prefix.

    YAML example:
        host: mail.example.org
        port: 993
        username: bob
        mailbox: INBOX
        flags:
          novalidate-cert: true
          authuser: admin

    The password is best supplied as MAILSESSION_PASSWORD.
    """

    model_config = SettingsConfigDict(env_prefix="MAILSESSION_")

    host: str = Field(..., min_length=1, description="Mail server hostname")
    port: int | None = Field(default=143, ge=1, le=65535, description="Mail server port")
    service: Literal["imap", "pop3", "nntp"] = "imap"
    username: str | None = None
    password: SecretStr | None = None
    mailbox: str | None = None

    # Applied in order after the port defaults; false removes a flag.
    flags: dict[str, str | bool | None] = Field(default_factory=dict)
    options: int = Field(default=0, ge=0, description="Open option bitmask")
    timeout: float | None = Field(default=DEFAULT_TIMEOUT, gt=0, description="Socket timeout in seconds")

    # Process-wide flag policy
    ssl_enabled: bool = True
    exclusive_flags: dict[str, str] = Field(default_factory=lambda: dict(EXCLUSIVE_FLAGS))

    @field_validator("exclusive_flags")
    @classmethod
    def _validate_exclusive_flags(cls, v: dict[str, str]) -> dict[str, str]:
        for flag, partner in v.items():
            if flag == partner:
                raise ValueError(f"flag '{flag}' cannot be exclusive with itself")
        return v

    def flag_policy(self) -> FlagPolicy:
        """Return the FlagPolicy described by these settings."""
        return FlagPolicy(ssl_enabled=self.ssl_enabled, exclusive_flags=self.exclusive_flags)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )


def get_settings_eager(**overrides: Any) -> Settings:
    """Load settings, validating immediately.

    Raises:
        ConfigError: If configuration is invalid, with a user-friendly message.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(_parse_validation_error(e)) from e
