"""Server configuration models."""

import os
from pathlib import Path
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from docstore_server import __version__

DEFAULT_MONGODB_URL = "mongodb://localhost:27017"
DEFAULT_CONFIG_FILE = Path.home() / ".docstore-server" / "config.yaml"


def validate_mongodb_url(value: str) -> str:
    """Validate that a connection string uses a MongoDB scheme."""
    value = value.strip()
    if not value.startswith(("mongodb://", "mongodb+srv://")):
        raise ValueError("Connection string must start with mongodb:// or mongodb+srv://")
    return value


def default_config_file() -> Path:
    """Location of the optional YAML settings file."""
    override = os.getenv("DOCSTORE_CONFIG_FILE")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_FILE


class ServerSettings(BaseSettings):
    """Docstore server settings.

    Sources, highest priority first: keyword arguments, ``DOCSTORE_*``
    environment variables, ``.env``, the YAML settings file, field defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCSTORE_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    mongodb_url: str = Field(
        default=DEFAULT_MONGODB_URL,
        validation_alias=AliasChoices("DOCSTORE_MONGODB_URL", "MONGODB_URL"),
    )
    server_name: str = "docstore-server"
    server_version: str = __version__
    log_level: str = "INFO"
    log_file: Path | None = None

    connect_on_start: bool = False
    connect_timeout: float | None = Field(default=None, gt=0)
    operation_timeout: float | None = Field(default=None, gt=0)
    server_selection_timeout_ms: int = Field(default=10000, ge=1)
    max_reply_bytes: int = Field(default=1024 * 1024, ge=0)

    @field_validator("mongodb_url")
    @classmethod
    def check_mongodb_url(cls, v: str) -> str:
        return validate_mongodb_url(v)

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
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
        yaml_file = settings_cls.model_config.get("yaml_file") or default_config_file()
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
            file_secret_settings,
        )

    @classmethod
    def load(cls, config_file: Path | None = None, **overrides) -> "ServerSettings":
        """Build settings, optionally reading a specific YAML file.

        The file is bound to a subclass built for this call, so other
        instances keep reading the default settings file.
        """
        settings_cls = cls
        if config_file is not None:
            settings_cls = type(
                cls.__name__,
                (cls,),
                {
                    "__module__": cls.__module__,
                    "model_config": SettingsConfigDict(
                        yaml_file=Path(config_file).expanduser()
                    ),
                },
            )
        return settings_cls(**{k: v for k, v in overrides.items() if v is not None})

    @property
    def settings_file(self) -> Path:
        """YAML file these settings were read from (it may not exist)."""
        return Path(self.model_config.get("yaml_file") or default_config_file())

    def resolve_address(self, override: str | None = None) -> str:
        """Per-call override, then the configured default."""
        return override or self.mongodb_url


__all__ = [
    "DEFAULT_MONGODB_URL",
    "ServerSettings",
    "default_config_file",
    "validate_mongodb_url",
]
