"""Application settings loaded from a YAML file and environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DEFAULT_CONFIG_FILE = Path("config/config.yml")


class ClientSettings(BaseModel):
    """SSH client behaviour."""

    ssh_timeout: int = 10
    command_timeout: int = 30
    ssh_transport: str = "paramiko"
    # Supplied only on the retry after a key-exchange/cipher mismatch
    legacy_key_exchange: str = "diffie-hellman-group1-sha1"
    legacy_cipher: str = "aes128-cbc"
    # 0 means one executor thread per device
    max_ssh_threads: int = 0


class DataSettings(BaseModel):
    """Where inputs are read from and outputs are written to."""

    input_folder: Path = Path("input")
    devices_data: str = "devices.csv"
    output_folder: Path = Path("output")
    results_data: str = "results.txt"


class ClassifierSettings(BaseModel):
    error_markers: list[str] = Field(
        default_factory=lambda: ["%", "Command rejected:"],
    )


class LoggerSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    log_file: Optional[Path] = None


class Settings(BaseSettings):
    """Run configuration.

    Values come from the YAML config file (passed to the constructor by
    :func:`load_settings`); ``NETBATCH_*`` environment variables override
    them, e.g. ``NETBATCH_CLIENT__SSH_TIMEOUT=30``.
    """

    client: ClientSettings = Field(default_factory=ClientSettings)
    data: DataSettings = Field(default_factory=DataSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    logger: LoggerSettings = Field(default_factory=LoggerSettings)

    model_config = SettingsConfigDict(
        env_prefix="NETBATCH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over the file contents handed in as init kwargs
        return env_settings, dotenv_settings, init_settings

    @property
    def roster_path(self) -> Path:
        return self.data.input_folder / self.data.devices_data

    @property
    def results_path(self) -> Path:
        return self.data.output_folder / self.data.results_data


def read_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file into a dict (empty file -> empty dict)."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"cannot parse config file {path}: {exc}") from exc
    if not isinstance(content, dict):
        raise ValueError(f"config file {path} must contain a mapping")
    return content


def load_settings(config_file: Path | None = None) -> Settings:
    """Build :class:`Settings` from *config_file*.

    An explicitly given file must exist. Without one, the default
    ``config/config.yml`` is used when present, otherwise only defaults and
    environment variables apply.
    """
    if config_file is not None:
        return Settings(**read_config_file(config_file))
    if DEFAULT_CONFIG_FILE.is_file():
        return Settings(**read_config_file(DEFAULT_CONFIG_FILE))
    return Settings()
