"""Configuration management for tetrisbridge.

Loads settings from a YAML configuration file with environment variable
overrides (``TETRISBRIDGE_`` prefix, ``__`` as nested delimiter).
Supports .env files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/tetrisbridge.yaml")


class CollaboratorConfig(BaseModel):
    executable: str = Field(
        default="./tetris-server",
        description="Collaborator program, resolved relative to working_dir",
    )
    args: list[str] = Field(default_factory=list)
    working_dir: str | None = Field(default=None)
    # None keeps the legacy behavior: wait forever, buffer everything
    timeout: float | None = Field(default=None, gt=0)
    max_output_bytes: int | None = Field(default=None, gt=0)


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    route: str = Field(default="/action.php")
    param_name: str = Field(default="msg", min_length=1)


class ResponseConfig(BaseModel):
    mode: Literal["legacy", "hardened"] = Field(default="legacy")
    expose_diagnostics: bool = Field(default=False)
    fail_on_nonzero_exit: bool = Field(default=False)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the tetrisbridge service.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "TETRISBRIDGE_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    collaborator: CollaboratorConfig = Field(default_factory=CollaboratorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    response: ResponseConfig = Field(default_factory=ResponseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML data arrives as init kwargs; environment must win over it
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    return Settings(**yaml_data)
