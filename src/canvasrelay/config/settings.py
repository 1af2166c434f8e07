"""Configuration management for canvasrelay.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from canvasrelay.domain.models import DeliveryMode

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/canvasrelay.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3100, ge=1, le=65535)
    public_url: str | None = Field(
        default=None, description="URL shown to callers; derived from host/port if unset"
    )

    @property
    def view_url(self) -> str:
        return self.public_url or f"http://localhost:{self.port}"


class RelayConfig(BaseModel):
    delivery_mode: DeliveryMode = Field(default=DeliveryMode.PUSH)
    outbound_queue_size: int = Field(
        default=256, gt=0, description="Per-client outbound message buffer"
    )


class GCConfig(BaseModel):
    """Garbage collection schedules. An interval of 0 disables that task."""

    purge_interval: float = Field(default=30.0, ge=0)
    command_max_age: float = Field(default=3600.0, gt=0)
    sweep_interval: float = Field(default=30.0, ge=0)
    session_timeout: float = Field(default=1800.0, gt=0)
    active_window: float = Field(default=300.0, gt=0)


class MCPConfig(BaseModel):
    enabled: bool = Field(default=True)
    name: str = Field(default="canvas-relay")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for canvasrelay.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "CANVASRELAY_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    gc: GCConfig = Field(default_factory=GCConfig)
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + environment variables + .env.

    Sections present in the YAML file take precedence over environment
    variables for the same section; absent sections fall back to the
    environment, then to defaults.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data: dict = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply overrides from common non-prefixed environment variables."""
    port = os.environ.get("PORT", "")
    if port:
        yaml_data.setdefault("server", {})
        yaml_data["server"]["port"] = int(port)
