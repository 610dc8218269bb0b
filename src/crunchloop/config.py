#!/usr/bin/env python3
"""
Settings for talking to a Crunchloop Cloud instance.

Settings come from a YAML file (``.crunchloop.yaml`` in the working directory
or one of its parents, else ``~/.config/crunchloop/config.yaml``) and are then
overridden by ``CRUNCHLOOP_*`` environment variables.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from crunchloop.errors import ConfigError
from crunchloop.logging import LOG_LEVELS

DEFAULT_CONFIG_FILES = (".crunchloop.yaml", ".crunchloop.yml")
DEFAULT_GLOBAL_CONFIG_FILE = Path.home() / ".config" / "crunchloop" / "config.yaml"

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_TIMEOUT_SECONDS = 300.0

ENV_OVERRIDES = {
    "CRUNCHLOOP_URL": ("api", "url"),
    "CRUNCHLOOP_REQUEST_TIMEOUT": ("api", "request_timeout_seconds"),
    "CRUNCHLOOP_POLL_INTERVAL": ("wait", "poll_interval_seconds"),
    "CRUNCHLOOP_TIMEOUT": ("wait", "timeout_seconds"),
    "CRUNCHLOOP_LOG_LEVEL": ("log_level",),
    "CRUNCHLOOP_LOG_FILE": ("log_file",),
}


class ApiSettings(BaseModel):
    """Where the control plane lives."""

    url: Optional[str] = Field(default=None, description="Base URL of the Crunchloop Cloud instance")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"url must start with http:// or https://: {v}")
        return v.rstrip("/")


class WaitPolicy(BaseModel):
    """Cadence and budget of convergence waits."""

    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, gt=0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)


class CrunchloopConfig(BaseModel):
    """Complete crunchloop configuration with validation."""

    api: ApiSettings = Field(default_factory=ApiSettings)
    wait: WaitPolicy = Field(default_factory=WaitPolicy)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    log_file: Optional[Path] = Field(default=None, description="Append JSON log lines here")

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {list(LOG_LEVELS)}")
        return v.upper()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "<dict>") -> "CrunchloopConfig":
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {source}: {e}")

    @classmethod
    def load(cls, path: Path) -> "CrunchloopConfig":
        """Load configuration from a YAML file."""
        path = Path(path).expanduser()
        if path.is_dir():
            path = path / DEFAULT_CONFIG_FILES[0]
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to read config file {path}: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must be a YAML mapping: {path}")
        return cls.from_dict(raw, source=str(path))

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "CrunchloopConfig":
        """Return a copy with ``CRUNCHLOOP_*`` environment overrides applied."""
        environ = os.environ if environ is None else environ
        data = self.model_dump()
        for var, keys in ENV_OVERRIDES.items():
            value = environ.get(var)
            if not value:
                continue
            _set_nested(data, keys, value)
        return self.from_dict(data, source="environment")


def _set_nested(data: Dict[str, Any], keys, value: Any) -> None:
    for key in keys[:-1]:
        data = data.setdefault(key, {})
    data[keys[-1]] = value


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """Walk up from ``start`` looking for a project config, then the global one."""
    start_path = (start or Path.cwd()).expanduser().resolve()
    if start_path.is_file():
        start_path = start_path.parent

    current = start_path
    while True:
        for name in DEFAULT_CONFIG_FILES:
            candidate = current / name
            if candidate.is_file():
                return candidate

        if current.parent == current:
            break
        current = current.parent

    if DEFAULT_GLOBAL_CONFIG_FILE.is_file():
        return DEFAULT_GLOBAL_CONFIG_FILE

    return None


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    start: Optional[Path] = None,
) -> CrunchloopConfig:
    """Load the effective configuration: file (explicit or discovered) + environment."""
    if path is None:
        path = find_config_file(start=start)
    config = CrunchloopConfig.load(path) if path else CrunchloopConfig()
    return config.with_env(environ)
