"""Configuration management for the plugin host."""

from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Literal

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .versioning import is_version_token

ENV_PREFIX = "PLUGHOST__"


class AppConfig(BaseModel):
    """Application runtime config."""

    model_config = ConfigDict(extra="allow")

    name: str = "plugin-host"
    debug: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration, passed through to ``setup_logging``."""

    model_config = ConfigDict(extra="allow")

    level: str = "INFO"
    format: str = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
    file_path: str | None = None
    json_format: bool = False


class DeprecationConfig(BaseModel):
    """Deprecation warning throttling."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    max_warnings_per_feature: int = Field(default=5, ge=0)


class VersionConfig(BaseModel):
    """Host version detection sources and fallback."""

    model_config = ConfigDict(extra="forbid")

    override: str | None = None
    env_var: str = "PLUGIN_HOST_VERSION"
    fallback: str = "1.0.0"

    @field_validator("override", "fallback")
    @classmethod
    def _validate_token(cls, value: str | None) -> str | None:
        if value is not None and not is_version_token(value):
            raise ValueError(f"not a dotted numeric version: {value!r}")
        return value


class LifecycleConfig(BaseModel):
    """Lifecycle controller settings."""

    model_config = ConfigDict(extra="allow")

    health_check_timeout: float = Field(default=5.0, gt=0)


class PolyfillConfig(BaseModel):
    """Polyfill installation settings."""

    model_config = ConfigDict(extra="allow")

    autoinstall: bool = True


class HostConfig(BaseModel):
    """Top-level plugin host configuration model."""

    model_config = ConfigDict(extra="allow")

    app: AppConfig = Field(default_factory=AppConfig)
    environment: Literal["development", "test", "production"] = "production"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    deprecation: DeprecationConfig = Field(default_factory=DeprecationConfig)
    version: VersionConfig = Field(default_factory=VersionConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    polyfills: PolyfillConfig = Field(default_factory=PolyfillConfig)


class ConfigManager:
    """Load and validate host configuration from TOML files."""

    def __init__(self, defaults: HostConfig | None = None) -> None:
        self._defaults = defaults or HostConfig()

    @property
    def defaults(self) -> HostConfig:
        """Return default configuration."""
        return self._defaults

    def load(self, path: str | Path) -> HostConfig:
        """Load TOML file and merge with defaults before validation.

        Raises:
            ConfigError: If the file cannot be read or parsed.
        """
        config_path = Path(path)
        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(
                f"Cannot read config file: {config_path}",
                context={"path": str(config_path)},
                cause=exc,
            ) from exc

        return self.from_dict(data)

    def from_dict(self, data: dict[str, Any]) -> HostConfig:
        """Validate configuration from dict, merged onto defaults and env vars."""
        merged = _deep_merge(
            self._defaults.model_dump(mode="python"),
            data,
        )
        merged_with_env = _apply_env_overrides(merged)
        try:
            return HostConfig.model_validate(merged_with_env)
        except ValidationError as exc:
            raise ConfigError("Invalid host configuration", cause=exc) from exc


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply env overrides using PLUGHOST__A__B style keys."""
    overridden = deepcopy(config)

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        path = key[len(ENV_PREFIX) :].strip("_")
        if not path:
            continue

        keys = [part.lower() for part in path.split("__") if part]
        if not keys:
            continue

        _set_nested(overridden, keys, _parse_env_value(raw_value))

    return overridden


def _set_nested(root: dict[str, Any], keys: list[str], value: Any) -> None:
    current: dict[str, Any] = root
    for key in keys[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value


def _parse_env_value(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"

    # Dotted versions like "2.1" or "2.1.0" must stay strings.
    if "." in raw and is_version_token(raw.strip()):
        return raw.strip()

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw
