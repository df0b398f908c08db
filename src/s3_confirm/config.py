#!/usr/bin/env python3
"""
Client Configuration Management

Builds the StorageClient configuration from defaults, an optional JSON file,
environment variables and command line arguments (later sources win).
"""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypedDict, cast

from .constants import (
    DEFAULT_CONVERGENCE_CONCURRENCY,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_POLL_MAX_INTERVAL,
    DEFAULT_POLL_MIN_INTERVAL,
    DEFAULT_REGION,
    DEFAULT_S3_MAX_POOL_CONNECTIONS,
)
from .errors import ConfigError


class ClientConfig(TypedDict, total=False):
    """Configuration for a StorageClient."""

    region: str
    access_key_id: str  # Only in memory, never written back
    secret_access_key: str  # Only in memory, never written back
    session_token: str
    endpoint_url: str  # For MinIO, R2 and other S3-compatible services
    operation_timeout: float
    poll_min_interval: float
    poll_max_interval: float
    convergence_concurrency: int
    max_pool_connections: int


NUMERIC_KEYS: dict[str, type] = {
    "operation_timeout": float,
    "poll_min_interval": float,
    "poll_max_interval": float,
    "convergence_concurrency": int,
    "max_pool_connections": int,
}

# Environment variable -> config key
ENVIRONMENT_KEYS = {
    "AWS_DEFAULT_REGION": "region",
    "AWS_REGION": "region",
    "AWS_ACCESS_KEY_ID": "access_key_id",
    "AWS_SECRET_ACCESS_KEY": "secret_access_key",
    "AWS_SESSION_TOKEN": "session_token",
    "S3_CONFIRM_ENDPOINT_URL": "endpoint_url",
    "S3_CONFIRM_TIMEOUT": "operation_timeout",
}


def default_client_config() -> ClientConfig:
    return {
        "region": DEFAULT_REGION,
        "operation_timeout": DEFAULT_OPERATION_TIMEOUT,
        "poll_min_interval": DEFAULT_POLL_MIN_INTERVAL,
        "poll_max_interval": DEFAULT_POLL_MAX_INTERVAL,
        "convergence_concurrency": DEFAULT_CONVERGENCE_CONCURRENCY,
        "max_pool_connections": DEFAULT_S3_MAX_POOL_CONNECTIONS,
    }


def to_client_config_dict(source: Mapping[str, Any]) -> ClientConfig:
    """Convert any mapping to ClientConfig, keeping only valid keys and coercing numbers."""
    valid_keys = ClientConfig.__optional_keys__ | ClientConfig.__required_keys__
    filtered: dict[str, Any] = {}
    for key, value in source.items():
        if key not in valid_keys or value is None:
            continue
        if key in NUMERIC_KEYS:
            try:
                value = NUMERIC_KEYS[key](value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {value!r}") from e
        filtered[key] = value
    return cast(ClientConfig, filtered)


def load_client_config(config_path: str | Path) -> ClientConfig:
    """Load client configuration overrides from a JSON file."""
    try:
        with open(config_path) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")
    return to_client_config_dict(data)


def config_from_environment(environ: Mapping[str, str] | None = None) -> ClientConfig:
    """Read configuration overrides from environment variables."""
    environ = os.environ if environ is None else environ
    values = {key: environ[name] for name, key in ENVIRONMENT_KEYS.items() if environ.get(name)}
    return to_client_config_dict(values)


def validate_client_config(config: ClientConfig) -> None:
    """
    Validate a merged configuration.

    Raises:
        ConfigError: If a value is out of range or credentials are half-specified
    """
    if not config.get("region"):
        raise ConfigError("A region is required")
    if config.get("operation_timeout", DEFAULT_OPERATION_TIMEOUT) <= 0:
        raise ConfigError("operation_timeout must be positive")
    if config.get("poll_min_interval", DEFAULT_POLL_MIN_INTERVAL) < 0:
        raise ConfigError("poll_min_interval must not be negative")
    if config.get("convergence_concurrency", DEFAULT_CONVERGENCE_CONCURRENCY) < 1:
        raise ConfigError("convergence_concurrency must be at least 1")
    if bool(config.get("access_key_id")) != bool(config.get("secret_access_key")):
        raise ConfigError("access_key_id and secret_access_key must be provided together")


def build_client_config(
    config_file: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ClientConfig:
    """
    Merge defaults, config file, environment and explicit overrides.

    Args:
        config_file: Optional JSON file path
        environ: Environment mapping (defaults to os.environ)
        overrides: Values from the command line; None entries are ignored

    Returns:
        Validated ClientConfig
    """
    config = default_client_config()
    if config_file:
        config.update(load_client_config(config_file))
    config.update(config_from_environment(environ))
    if overrides:
        config.update(to_client_config_dict(overrides))

    validate_client_config(config)
    return config
