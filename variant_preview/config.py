"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- TransformConfig: Remote transform service endpoint and credentials
- FetchConfig: Per-variant fetch timeouts and retries
- PackagerConfig: Remote packager endpoint and credentials
- PreviewConfig: Session defaults (initial variant, display mode)
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml


@dataclass
class TransformConfig:
    """Configuration for the remote transform service.

    Attributes:
        api_url: Base URL of the transform service (falls back to TRANSFORM_API_URL)
        api_username: HTTP Basic Auth username (optional)
        api_password: HTTP Basic Auth password (optional)
    """

    api_url: str | None = None
    api_username: str | None = None
    api_password: str | None = None


@dataclass
class FetchConfig:
    """Configuration for per-variant preview fetching.

    Attributes:
        timeout_seconds: Read timeout for a single variant request
        connect_timeout_seconds: Connect timeout for a single variant request
        retries: Retry attempts for network errors and 5xx responses
        trust_env: Whether to respect system proxy settings
        user_agent: HTTP User-Agent header string
    """

    timeout_seconds: float = 90.0
    connect_timeout_seconds: float = 10.0
    retries: int = 1
    trust_env: bool = True
    user_agent: str = "variant-preview/0.1"


@dataclass
class PackagerConfig:
    """Configuration for the remote packager.

    Attributes:
        api_url: Base URL of the packager (falls back to PACKAGER_API_URL)
        api_username: HTTP Basic Auth username (optional)
        api_password: HTTP Basic Auth password (optional)
        timeout_seconds: Read timeout for an export request
    """

    api_url: str | None = None
    api_username: str | None = None
    api_password: str | None = None
    timeout_seconds: float = 120.0


@dataclass
class PreviewConfig:
    """Session defaults.

    Attributes:
        default_variant: Variant preferred as the initial active one, if it loads
        display_mode: Initial display mode ("transformed" or "raw")
        default_scheme: Scheme added to source input that has none
    """

    default_variant: str | None = None
    display_mode: str = "transformed"
    default_scheme: str = "https"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Path of the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "variant-preview.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    transform: TransformConfig = field(default_factory=TransformConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    packager: PackagerConfig = field(default_factory=PackagerConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "transform": {
            "api_url": cfg.transform.api_url,
            "api_username": cfg.transform.api_username,
            "api_password": cfg.transform.api_password,
        },
        "fetch": {
            "timeout_seconds": cfg.fetch.timeout_seconds,
            "connect_timeout_seconds": cfg.fetch.connect_timeout_seconds,
            "retries": cfg.fetch.retries,
            "trust_env": cfg.fetch.trust_env,
            "user_agent": cfg.fetch.user_agent,
        },
        "packager": {
            "api_url": cfg.packager.api_url,
            "api_username": cfg.packager.api_username,
            "api_password": cfg.packager.api_password,
            "timeout_seconds": cfg.packager.timeout_seconds,
        },
        "preview": {
            "default_variant": cfg.preview.default_variant,
            "display_mode": cfg.preview.display_mode,
            "default_scheme": cfg.preview.default_scheme,
        },
        "logging": {
            "level": cfg.logging.level,
            "console": cfg.logging.console,
            "file": cfg.logging.file,
            "format": cfg.logging.format,
            "filename": cfg.logging.filename,
        },
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        transform=TransformConfig(**data["transform"]),
        fetch=FetchConfig(**data["fetch"]),
        packager=PackagerConfig(**data["packager"]),
        preview=PreviewConfig(**data["preview"]),
        logging=LoggingConfig(**data["logging"]),
    )


def get_transform_api_url(cfg: TransformConfig) -> str | None:
    """Get transform service URL from inline config or environment variable."""
    if cfg.api_url:
        return cfg.api_url
    return os.getenv("TRANSFORM_API_URL")


def get_transform_api_auth(cfg: TransformConfig) -> tuple[str, str] | None:
    """Get transform service Basic Auth credentials from config or environment.

    Returns (username, password) tuple if both are configured, None otherwise.
    """
    username = cfg.api_username or os.getenv("TRANSFORM_API_USERNAME")
    password = cfg.api_password or os.getenv("TRANSFORM_API_PASSWORD")
    if username and password:
        return (username, password)
    return None


def get_packager_api_url(cfg: PackagerConfig) -> str | None:
    """Get packager URL from inline config or environment variable."""
    if cfg.api_url:
        return cfg.api_url
    return os.getenv("PACKAGER_API_URL")


def get_packager_api_auth(cfg: PackagerConfig) -> tuple[str, str] | None:
    username = cfg.api_username or os.getenv("PACKAGER_API_USERNAME")
    password = cfg.api_password or os.getenv("PACKAGER_API_PASSWORD")
    if username and password:
        return (username, password)
    return None
