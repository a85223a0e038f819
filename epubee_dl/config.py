"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- FetchConfig: HTTP fetching settings
- CacheConfig: Fetch cache location and index settings
- OutputConfig: Archive output settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class FetchConfig:
    """Configuration for HTTP fetching.

    Attributes:
        timeout_seconds: Ceiling for a single HTTP attempt
        timeout_retries: Maximum consecutive timeout retries per URL, None for unbounded
        trust_env: Whether to respect system proxy settings
        user_agent: HTTP User-Agent header string
        manifest_filename: Name of the package document relative to the base URL
    """

    timeout_seconds: float = 10.0
    timeout_retries: int | None = None
    trust_env: bool = True
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    manifest_filename: str = "content.opf"


@dataclass
class CacheConfig:
    """Configuration for the fetch cache.

    Attributes:
        dir: Directory holding cached response bodies
        index_filename: Name of the cache index file
    """

    dir: str = "cache"
    index_filename: str = "index.jsonl"


@dataclass
class OutputConfig:
    """Configuration for archive output.

    Attributes:
        dir: Directory the finished archives are written to
    """

    dir: str = "epub"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file, created inside the output directory
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "run.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | Path | None) -> AppConfig:
    """Load configuration from a YAML file with defaults.

    A missing file falls back to the defaults so the CLI can point at
    ``config.yaml`` without requiring one.
    """
    if not path or not Path(path).exists():
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
            data[key].update({k: v for k, v in value.items() if k in data[key]})
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "fetch": {
            "timeout_seconds": cfg.fetch.timeout_seconds,
            "timeout_retries": cfg.fetch.timeout_retries,
            "trust_env": cfg.fetch.trust_env,
            "user_agent": cfg.fetch.user_agent,
            "manifest_filename": cfg.fetch.manifest_filename,
        },
        "cache": {
            "dir": cfg.cache.dir,
            "index_filename": cfg.cache.index_filename,
        },
        "output": {
            "dir": cfg.output.dir,
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
        fetch=FetchConfig(**data["fetch"]),
        cache=CacheConfig(**data["cache"]),
        output=OutputConfig(**data["output"]),
        logging=LoggingConfig(**data["logging"]),
    )
