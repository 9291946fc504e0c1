"""Configuration loading from environment variables and an optional YAML file."""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _positive_int(name: str, value) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return number


@dataclass(frozen=True)
class Config:
    workers: int = 1
    chunk_size: int = 64 * 1024
    datestamp_format: str = "%Y%m%d"
    period: str | None = None
    log_level: str = "INFO"
    show_progress: bool = True


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def load_config(yaml_data: dict | None = None) -> Config:
    """Build Config from env vars layered over parsed YAML data and defaults."""
    data = yaml_data or {}

    def pick(env_key: str, yaml_key: str, default):
        value = os.environ.get(env_key)
        if value is not None:
            return value
        return data.get(yaml_key, default)

    period = pick("ARCHIVE_PERIOD", "period", Config.period)

    return Config(
        workers=_positive_int("workers", pick("ARCHIVE_WORKERS", "workers", Config.workers)),
        chunk_size=_positive_int(
            "chunk_size", pick("ARCHIVE_CHUNK_SIZE", "chunk_size", Config.chunk_size)
        ),
        datestamp_format=str(
            pick("ARCHIVE_DATESTAMP_FORMAT", "datestamp_format", Config.datestamp_format)
        ),
        period=str(period) if period is not None else None,
        log_level=str(pick("LOG_LEVEL", "log_level", Config.log_level)).upper(),
        show_progress=_parse_bool(
            pick("ARCHIVE_SHOW_PROGRESS", "show_progress", Config.show_progress)
        ),
    )
