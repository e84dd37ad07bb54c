"""Configuration utilities for the ByeDPI configuration selector.

This module reads environment variables (optionally from an `.env` file) and
produces an application configuration object consumed across the project.

See `.env.example` for supported keys, including `LOG_DIR`, `LOG_LEVEL`,
`BYEDPI_BINARY`, `BYEDPI_SERVICE`, `PROBE_CONCURRENCY`, and optional
`APP_NAME`.

Usage example:

    from byedpi_setup.config import load_config

    config = load_config()
    controller = ServiceController.from_config(config)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional

from byedpi_setup.errors import ConfigurationError

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

DEFAULT_PORT = 8080
DEFAULT_BINARY = "/opt/ciadpi/ciadpi-core"
DEFAULT_SERVICE = "ciadpi"
DEFAULT_UNIT_DIR = "/etc/systemd/system"
DEFAULT_SETTING_FILE = "/etc/byedpi/config.conf"


def _load_env_file(path: Path) -> Dict[str, str]:
    """Parse a dotenv-style file into a dictionary."""
    if not path.exists():
        return {}

    data: Dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip("\"'")
    return data


def _merge_envs(dotenv_values: Mapping[str, str], env: MutableMapping[str, str]) -> Dict[str, str]:
    """Merge dotenv values with the current environment, preferring os.environ."""
    merged = dict(dotenv_values)
    merged.update(env)  # os.environ wins
    return merged


def load_environment(env_file: Optional[Path] = None) -> Dict[str, str]:
    """Return the dotenv file merged with ``os.environ``."""
    target_file = env_file or DEFAULT_ENV_FILE
    return _merge_envs(_load_env_file(target_file), os.environ)


def _positive_int(values: Mapping[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if raw is None or raw == "":
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{key} must be positive, got {parsed}")
    return parsed


def _positive_float(values: Mapping[str, str], key: str, default: float) -> float:
    raw = values.get(key)
    if raw is None or raw == "":
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{key} must be positive, got {parsed}")
    return parsed


@dataclass(frozen=True)
class AppConfig:
    """Application-level configuration values."""

    log_directory: Path
    log_level: str
    app_name: str = "byedpi-setup"
    binary_path: str = DEFAULT_BINARY
    service_name: str = DEFAULT_SERVICE
    unit_directory: Path = Path(DEFAULT_UNIT_DIR)
    setting_file: Path = Path(DEFAULT_SETTING_FILE)
    probe_concurrency: int = 16
    probe_connect_timeout: float = 2.0
    probe_max_time: float = 3.0
    top_k: int = 10


def load_config(env_file: Optional[Path] = None) -> AppConfig:
    """Load configuration values using environment defaults."""
    merged = load_environment(env_file)

    log_directory = Path(merged.get("LOG_DIR", REPO_ROOT / "logs"))
    if not log_directory.is_absolute():
        log_directory = REPO_ROOT / log_directory

    log_level = merged.get("LOG_LEVEL", "INFO").upper()

    return AppConfig(
        log_directory=log_directory,
        log_level=log_level,
        app_name=merged.get("APP_NAME", "byedpi-setup"),
        binary_path=merged.get("BYEDPI_BINARY", DEFAULT_BINARY),
        service_name=merged.get("BYEDPI_SERVICE", DEFAULT_SERVICE),
        unit_directory=Path(merged.get("SYSTEMD_UNIT_DIR", DEFAULT_UNIT_DIR)),
        setting_file=Path(merged.get("BYEDPI_CONFIG_FILE", DEFAULT_SETTING_FILE)),
        probe_concurrency=_positive_int(merged, "PROBE_CONCURRENCY", 16),
        probe_connect_timeout=_positive_float(merged, "PROBE_CONNECT_TIMEOUT", 2.0),
        probe_max_time=_positive_float(merged, "PROBE_MAX_TIME", 3.0),
        top_k=_positive_int(merged, "TOP_K", 10),
    )


__all__ = [
    "AppConfig",
    "DEFAULT_PORT",
    "REPO_ROOT",
    "load_config",
    "load_environment",
]
