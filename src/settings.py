"""Configuration loading for mxtg-bridge.

All user-editable settings (Matrix account, webhook, bridges, store, retry,
logging) live in a single JSON file for quick edits without touching Python.
Secrets stay in the environment and are read by ``client.py``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import List, Optional

from core.bridges import build_bridges
from core.config import MatrixConfig, RetryConfig, StoreConfig, TelegramConfig
from core.errors import ConfigError
from core.models import Bridge

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default location of the JSON config; override with --config.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


@dataclass(frozen=True)
class AppSettings:
    """Everything the process needs, built once at startup and passed around."""

    matrix: MatrixConfig
    telegram: TelegramConfig
    bridges: List[Bridge]
    store: StoreConfig = field(default_factory=StoreConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: dict = field(default_factory=dict)


def _load_json_config(path: str) -> dict:
    """Load the config file with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _section(config: dict, name: str) -> dict:
    value = config.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be an object")
    return value


def _matrix_config(raw: dict) -> MatrixConfig:
    homeserver = raw.get("homeserver")
    user_id = raw.get("user_id")
    if not homeserver or not user_id:
        raise ConfigError("matrix.homeserver and matrix.user_id are required")
    return MatrixConfig(
        homeserver=homeserver,
        user_id=user_id,
        device_name=raw.get("device_name", "mxtg-bridge"),
        device_id_file=raw.get("device_id_file", "device_id"),
        sync_timeout_ms=int(raw.get("sync_timeout_ms", 10_000)),
    )


def _telegram_config(raw: dict) -> TelegramConfig:
    webhook_url = raw.get("webhook_url")
    if not webhook_url:
        raise ConfigError("telegram.webhook_url is required")
    return TelegramConfig(
        webhook_url=webhook_url,
        listen=raw.get("listen", "0.0.0.0"),
        port=int(raw.get("port", 8443)),
    )


def _store_config(raw: dict) -> StoreConfig:
    directory = raw.get("directory", "bridged_messages")
    # Relative store paths are anchored at the project root, like log files.
    if not os.path.isabs(directory):
        directory = os.path.join(PROJECT_ROOT, directory)
    capacity = int(raw.get("capacity", 1000))
    if capacity < 1:
        raise ConfigError("store.capacity must be positive")
    return StoreConfig(directory=directory, capacity=capacity)


def _retry_config(raw: dict) -> RetryConfig:
    defaults = RetryConfig()
    max_elapsed: Optional[float] = raw.get("max_elapsed", defaults.max_elapsed)
    return RetryConfig(
        initial_delay=float(raw.get("initial_delay", defaults.initial_delay)),
        multiplier=float(raw.get("multiplier", defaults.multiplier)),
        max_delay=float(raw.get("max_delay", defaults.max_delay)),
        max_elapsed=None if max_elapsed is None else float(max_elapsed),
    )


def load_settings(path: str = CONFIG_PATH) -> AppSettings:
    """Read the JSON config and build the immutable settings object."""

    config = _load_json_config(path)
    bridges = config.get("bridges", [])
    if not isinstance(bridges, list):
        raise ConfigError("'bridges' must be a list")

    return AppSettings(
        matrix=_matrix_config(_section(config, "matrix")),
        telegram=_telegram_config(_section(config, "telegram")),
        bridges=build_bridges(bridges),
        store=_store_config(_section(config, "store")),
        retry=_retry_config(_section(config, "retry")),
        logging=_section(config, "logging"),
    )
