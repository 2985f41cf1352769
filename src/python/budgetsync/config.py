"""Configuration loading for budgetsync clients."""

from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path
from typing import Any

CONFIG_ENV_VAR = "BUDGETSYNC_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".budgetsync" / "config.json"
DEFAULT_SERVER_URL = "http://localhost:3000"
DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_INTERVAL_SECONDS = 30
DEFAULT_RETRY_ATTEMPTS = 3


@dataclass(frozen=True)
class SyncConfig:
    """Configuration for sync transport and triggers."""

    server_url: str = DEFAULT_SERVER_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SyncConfig":
        return cls(
            server_url=str(payload.get("server_url", DEFAULT_SERVER_URL)).rstrip("/"),
            timeout_seconds=float(payload.get("timeout", DEFAULT_TIMEOUT_SECONDS)),
            debounce_seconds=float(payload.get("debounce_seconds", DEFAULT_DEBOUNCE_SECONDS)),
            interval_seconds=float(payload.get("interval_seconds", DEFAULT_INTERVAL_SECONDS)),
            retry_attempts=max(1, int(payload.get("retry_attempts", DEFAULT_RETRY_ATTEMPTS))),
        )


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Resolve the config file from an argument, the environment or the default."""
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load the config file if present, else return an empty config."""
    path = resolve_config_path(config_path)
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        return {}
    return payload


def load_sync_config(config: dict[str, Any]) -> SyncConfig:
    """Build the sync settings from the ``sync`` section of a loaded config."""
    section = config.get("sync", {})
    if not isinstance(section, dict):
        section = {}
    return SyncConfig.from_dict(section)
