"""Configuration persistence for clio-radio."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

APP_NAME = "clio-radio"


@dataclass(frozen=True)
class AppConfig:
    """Immutable user configuration loaded from disk."""

    mpv_path: str = "mpv"
    search_limit: int = 20
    poll_interval: float = 2.0
    first_poll_delay: float = 0.8
    ipc_timeout: float = 0.8
    api_base_url: Optional[str] = None
    last_query: Optional[str] = None


def get_config_dir(app_name: str = APP_NAME) -> Path:
    """Return the per-user config directory for the current platform."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
        return _ensure_dir(root / app_name)
    if sys.platform == "darwin":
        return _ensure_dir(Path.home() / "Library" / "Application Support" / app_name)
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return _ensure_dir(root / app_name)


def get_config_path() -> Path:
    """Return the full config file path."""
    return get_config_dir() / "config.json"


def load_config() -> AppConfig:
    """Load configuration from disk, falling back to defaults on error."""
    path = get_config_path()
    if not path.exists():
        return AppConfig()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.exception("Failed to load config from %s", path)
        return AppConfig()
    if not isinstance(raw, dict):
        return AppConfig()
    return _config_from_mapping(raw)


def save_config(cfg: AppConfig) -> None:
    """Persist configuration to disk atomically."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    temp_path.write_text(json.dumps(asdict(cfg), indent=2), encoding="utf-8")
    os.replace(temp_path, path)


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _get_int(
    raw: dict[str, Any],
    key: str,
    default: int,
    *,
    min_value: int,
    max_value: int,
) -> int:
    """Fetch an integer value with clamping."""
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        value = default
    return min(max_value, max(min_value, value))


def _get_float(
    raw: dict[str, Any],
    key: str,
    default: float,
    *,
    min_value: float,
    max_value: float,
) -> float:
    """Fetch a numeric value as float with clamping."""
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        value = default
    return min(max_value, max(min_value, float(value)))


def _get_optional_str(raw: dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def _config_from_mapping(raw: dict[str, Any]) -> AppConfig:
    """Normalize raw JSON data into an AppConfig."""
    mpv_path = _get_optional_str(raw, "mpv_path") or "mpv"
    return AppConfig(
        mpv_path=mpv_path,
        search_limit=_get_int(raw, "search_limit", 20, min_value=1, max_value=500),
        poll_interval=_get_float(
            raw, "poll_interval", 2.0, min_value=0.5, max_value=60.0
        ),
        first_poll_delay=_get_float(
            raw, "first_poll_delay", 0.8, min_value=0.0, max_value=10.0
        ),
        ipc_timeout=_get_float(raw, "ipc_timeout", 0.8, min_value=0.1, max_value=10.0),
        api_base_url=_get_optional_str(raw, "api_base_url"),
        last_query=_get_optional_str(raw, "last_query"),
    )
