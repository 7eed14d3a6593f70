from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from takeout_tv.backend.common.logging import get_logger

from .paths import get_database_path, get_user_settings_path, load_user_settings, write_user_settings

log = get_logger(__name__)

_SETTINGS_LOCK = threading.Lock()
_SETTINGS_SINGLETON: Optional["Settings"] = None


@dataclass
class Settings:
    app_name: str
    env: str
    log_level: str
    task_workers: int
    request_timeout: int
    endpoint: Optional[str]
    user_settings_path: os.PathLike[str]
    database_path: os.PathLike[str]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "app_name": self.app_name,
            "env": self.env,
            "log_level": self.log_level,
            "task_workers": self.task_workers,
            "request_timeout": self.request_timeout,
            "endpoint": self.endpoint,
            "user_settings_path": str(self.user_settings_path),
            "database_path": str(self.database_path),
        }


def _coerce_int(raw: Any, default: int, *, minimum: int = 1) -> int:
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


def _build_settings() -> Settings:
    user_cfg = load_user_settings()
    app_name = os.getenv("TAKEOUT_APP_NAME", user_cfg.get("app_name", "TakeoutFM TV"))
    env = os.getenv("TAKEOUT_ENV", user_cfg.get("env", "development"))
    log_level = os.getenv("TAKEOUT_LOG_LEVEL", user_cfg.get("log_level", "INFO")).upper()
    task_workers = _coerce_int(os.getenv("TAKEOUT_TASK_WORKERS") or user_cfg.get("task_workers"), 2)
    request_timeout = _coerce_int(os.getenv("TAKEOUT_TIMEOUT") or user_cfg.get("request_timeout"), 30)

    endpoint = os.getenv("TAKEOUT_ENDPOINT") or user_cfg.get("endpoint") or None
    if endpoint:
        endpoint = str(endpoint).rstrip("/")

    return Settings(
        app_name=app_name,
        env=env,
        log_level=log_level,
        task_workers=task_workers,
        request_timeout=request_timeout,
        endpoint=endpoint,
        user_settings_path=get_user_settings_path(),
        database_path=get_database_path(),
    )


def get_settings(*, reload: bool = False) -> Settings:
    global _SETTINGS_SINGLETON
    with _SETTINGS_LOCK:
        if _SETTINGS_SINGLETON is None or reload:
            _SETTINGS_SINGLETON = _build_settings()

        return _SETTINGS_SINGLETON


def update_endpoint(endpoint: str) -> Settings:
    """Remember the server endpoint used for the last successful sign-in."""

    payload = load_user_settings()
    payload["endpoint"] = endpoint.rstrip("/")
    payload["updated_at"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
    write_user_settings(payload)
    log.info("settings_endpoint_updated")

    return get_settings(reload=True)


__all__ = [
    "Settings",
    "get_settings",
    "update_endpoint",
]
