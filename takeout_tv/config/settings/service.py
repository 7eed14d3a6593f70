from __future__ import annotations

from typing import Any, Dict, Mapping

from .paths import expand_env, get_service_settings_path, read_json

_SERVICE_NAME = "takeout"


def load_service_settings() -> Dict[str, Any]:
    data = read_json(get_service_settings_path())

    return expand_env(data)


try:  # pragma: no cover - guard against missing files at import time
    SERVICE_SETTINGS: Dict[str, Any] = load_service_settings()
except (OSError, ValueError):
    SERVICE_SETTINGS = {}


def get_service_config(service: str = _SERVICE_NAME) -> Dict[str, Any]:
    cfg = SERVICE_SETTINGS.get(service) if SERVICE_SETTINGS else None

    return dict(cfg) if isinstance(cfg, Mapping) else {}


def get_default_headers(service: str = _SERVICE_NAME) -> Dict[str, str]:
    headers = get_service_config(service).get("default_headers", {}) or {}

    return {str(k): str(v) for k, v in headers.items()}


def get_endpoints(service: str = _SERVICE_NAME) -> Dict[str, str]:
    return dict(get_service_config(service).get("endpoints", {}) or {})


def get_retry_config(service: str = _SERVICE_NAME) -> Dict[str, Any]:
    return dict(get_service_config(service).get("retry", {}) or {})


def get_image_paths(service: str = _SERVICE_NAME) -> Dict[str, str]:
    return dict(get_service_config(service).get("images", {}) or {})


def get_user_agent_config(service: str = _SERVICE_NAME) -> Dict[str, str]:
    return dict(get_service_config(service).get("user_agent", {}) or {})


__all__ = [
    "SERVICE_SETTINGS",
    "get_default_headers",
    "get_endpoints",
    "get_image_paths",
    "get_retry_config",
    "get_service_config",
    "get_user_agent_config",
    "load_service_settings",
]
