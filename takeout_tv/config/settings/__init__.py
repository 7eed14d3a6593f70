from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

__all__ = [
    "PATHS",
    "SERVICE_SETTINGS",
    "Settings",
    "core",
    "paths",
    "service",
    "get_database_path",
    "get_default_headers",
    "get_endpoints",
    "get_image_paths",
    "get_retry_config",
    "get_service_config",
    "get_service_settings_path",
    "get_settings",
    "get_tokens_dir",
    "get_user_agent_config",
    "get_user_settings_path",
    "load_service_settings",
    "load_user_settings",
    "update_endpoint",
    "write_user_settings",
]

_MODULE_EXPORTS = {
    "core": {
        "Settings",
        "get_settings",
        "update_endpoint",
    },
    "paths": {
        "PATHS",
        "get_database_path",
        "get_service_settings_path",
        "get_tokens_dir",
        "get_user_settings_path",
        "load_user_settings",
        "write_user_settings",
    },
    "service": {
        "SERVICE_SETTINGS",
        "get_default_headers",
        "get_endpoints",
        "get_image_paths",
        "get_retry_config",
        "get_service_config",
        "get_user_agent_config",
        "load_service_settings",
    },
}

_SUBMODULE_NAMES = {"core", "paths", "service"}

if TYPE_CHECKING:  # pragma: no cover - only for static analysis
    from . import core, paths, service
    from .core import Settings, get_settings, update_endpoint
    from .paths import (
        PATHS,
        get_database_path,
        get_service_settings_path,
        get_tokens_dir,
        get_user_settings_path,
        load_user_settings,
        write_user_settings,
    )
    from .service import (
        SERVICE_SETTINGS,
        get_default_headers,
        get_endpoints,
        get_image_paths,
        get_retry_config,
        get_service_config,
        get_user_agent_config,
        load_service_settings,
    )


def __getattr__(name: str) -> Any:
    if name in _SUBMODULE_NAMES:
        module = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module

    for module_name, symbols in _MODULE_EXPORTS.items():
        if name in symbols:
            module = importlib.import_module(f"{__name__}.{module_name}")
            value = getattr(module, name)
            globals()[name] = value
            return value

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    exported = set(__all__)
    exported.update(_SUBMODULE_NAMES)
    for symbols in _MODULE_EXPORTS.values():
        exported.update(symbols)
    exported.update(globals().keys())
    return sorted(exported)
