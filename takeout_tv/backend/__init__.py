"""Backend public interfaces with lazy loading to avoid circular imports."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

__all__ = [
    "AppContext",
    "ContentRepository",
    "ProgressReconciler",
    "SessionManager",
    "UserManager",
    "WatchProgressRecorder",
    "WatchProgressStore",
]

_MODULE_EXPORTS = {
    "context": {
        "AppContext",
    },
    "auth.session_manager": {
        "SessionManager",
    },
    "auth.user_manager": {
        "UserManager",
    },
    "repository.content_repository": {
        "ContentRepository",
    },
    "progress.reconciler": {
        "ProgressReconciler",
    },
    "progress.recorder": {
        "WatchProgressRecorder",
    },
    "progress.store": {
        "WatchProgressStore",
    },
}

if TYPE_CHECKING:  # pragma: no cover - for static analysis only
    from .auth.session_manager import SessionManager
    from .auth.user_manager import UserManager
    from .context import AppContext
    from .progress.reconciler import ProgressReconciler
    from .progress.recorder import WatchProgressRecorder
    from .progress.store import WatchProgressStore
    from .repository.content_repository import ContentRepository


def __getattr__(name: str) -> Any:
    for module_name, symbols in _MODULE_EXPORTS.items():
        if name in symbols:
            module = importlib.import_module(f"{__name__}.{module_name}")
            value = getattr(module, name)
            globals()[name] = value
            return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    exported = set(__all__)
    for symbols in _MODULE_EXPORTS.values():
        exported.update(symbols)
    exported.update(globals().keys())
    return sorted(exported)
