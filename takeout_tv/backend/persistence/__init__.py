"""SQLite-backed persistence helpers for TakeoutFM TV."""

from .sqlite import (
    connect,
    connection,
    delete_all_watch_progress,
    delete_watch_progress,
    get_pending,
    get_recent_watch_progress,
    get_watch_progress,
    mark_synced,
    migrate,
    update_watch_progress,
    upsert_watch_progress,
)

__all__ = [
    "connect",
    "connection",
    "delete_all_watch_progress",
    "delete_watch_progress",
    "get_pending",
    "get_recent_watch_progress",
    "get_watch_progress",
    "mark_synced",
    "migrate",
    "update_watch_progress",
    "upsert_watch_progress",
]
