"""SQLite connection helpers and watch-progress persistence primitives."""

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from takeout_tv.backend.common.logging import get_logger
from takeout_tv.config.settings import get_database_path

log = get_logger(__name__)


def _resolve_path(path: Optional[Path]) -> Path:
    db_path = Path(path or get_database_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def connect(path: Optional[Path] = None, *, apply_migrations: bool = True) -> sqlite3.Connection:
    """Create a SQLite connection and ensure the schema exists."""

    db_path = _resolve_path(path)
    connection = sqlite3.connect(str(db_path))
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA journal_mode = WAL")
    if apply_migrations:
        migrate(connection)
    return connection


@contextmanager
def connection(path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    conn = connect(path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def migrate(connection: sqlite3.Connection) -> None:
    """Create required tables if they are missing."""

    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS watch_progress (
            video_id TEXT PRIMARY KEY,
            start_position INTEGER NOT NULL,
            duration INTEGER,
            created_at INTEGER NOT NULL,
            modified_at INTEGER NOT NULL,
            dirty INTEGER NOT NULL DEFAULT 1
        );

        CREATE INDEX IF NOT EXISTS watch_progress_modified
            ON watch_progress(modified_at DESC);
        """
    )


def upsert_watch_progress(
    connection: sqlite3.Connection,
    *,
    video_id: str,
    start_position: int,
    duration: Optional[int],
    modified_at: Optional[int] = None,
    created_at: Optional[int] = None,
    dirty: bool = True,
) -> None:
    """Insert or replace the position for a video; ``created_at`` survives updates."""

    now = _now_ms()
    modified = now if modified_at is None else int(modified_at)
    created = modified if created_at is None else int(created_at)
    connection.execute(
        """
        INSERT INTO watch_progress (video_id, start_position, duration, created_at, modified_at, dirty)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(video_id) DO UPDATE SET
            start_position=excluded.start_position,
            duration=excluded.duration,
            modified_at=excluded.modified_at,
            dirty=excluded.dirty
        """,
        (
            video_id,
            int(start_position),
            duration,
            created,
            modified,
            1 if dirty else 0,
        ),
    )


def update_watch_progress(
    connection: sqlite3.Connection,
    *,
    video_id: str,
    start_position: int,
    duration: Optional[int],
    modified_at: int,
    dirty: bool = True,
) -> bool:
    """Update an existing row; returns False when there is nothing to update."""

    cursor = connection.execute(
        """
        UPDATE watch_progress
        SET start_position = ?,
            duration = ?,
            modified_at = ?,
            dirty = ?
        WHERE video_id = ?
        """,
        (int(start_position), duration, int(modified_at), 1 if dirty else 0, video_id),
    )
    return cursor.rowcount > 0


def get_watch_progress(connection: sqlite3.Connection, video_id: str) -> Optional[sqlite3.Row]:
    return connection.execute("SELECT * FROM watch_progress WHERE video_id = ?", (video_id,)).fetchone()


def get_recent_watch_progress(connection: sqlite3.Connection, limit: Optional[int] = None) -> List[sqlite3.Row]:
    """Rows ordered by most recently modified first."""

    sql = "SELECT * FROM watch_progress ORDER BY modified_at DESC, video_id"
    if limit is not None:
        return connection.execute(f"{sql} LIMIT ?", (int(limit),)).fetchall()
    return connection.execute(sql).fetchall()


def get_pending(connection: sqlite3.Connection) -> List[sqlite3.Row]:
    return connection.execute(
        "SELECT * FROM watch_progress WHERE dirty = 1 ORDER BY modified_at, video_id"
    ).fetchall()


def mark_synced(connection: sqlite3.Connection, rows: Sequence[Tuple[str, int]]) -> int:
    """Clear the dirty flag for ``(video_id, modified_at)`` pairs.

    A row written again after it was read keeps its flag.
    """

    cleared = 0
    for video_id, modified_at in rows:
        cursor = connection.execute(
            "UPDATE watch_progress SET dirty = 0 WHERE video_id = ? AND modified_at = ?",
            (video_id, int(modified_at)),
        )
        cleared += cursor.rowcount
    return cleared


def delete_watch_progress(connection: sqlite3.Connection, video_id: str) -> None:
    connection.execute("DELETE FROM watch_progress WHERE video_id = ?", (video_id,))


def delete_all_watch_progress(connection: sqlite3.Connection) -> int:
    cursor = connection.execute("DELETE FROM watch_progress")
    log.info("deleted %d watch progress rows", cursor.rowcount)
    return cursor.rowcount


def _now_ms() -> int:
    return int(time.time() * 1000)


__all__ = [
    "connect",
    "connection",
    "migrate",
    "upsert_watch_progress",
    "update_watch_progress",
    "get_watch_progress",
    "get_recent_watch_progress",
    "get_pending",
    "mark_synced",
    "delete_watch_progress",
    "delete_all_watch_progress",
]
