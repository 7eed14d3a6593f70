"""Local per-device watch positions."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from takeout_tv.backend.persistence import sqlite as db
from takeout_tv.backend.repository.models import Progress


@dataclass(frozen=True)
class WatchProgress:
    video_id: str
    start_position: int
    duration: Optional[int]
    created_at: int
    modified_at: int
    dirty: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "WatchProgress":
        return cls(
            video_id=str(row["video_id"]),
            start_position=int(row["start_position"]),
            duration=None if row["duration"] is None else int(row["duration"]),
            created_at=int(row["created_at"]),
            modified_at=int(row["modified_at"]),
            dirty=bool(row["dirty"]),
        )

    def to_progress(self) -> Progress:
        return Progress(
            id=self.video_id,
            position=self.start_position,
            duration=self.duration,
            timestamp=self.modified_at,
        )


class WatchProgressStore:
    """Upsert-by-id store; the latest write for a video wins."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._lock = threading.Lock()
        with db.connection(self._path):
            pass

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def get(self, video_id: str) -> Optional[WatchProgress]:
        with self._lock, db.connection(self._path) as conn:
            row = db.get_watch_progress(conn, video_id)
        return WatchProgress.from_row(row) if row is not None else None

    def recent(self, limit: Optional[int] = None) -> List[WatchProgress]:
        with self._lock, db.connection(self._path) as conn:
            rows = db.get_recent_watch_progress(conn, limit)
        return [WatchProgress.from_row(r) for r in rows]

    def insert(self, progress: Progress, *, dirty: bool = True) -> None:
        """Record a position stamped with the progress timestamp."""

        self.insert_with_timestamp(progress, progress.timestamp, dirty=dirty)

    def insert_with_timestamp(self, progress: Progress, timestamp: int, *, dirty: bool = True) -> None:
        with self._lock, db.connection(self._path) as conn:
            db.upsert_watch_progress(
                conn,
                video_id=progress.id,
                start_position=progress.position,
                duration=progress.duration,
                modified_at=timestamp,
                dirty=dirty,
            )

    def update_with_timestamp(self, progress: Progress, timestamp: int, *, dirty: bool = True) -> bool:
        with self._lock, db.connection(self._path) as conn:
            return db.update_watch_progress(
                conn,
                video_id=progress.id,
                start_position=progress.position,
                duration=progress.duration,
                modified_at=timestamp,
                dirty=dirty,
            )

    def pending(self) -> List[WatchProgress]:
        """Rows written locally that the server has not acknowledged."""

        with self._lock, db.connection(self._path) as conn:
            rows = db.get_pending(conn)
        return [WatchProgress.from_row(r) for r in rows]

    def mark_synced(self, rows: Iterable[WatchProgress]) -> int:
        pairs = [(r.video_id, r.modified_at) for r in rows]
        if not pairs:
            return 0
        with self._lock, db.connection(self._path) as conn:
            return db.mark_synced(conn, pairs)

    def delete(self, video_id: str) -> None:
        with self._lock, db.connection(self._path) as conn:
            db.delete_watch_progress(conn, video_id)

    def delete_all(self) -> int:
        with self._lock, db.connection(self._path) as conn:
            return db.delete_all_watch_progress(conn)
