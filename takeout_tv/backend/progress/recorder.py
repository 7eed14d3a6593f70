"""Record playback positions as the player reports them."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Optional

from takeout_tv.backend.common.logging import get_logger
from takeout_tv.backend.common.tasks import TaskRunner, TaskSpec
from takeout_tv.backend.progress.reconciler import ProgressReconciler
from takeout_tv.backend.progress.store import WatchProgressStore
from takeout_tv.backend.repository.models import Progress, Video

log = get_logger(__name__)


class WatchProgressRecorder:
    """Writes each position locally, then pushes it in the background.

    A push that fails leaves the local row pending for the next sync.
    """

    def __init__(self, store: WatchProgressStore, reconciler: ProgressReconciler, runner: TaskRunner) -> None:
        self._store = store
        self._reconciler = reconciler
        self._runner = runner

    def on_pause(self, video: Video, position_ms: int, duration_ms: Optional[int] = None) -> Future:
        if duration_ms is None:
            duration_ms = video.duration_ms() or None
        return self._record(Progress(id=video.id, position=max(0, position_ms), duration=duration_ms))

    def on_end(self, video: Video) -> Future:
        total = video.duration_ms()
        return self._record(Progress(id=video.id, position=total, duration=total))

    def _record(self, progress: Progress) -> Future:
        return self._runner.submit(
            TaskSpec(fn=self._write_and_push, args=(progress,), name=f"progress:{progress.id}")
        )

    def _write_and_push(self, progress: Progress) -> int:
        self._store.insert(progress)
        status = self._reconciler.update_progress([progress])
        if 200 <= status < 300:
            row = self._store.get(progress.id)
            if row is not None and row.modified_at == progress.timestamp:
                self._store.mark_synced([row])
        else:
            log.info("progress for %s kept for next sync (status %d)", progress.id, status)
        return status
