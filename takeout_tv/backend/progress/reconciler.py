"""Reconcile local watch positions with the server's per-etag offsets.

Locally a position is keyed by video id; remotely it is keyed by the content
etag. The repository's etag index translates between the two, so only videos
present in the loaded catalog can be reconciled. Remote offsets use whole
seconds and second-precision UTC timestamps; local records use milliseconds.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from pydantic import BaseModel

from takeout_tv.backend.auth.user_manager import UserManager
from takeout_tv.backend.client.wire import Offset
from takeout_tv.backend.common.errors import ParseError
from takeout_tv.backend.common.logging import get_logger
from takeout_tv.backend.progress.store import WatchProgressStore
from takeout_tv.backend.repository.content_repository import ContentRepository
from takeout_tv.backend.repository.models import Progress, Video

log = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DATE_FORMAT_FRACTIONAL = "%Y-%m-%dT%H:%M:%S.%fZ"

# strptime's %f takes at most six digits
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+Z$")


def format_offset_date(timestamp_ms: int) -> str:
    return (EPOCH + timedelta(milliseconds=timestamp_ms)).strftime(DATE_FORMAT)


def parse_offset_date(value: str) -> int:
    """Parse a remote offset date into epoch milliseconds."""

    text = _LONG_FRACTION.sub(r"\1Z", value or "")
    for fmt in (DATE_FORMAT_FRACTIONAL, DATE_FORMAT):
        try:
            parsed = datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        return (parsed - EPOCH) // timedelta(milliseconds=1)
    raise ParseError(f"Unrecognized offset date {value!r}", value=value)


class SyncReport(BaseModel):
    pending: int = 0
    pushed: int = 0
    push_status: Optional[int] = None
    pulled: int = 0
    stored: int = 0
    kept_pending: int = 0


class ProgressReconciler:
    def __init__(
        self,
        repository: ContentRepository,
        users: UserManager,
        store: WatchProgressStore,
    ) -> None:
        self._repository = repository
        self._users = users
        self._store = store

    @property
    def store(self) -> WatchProgressStore:
        return self._store

    def update_progress(self, records: Sequence[Progress]) -> int:
        """Push local positions as one batch.

        Records for videos missing from the catalog are skipped. The offset
        index is updated before the request and is not rolled back when the
        push fails. Returns 0 when nothing was sent, otherwise the HTTP status
        (0 also when no response was received).
        """

        offsets: List[Offset] = []
        for record in records:
            video = self._repository.get_video_by_id(record.id)
            if video is None:
                log.debug("skipping progress for %s: not in catalog", record.id)
                continue
            offset = Offset(
                etag=video.etag,
                offset=record.position // 1000,
                duration=None if record.duration is None else record.duration // 1000,
                date=format_offset_date(record.timestamp),
            )
            self._repository.put_offset(offset)
            offsets.append(offset)

        if not offsets:
            return 0

        client = self._repository.catalog_client()
        if client is None:
            return 0
        status = client.update_progress(offsets)
        log.info("pushed %d offsets: status %d", len(offsets), status)
        return status

    def get_progress(self) -> List[Progress]:
        """Re-fetch remote offsets and resolve them to known videos."""

        client = self._repository.catalog_client()
        if client is None:
            return []
        remote = client.progress().offsets
        self._repository.replace_offsets(remote)

        result: List[Progress] = []
        for offset in remote:
            video = self._repository.get_video_by_etag(offset.etag)
            if video is None:
                log.debug("dropping offset for unknown etag %s", offset.etag)
                continue
            try:
                result.append(_to_progress(video, offset))
            except ParseError as exc:
                log.warning("skipping offset for %s: %s", video.id, exc)
        return result

    def get_video_progress(self, video: Video) -> Optional[Progress]:
        offset = self._repository.get_offset(video.etag)
        if offset is None:
            return None
        try:
            return _to_progress(video, offset)
        except ParseError as exc:
            log.warning("ignoring offset for %s: %s", video.id, exc)
            return None

    def sync(self) -> SyncReport:
        """Push pending local rows, then pull the remote list into the store.

        Convergence is last-writer-wins: a pulled record replaces the local
        row unless that row is still waiting to be pushed.
        """

        report = SyncReport()
        if not self._users.is_signed_in():
            return report

        pending = self._store.pending()
        report.pending = len(pending)
        sendable = [row for row in pending if self._repository.get_video_by_id(row.video_id) is not None]
        if sendable:
            status = self.update_progress([row.to_progress() for row in sendable])
            report.push_status = status
            if 200 <= status < 300:
                report.pushed = self._store.mark_synced(sendable)

        still_pending = {row.video_id for row in self._store.pending()}
        remote = self.get_progress()
        report.pulled = len(remote)
        for progress in remote:
            if progress.id in still_pending:
                report.kept_pending += 1
                continue
            self._store.insert(progress, dirty=False)
            report.stored += 1

        log.info(
            "sync finished: pending=%d pushed=%d pulled=%d stored=%d",
            report.pending,
            report.pushed,
            report.pulled,
            report.stored,
        )
        return report


def _to_progress(video: Video, offset: Offset) -> Progress:
    return Progress(
        id=video.id,
        position=max(0, offset.offset) * 1000,
        duration=None if offset.duration is None else max(0, offset.duration) * 1000,
        timestamp=parse_offset_date(offset.date),
    )
