"""The one object that owns the process-wide session and catalog state.

Build an :class:`AppContext` once at startup and hand it to whatever needs
the user manager, repository or progress components.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from takeout_tv.backend.auth.credentials import CredentialStore, FileCredentialStore
from takeout_tv.backend.auth.user_manager import SessionFactory, UserManager
from takeout_tv.backend.common.logging import get_logger
from takeout_tv.backend.common.tasks import TaskRunner
from takeout_tv.backend.common.types import HealthReport
from takeout_tv.backend.progress.reconciler import ProgressReconciler
from takeout_tv.backend.progress.recorder import WatchProgressRecorder
from takeout_tv.backend.progress.store import WatchProgressStore
from takeout_tv.backend.repository.content_repository import ContentRepository
from takeout_tv.config.settings import Settings, get_settings

log = get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    users: UserManager
    repository: ContentRepository
    store: WatchProgressStore
    reconciler: ProgressReconciler
    recorder: WatchProgressRecorder
    runner: TaskRunner

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        *,
        credentials: Optional[CredentialStore] = None,
        database_path: Optional[Path] = None,
        session_factory: Optional[SessionFactory] = None,
        sign_out_on_any_failure: bool = False,
    ) -> "AppContext":
        settings = settings or get_settings()
        users = UserManager(
            credentials if credentials is not None else FileCredentialStore(),
            session_factory=session_factory,
            timeout=settings.request_timeout,
        )
        repository = ContentRepository(users, sign_out_on_any_failure=sign_out_on_any_failure)
        store = WatchProgressStore(Path(database_path or settings.database_path))
        reconciler = ProgressReconciler(repository, users, store)
        runner = TaskRunner(max_workers=settings.task_workers)
        recorder = WatchProgressRecorder(store, reconciler, runner)
        log.debug("context created for %s (%s)", settings.app_name, settings.env)

        return cls(
            settings=settings,
            users=users,
            repository=repository,
            store=store,
            reconciler=reconciler,
            recorder=recorder,
            runner=runner,
        )

    def health(self) -> HealthReport:
        components = {
            "config": "ok",
            "tasks": "degraded" if self.runner.closed else "ok",
            "session": "ok" if self.users.is_signed_in() else "signed_out",
            "catalog": "ok" if self.repository.is_loaded() else "cold",
        }
        status = "ok" if components["tasks"] == "ok" else "degraded"

        return {"status": status, "components": components}

    def close(self) -> None:
        self.runner.close(wait=True)
        self.users.close()
