"""Small background worker pool for network and disk work."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, Future
from dataclasses import dataclass
from typing import Callable, Any, Optional
import threading
import time

from takeout_tv.backend.common.errors import TaskError
from takeout_tv.backend.common.logging import get_logger

log = get_logger(__name__)



@dataclass
class TaskSpec:
    fn: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: Optional[dict[str, Any]] = None
    retries: int = 0
    backoff_sec: float = 0.5
    name: str = "task"

    def __post_init__(self):
        if self.kwargs is None:
            self.kwargs = {}


class TaskRunner:
    """Tiny in-process task runner with retries/backoff."""
    def __init__(self, max_workers: int = 4, *, thread_name_prefix: str = "takeout-task"):
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix=thread_name_prefix,
        )
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, spec: TaskSpec) -> Future:
        with self._lock:
            if self._closed:
                raise TaskError("TaskRunner is closed")

            def _wrapped():
                attempt = 0
                while True:
                    try:
                        log.debug("task_start %s attempt=%d", spec.name, attempt)
                        result = spec.fn(*spec.args, **spec.kwargs)
                        log.debug("task_done %s attempt=%d", spec.name, attempt)
                        return result
                    except Exception as e:  # noqa: BLE001
                        if attempt >= spec.retries:
                            log.error("task_fail %s attempt=%d: %s", spec.name, attempt, e)
                            raise
                        sleep_for = spec.backoff_sec * (2 ** attempt)
                        log.warning(
                            "task_retry %s attempt=%d sleep_for=%.2f: %s",
                            spec.name,
                            attempt,
                            sleep_for,
                            e,
                        )
                        time.sleep(sleep_for)
                        attempt += 1

            return self._executor.submit(_wrapped)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            if not self._closed:
                self._executor.shutdown(wait=wait, cancel_futures=not wait)
                self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close(wait=True)
