import io
import json
import logging

import pytest

import takeout_tv
from takeout_tv.backend.common.errors import TaskError
from takeout_tv.backend.common.logging import get_logger, init_logging
from takeout_tv.backend.common.tasks import TaskRunner, TaskSpec
from takeout_tv.backend.network_handlers.session import default_user_agent
from takeout_tv.backend.network_handlers.url_manager import URLManager

from conftest import BASE


# --- URLS ---
def test_path_for_formats_and_escapes():
    urls = URLManager(f"{BASE}/")

    assert urls.base_url == BASE
    assert urls.path_for("movie", id=42) == "/api/movies/42"
    assert urls.path_for("movie_genre", name="Sci/Fi") == "/api/movie-genres/Sci%2FFi"
    with pytest.raises(ValueError):
        urls.path_for("nope")


def test_build_appends_query_and_default_headers():
    url, headers = URLManager(BASE).build("/api/search", {"q": "star wars"})

    assert url == f"{BASE}/api/search?q=star+wars"
    assert headers["Accept"] == "application/json"


def test_image_url_tolerates_missing_path():
    urls = URLManager(BASE)

    assert urls.image_url("poster", "/p.jpg") == f"{BASE}/img/tm/w342/p.jpg"
    assert urls.image_url("poster", None) == f"{BASE}/img/tm/w342"


def test_default_user_agent_names_product_and_version():
    assert default_user_agent().startswith(f"TakeoutFM-TV/{takeout_tv.__version__} (takeoutfm.com; Python ")


# --- LOGGING ---
def test_json_logging_redacts_token_fields():
    stream = io.StringIO()
    init_logging("INFO", stream=stream)

    get_logger("takeout_tv.test").info("hello %s", "world", extra={"refresh_token": "r1", "endpoint": BASE})

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["msg"] == "hello world"
    assert record["refresh_token"] == "***"
    assert record["endpoint"] == BASE
    init_logging("WARNING")
    assert len(logging.getLogger().handlers) == 1


# --- TASKS ---
def test_task_runner_retries_then_succeeds():
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("not yet")
        return "done"

    with TaskRunner(max_workers=1) as runner:
        result = runner.submit(TaskSpec(fn=flaky, retries=2, backoff_sec=0.01, name="flaky")).result(timeout=5)

    assert result == "done"
    assert len(attempts) == 3


def test_task_runner_rejects_work_after_close():
    runner = TaskRunner(max_workers=1)
    runner.close()

    with pytest.raises(TaskError):
        runner.submit(TaskSpec(fn=lambda: None))
