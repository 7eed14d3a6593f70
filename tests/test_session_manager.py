import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
import requests
import responses

from takeout_tv.backend.auth.credentials import Credentials
from takeout_tv.backend.auth.session_manager import SessionManager
from takeout_tv.backend.common.errors import AuthenticationError
from takeout_tv.backend.network_handlers.session import HttpSession, Unauthorized, Upstream5xx

from conftest import BASE, CREDS, make_transport

TOKENS = {"AccessToken": "access-1", "MediaToken": "media-1", "RefreshToken": "refresh-1"}
REFRESHED = {"AccessToken": "access-2", "RefreshToken": "refresh-2"}


# --- LOGIN ---
@responses.activate
def test_login_returns_complete_credentials_and_notifies():
    responses.add(responses.POST, f"{BASE}/api/token", json=TOKENS, status=200)
    seen = []
    manager = SessionManager(BASE, transport=make_transport())
    manager.set_listener(seen.append)

    creds = manager.login("alice", "secret")

    assert creds.valid()
    assert creds.media_token == "media-1"
    assert manager.logged_in()
    assert seen == [creds]
    sent = responses.calls[0].request
    assert json.loads(sent.body) == {"User": "alice", "Pass": "secret"}
    assert "Authorization" not in sent.headers
    assert sent.headers["Accept"] == "application/json"


@responses.activate
def test_login_rejects_partial_credentials():
    responses.add(responses.POST, f"{BASE}/api/token", json={"AccessToken": "a", "RefreshToken": "r"}, status=200)
    manager = SessionManager(BASE, transport=make_transport())

    with pytest.raises(AuthenticationError):
        manager.login("alice", "secret")

    assert manager.credentials is None


@pytest.mark.parametrize("status", [401, 403, 500])
@responses.activate
def test_login_http_failure_is_authentication_error(status):
    responses.add(responses.POST, f"{BASE}/api/token", status=status)
    manager = SessionManager(BASE, transport=make_transport())

    with pytest.raises(AuthenticationError):
        manager.login("alice", "wrong")

    assert not manager.logged_in()


# --- AUTHENTICATED REQUESTS ---
@responses.activate
def test_request_uses_access_token_and_user_agent(session):
    responses.add(responses.GET, f"{BASE}/api/movies", json={"Movies": []}, status=200)

    payload = session.request_json("GET", "/api/movies")

    assert payload == {"Movies": []}
    headers = responses.calls[0].request.headers
    assert headers["Authorization"] == "Bearer access-1"
    assert headers["User-Agent"] == "takeout-tv-tests/1.0"


def test_media_headers_use_media_token(session):
    assert session.media_headers() == {
        "Authorization": "Bearer media-1",
        "User-Agent": "takeout-tv-tests/1.0",
    }


@responses.activate
def test_401_refreshes_once_and_replays(session):
    responses.add(responses.GET, f"{BASE}/api/movies", status=401)
    responses.add(responses.GET, f"{BASE}/api/movies", json={"Movies": []}, status=200)
    responses.add(responses.GET, f"{BASE}/api/token", json=REFRESHED, status=200)
    seen = []
    session.set_listener(seen.append)

    assert session.request_json("GET", "/api/movies") == {"Movies": []}

    auth = [c.request.headers["Authorization"] for c in responses.calls]
    assert auth == ["Bearer access-1", "Bearer refresh-1", "Bearer access-2"]
    creds = session.credentials
    assert (creds.access_token, creds.media_token, creds.refresh_token) == ("access-2", "media-1", "refresh-2")
    assert seen == [creds]


@responses.activate
def test_refresh_token_rejected_clears_credentials(session):
    responses.add(responses.GET, f"{BASE}/api/movies", status=401)
    responses.add(responses.GET, f"{BASE}/api/token", status=401)
    seen = []
    session.set_listener(seen.append)

    with pytest.raises(AuthenticationError):
        session.request_json("GET", "/api/movies")

    assert session.credentials is None
    assert seen == [None]


@responses.activate
def test_transient_refresh_failure_keeps_credentials(session):
    # A 401 on a normal call never clears credentials by itself.
    responses.add(responses.GET, f"{BASE}/api/movies", status=401)
    responses.add(responses.GET, f"{BASE}/api/token", status=503)
    seen = []
    session.set_listener(seen.append)

    with pytest.raises(AuthenticationError):
        session.request_json("GET", "/api/movies")

    assert session.credentials == CREDS
    assert seen == []


@responses.activate
def test_retry_rejected_after_refresh_clears_credentials(session):
    responses.add(responses.GET, f"{BASE}/api/movies", status=401)
    responses.add(responses.GET, f"{BASE}/api/token", json=REFRESHED, status=200)
    seen = []
    session.set_listener(seen.append)

    with pytest.raises(AuthenticationError):
        session.request_json("GET", "/api/movies")

    assert session.credentials is None
    assert seen[-1] is None
    assert len(responses.calls) == 3


@responses.activate
def test_refresh_without_credentials_is_noop():
    manager = SessionManager(BASE, transport=make_transport())

    assert manager.refresh() is False
    assert len(responses.calls) == 0


# --- SINGLE-FLIGHT REFRESH ---
def _json_response(payload, status=200):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response


class ScriptedTransport(HttpSession):
    """Rejects the old access token only after every caller has sent it."""

    def __init__(self, callers, refresh_ok=True):
        super().__init__(BASE, retry={"max_attempts": 1}, user_agent="scripted")
        self.barrier = threading.Barrier(callers)
        self.refresh_ok = refresh_ok
        self.refresh_calls = 0
        self._count_lock = threading.Lock()

    def request(self, method, path, *, params=None, json_body=None, headers=None, allowed_statuses=None):
        auth = (headers or {}).get("Authorization")
        if path == "/api/token":
            with self._count_lock:
                self.refresh_calls += 1
            time.sleep(0.05)
            if not self.refresh_ok:
                raise Unauthorized("401 Unauthorized", status_code=401)
            return _json_response(REFRESHED)
        if auth == "Bearer access-1":
            self.barrier.wait(timeout=5)
            raise Unauthorized("401 Unauthorized", status_code=401)
        return _json_response({"token": auth})


def _run_concurrently(manager, callers):
    def call():
        try:
            return manager.request_json("GET", "/api/movies")
        except AuthenticationError as exc:
            return type(exc)

    with ThreadPoolExecutor(max_workers=callers) as pool:
        return list(pool.map(lambda _: call(), range(callers)))


def test_concurrent_401s_share_one_refresh():
    transport = ScriptedTransport(callers=8)
    manager = SessionManager(BASE, credentials=CREDS, transport=transport)

    results = _run_concurrently(manager, 8)

    assert transport.refresh_calls == 1
    assert results == [{"token": "Bearer access-2"}] * 8
    assert manager.credentials.access_token == "access-2"


def test_concurrent_401s_share_one_failed_refresh():
    transport = ScriptedTransport(callers=6, refresh_ok=False)
    manager = SessionManager(BASE, credentials=CREDS, transport=transport)
    seen = []
    manager.set_listener(seen.append)

    results = _run_concurrently(manager, 6)

    assert transport.refresh_calls == 1
    assert results == [AuthenticationError] * 6
    assert manager.credentials is None
    assert seen == [None]


class HeldRefreshTransport(HttpSession):
    """Holds the refresh open until released, then fails it with a 503."""

    def __init__(self):
        super().__init__(BASE, retry={"max_attempts": 1}, user_agent="held")
        self.refresh_started = threading.Event()
        self.release = threading.Event()
        self.second_rejection = threading.Event()
        self.refresh_calls = 0
        self.rejections = 0
        self._count_lock = threading.Lock()

    def request(self, method, path, *, params=None, json_body=None, headers=None, allowed_statuses=None):
        if path == "/api/token":
            with self._count_lock:
                self.refresh_calls += 1
            self.refresh_started.set()
            self.release.wait(timeout=5)
            raise Upstream5xx("503 Service Unavailable", status_code=503)
        with self._count_lock:
            self.rejections += 1
            if self.rejections == 2:
                self.second_rejection.set()
        raise Unauthorized("401 Unauthorized", status_code=401)


def test_401_during_in_flight_refresh_shares_its_failure():
    transport = HeldRefreshTransport()
    manager = SessionManager(BASE, credentials=CREDS, transport=transport)

    def call():
        try:
            return manager.request_json("GET", "/api/movies")
        except AuthenticationError as exc:
            return type(exc)

    with ThreadPoolExecutor(max_workers=2) as pool:
        first = pool.submit(call)
        assert transport.refresh_started.wait(timeout=5)
        second = pool.submit(call)
        assert transport.second_rejection.wait(timeout=5)
        transport.release.set()
        results = [first.result(timeout=5), second.result(timeout=5)]

    assert transport.refresh_calls == 1
    assert results == [AuthenticationError, AuthenticationError]
    assert manager.credentials == CREDS


def test_invalid_initial_credentials_are_ignored():
    manager = SessionManager(BASE, credentials=Credentials(access_token="a"), transport=make_transport())

    assert manager.credentials is None
    with pytest.raises(AuthenticationError):
        manager.request_json("GET", "/api/movies")
