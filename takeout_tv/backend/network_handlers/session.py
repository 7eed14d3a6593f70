from __future__ import annotations

from typing import Any, Collection, Dict, Mapping, Optional
import platform
import random
import socket
import time

import requests
from requests.adapters import HTTPAdapter

import takeout_tv
from takeout_tv.backend.common.errors import ServerError
from takeout_tv.backend.common.logging import get_logger
from takeout_tv.backend.common.types import HttpResult
from takeout_tv.backend.network_handlers.url_manager import URLManager
from takeout_tv.config.settings import get_user_agent_config

log = get_logger(__name__)



# ---------------- Exceptions ----------------

class NetError(ServerError):
    status_code: int = 0

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

class RequestTimeout(NetError): ...
class DNSFailure(NetError): ...
class ConnectionFailed(NetError): ...
class InvalidResponse(NetError): ...
class BadRequest(NetError): ...
class Unauthorized(NetError): ...
class Forbidden(NetError): ...
class NotFound(NetError): ...
class RateLimited(NetError): ...
class Upstream5xx(NetError): ...
class Client4xx(NetError): ...


def _map_http_error(status: int) -> NetError:
    if status == 400: return BadRequest("400 Bad Request", status_code=status)
    if status == 401: return Unauthorized("401 Unauthorized", status_code=status)
    if status == 403: return Forbidden("403 Forbidden", status_code=status)
    if status == 404: return NotFound("404 Not Found", status_code=status)
    if status == 429: return RateLimited("429 Too Many Requests", status_code=status)
    if 500 <= status < 600: return Upstream5xx(f"{status} Upstream error", status_code=status)

    return Client4xx(f"{status} HTTP error", status_code=status)

def _sleep_with_jitter(base_ms: int, attempt: int, max_ms: int, jitter_ms: int):
    backoff = min(max_ms, int((2 ** (attempt - 1)) * base_ms))
    jitter = random.randint(0, max(0, jitter_ms))
    time.sleep((backoff + jitter) / 1000.0)


def default_user_agent() -> str:
    cfg = get_user_agent_config()
    product = cfg.get("product") or "TakeoutFM-TV"
    comment = cfg.get("comment") or "takeoutfm.com"

    return (
        f"{product}/{takeout_tv.__version__} "
        f"({comment}; Python {platform.python_version()}; {platform.system() or 'unknown'})"
    )


def parse_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise InvalidResponse(
            f"Malformed JSON from {response.request.method if response.request else '?'} {response.url}",
            status_code=response.status_code,
        ) from exc


# ---------------- Main Session ----------------

class HttpSession:
    """
    Transport for one TakeoutFM server:
      - URL building + default headers via URLManager
      - Accept / User-Agent on every request, caller supplies Authorization
      - Exponential backoff + jitter for 408/5xx and connection failures
      - 429 Retry-After support
      - Typed error mapping; 401 is surfaced immediately, never retried
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: int = 30,
        user_agent: Optional[str] = None,
        retry: Optional[Mapping[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.urlm = URLManager(base_url, {"retry": dict(retry or {})})
        self.timeout = timeout
        self.user_agent = user_agent or default_user_agent()

        self._session = session or requests.Session()
        self._session.mount("http://", HTTPAdapter(pool_connections=4, pool_maxsize=8))
        self._session.mount("https://", HTTPAdapter(pool_connections=4, pool_maxsize=8))

        retry_cfg = self.urlm.retry_config()
        self.retry_max_attempts = max(1, int(retry_cfg.get("max_attempts", 3)))
        self.base_backoff_ms = int(retry_cfg.get("base_backoff_ms", 300))
        self.max_backoff_ms = int(retry_cfg.get("max_backoff_ms", 6000))
        self.jitter_ms = int(retry_cfg.get("jitter_ms", 250))

    @property
    def base_url(self) -> str:
        return self.urlm.base_url

    # -------- public API --------

    def get(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allowed_statuses: Optional[Collection[int]] = None,
    ) -> requests.Response:

        return self.request(
            "GET",
            path,
            params=params,
            headers=headers,
            allowed_statuses=allowed_statuses,
        )

    def post(
        self,
        path: str,
        *,
        json_body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allowed_statuses: Optional[Collection[int]] = None,
    ) -> requests.Response:

        return self.request(
            "POST",
            path,
            params=params,
            json_body=json_body,
            headers=headers,
            allowed_statuses=allowed_statuses,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        allowed_statuses: Optional[Collection[int]] = None,
    ) -> requests.Response:

        url, base_headers = self.urlm.build(path, params)
        hdrs = dict(base_headers or {})
        hdrs["User-Agent"] = self.user_agent
        if headers:
            hdrs.update(headers)

        allowed = set(allowed_statuses or ())
        attempt = 1
        last_exc: Optional[Exception] = None

        while attempt <= self.retry_max_attempts:
            started = time.perf_counter()
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    headers=hdrs,
                    json=json_body,
                    timeout=self.timeout,
                )

                status = resp.status_code
                self._log_result(method, path, status, started)

                if status < 400 or status in allowed:
                    return resp

                if status == 401:
                    raise _map_http_error(status)

                if status == 429:
                    last_exc = _map_http_error(status)
                    if attempt == self.retry_max_attempts:
                        raise last_exc
                    if self.urlm.should_respect_retry_after():
                        ra = resp.headers.get("Retry-After")
                        if ra:
                            try:
                                time.sleep(min(int(float(ra)), 30))
                            except (ValueError, TypeError):
                                pass  # ignore malformed header / HTTP-date
                    attempt += 1
                    _sleep_with_jitter(self.base_backoff_ms, attempt, self.max_backoff_ms, self.jitter_ms)
                    continue

                if status == 408 or 500 <= status < 600:
                    last_exc = _map_http_error(status)
                    if attempt == self.retry_max_attempts:
                        raise last_exc
                    attempt += 1
                    _sleep_with_jitter(self.base_backoff_ms, attempt, self.max_backoff_ms, self.jitter_ms)
                    continue

                # Non-retryable 4xx
                raise _map_http_error(status)

            except requests.exceptions.Timeout as e:
                last_exc = e
                self._log_result(method, path, 0, started, error=str(e))
                if attempt == self.retry_max_attempts:
                    raise RequestTimeout(str(e)) from e

                attempt += 1
                _sleep_with_jitter(self.base_backoff_ms, attempt, self.max_backoff_ms, self.jitter_ms)
                continue

            except requests.exceptions.ConnectionError as e:
                last_exc = e
                self._log_result(method, path, 0, started, error=str(e))
                if attempt == self.retry_max_attempts:
                    if isinstance(getattr(e, "__cause__", None), socket.gaierror):
                        raise DNSFailure(str(e)) from e
                    raise ConnectionFailed(str(e)) from e

                attempt += 1
                _sleep_with_jitter(self.base_backoff_ms, attempt, self.max_backoff_ms, self.jitter_ms)
                continue

            except requests.exceptions.RequestException as e:
                raise NetError(str(e)) from e

        raise NetError(f"Request failed after retries: {last_exc}")

    def close(self) -> None:
        self._session.close()

    # -------- internals --------

    def _log_result(
        self,
        method: str,
        path: str,
        status: int,
        started: float,
        *,
        error: Optional[str] = None,
    ) -> None:
        result = HttpResult(
            method=method,
            path=path,
            status_code=status,
            ok=0 < status < 400,
            elapsed_ms=int((time.perf_counter() - started) * 1000),
            error=error,
        )
        log.debug("%s %s -> %s", method, path, status or error, extra={"http": result.model_dump()})
