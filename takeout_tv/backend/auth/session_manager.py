"""Authenticated access to a TakeoutFM server with transparent token refresh.

A :class:`SessionManager` owns the current :class:`Credentials`. Every API
call goes through :meth:`SessionManager.request_authenticated`, which attaches
the access token and, when the server answers 401, refreshes the token once
and replays the request. Refresh is single-flight: concurrent callers that hit
a 401 for the same access token share one refresh and observe its outcome.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Collection, Dict, Optional, Tuple, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from takeout_tv.backend.auth.credentials import AccessCode, Credentials, RefreshTokens
from takeout_tv.backend.common.errors import AuthenticationError
from takeout_tv.backend.common.logging import get_logger
from takeout_tv.backend.network_handlers.session import (
    HttpSession,
    InvalidResponse,
    NetError,
    Unauthorized,
    parse_json,
)

log = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
CredentialsListener = Callable[[Optional[Credentials]], None]


class SessionManager:
    def __init__(
        self,
        endpoint: str,
        *,
        credentials: Optional[Credentials] = None,
        transport: Optional[HttpSession] = None,
        timeout: int = 30,
    ) -> None:
        self._transport = transport or HttpSession(endpoint, timeout=timeout)
        self._credentials = credentials if credentials is not None and credentials.valid() else None
        self._listener: Optional[CredentialsListener] = None

        # _state_lock guards the credential snapshot; _refresh_lock serializes refreshes.
        self._state_lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._refresh_attempts = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def endpoint(self) -> str:
        return self._transport.base_url

    @property
    def urls(self):
        return self._transport.urlm

    @property
    def credentials(self) -> Optional[Credentials]:
        with self._state_lock:
            return self._credentials

    def logged_in(self) -> bool:
        creds = self.credentials
        return creds is not None and creds.valid()

    def user_agent(self) -> str:
        return self._transport.user_agent

    def media_headers(self) -> Dict[str, str]:
        """Headers for streaming a playable URI; these use the media token."""

        creds = self.credentials
        media_token = creds.media_token if creds is not None else ""
        return {
            "Authorization": f"Bearer {media_token}",
            "User-Agent": self.user_agent(),
        }

    def set_listener(self, listener: Optional[CredentialsListener]) -> None:
        self._listener = listener

    def close(self) -> None:
        self._transport.close()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def login(self, user: str, password: str) -> Credentials:
        path = self.urls.path_for("token")
        try:
            response = self._transport.post(path, json_body={"User": user, "Pass": password})
        except NetError as exc:
            if exc.status_code:
                raise AuthenticationError(f"Login rejected ({exc.status_code})") from exc
            raise

        try:
            credentials = Credentials.model_validate(parse_json(response))
        except ValidationError as exc:
            raise AuthenticationError("Login response was not a token set") from exc
        if not credentials.valid():
            raise AuthenticationError("Login response did not include all tokens")

        log.info("login succeeded for %s", self.endpoint)
        self._set_credentials(credentials)

        return credentials

    def request_code(self) -> Optional[AccessCode]:
        """Ask the server for a sign-in code to be approved on another device."""

        try:
            response = self._transport.get(self.urls.path_for("code"))
            code = AccessCode.model_validate(parse_json(response))
        except (NetError, ValidationError) as exc:
            log.error("access code request failed: %s", exc)
            return None

        return None if code.is_empty() else code

    def check_code(self, code: AccessCode) -> Optional[Credentials]:
        """Exchange an approved access code for credentials, or ``None`` if not yet approved."""

        try:
            response = self._transport.post(
                self.urls.path_for("code"),
                json_body=code.model_dump(by_alias=True),
                headers={"Authorization": f"Bearer {code.access_token}"},
            )
            credentials = Credentials.model_validate(parse_json(response))
        except (NetError, ValidationError) as exc:
            log.debug("access code not accepted: %s", exc)
            return None

        if not credentials.valid():
            return None

        self._set_credentials(credentials)
        return credentials

    def refresh(self) -> bool:
        """Exchange the refresh token for a new access/refresh pair.

        Returns False without touching credentials on transient failures. A
        401 means the refresh token itself is invalid: credentials are cleared
        and the listener is told there are none.
        """

        with self._refresh_lock:
            current = self.credentials
            if current is None:
                return False
            return self._refresh_locked(current)

    # ------------------------------------------------------------------
    # Authenticated requests
    # ------------------------------------------------------------------
    def request_authenticated(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        allowed_statuses: Optional[Collection[int]] = None,
    ) -> requests.Response:
        allowed = set(allowed_statuses or ()) - {401}
        token, seen_attempts = self._snapshot()
        try:
            return self._send(method, path, token, body=body, params=params, allowed=allowed)
        except Unauthorized as exc:
            log.info("access token rejected for %s %s; refreshing", method, path)
            if not self._refresh_after(token, seen_attempts):
                raise AuthenticationError("Session expired; sign in again") from exc

        retry_token, _ = self._snapshot()
        try:
            return self._send(method, path, retry_token, body=body, params=params, allowed=allowed)
        except Unauthorized as exc:
            self._invalidate(retry_token)
            raise AuthenticationError(f"{method} {path} rejected after token refresh") from exc

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        return parse_json(self.request_authenticated(method, path, **kwargs))

    def request_model(self, model: Type[ModelT], method: str, path: str, **kwargs: Any) -> ModelT:
        payload = self.request_json(method, path, **kwargs)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise InvalidResponse(f"Unexpected {model.__name__} payload from {path}") from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _snapshot(self) -> Tuple[str, int]:
        with self._state_lock:
            if self._credentials is None:
                raise AuthenticationError("Not signed in")
            return self._credentials.access_token, self._refresh_attempts

    def _send(
        self,
        method: str,
        path: str,
        token: str,
        *,
        body: Optional[Any],
        params: Optional[Dict[str, Any]],
        allowed: Collection[int],
    ) -> requests.Response:
        return self._transport.request(
            method,
            path,
            params=params,
            json_body=body,
            headers={"Authorization": f"Bearer {token}"},
            allowed_statuses=allowed,
        )

    def _refresh_after(self, token: str, seen_attempts: int) -> bool:
        with self._refresh_lock:
            current = self.credentials
            if current is None:
                return False
            if current.access_token != token:
                # Another caller already refreshed past the rejected token.
                return True
            with self._state_lock:
                attempted_since = self._refresh_attempts != seen_attempts
            if attempted_since:
                # A refresh for this token completed after our snapshot and failed.
                return False
            return self._refresh_locked(current)

    def _refresh_locked(self, current: Credentials) -> bool:
        try:
            return self._exchange_refresh_token(current)
        finally:
            # Counted on completion: callers holding an in-flight token see the outcome.
            with self._state_lock:
                self._refresh_attempts += 1

    def _exchange_refresh_token(self, current: Credentials) -> bool:
        try:
            response = self._transport.get(
                self.urls.path_for("token"),
                headers={"Authorization": f"Bearer {current.refresh_token}"},
            )
            refreshed = RefreshTokens.model_validate(parse_json(response))
        except Unauthorized:
            log.warning("refresh token rejected; clearing credentials")
            self._set_credentials(None)
            return False
        except (NetError, ValidationError) as exc:
            log.warning("token refresh failed: %s", exc)
            return False

        if not refreshed.valid():
            log.warning("token refresh returned incomplete tokens")
            return False

        self._set_credentials(current.with_refresh(refreshed))
        log.info("access token refreshed")
        return True

    def _invalidate(self, token: str) -> None:
        with self._refresh_lock:
            current = self.credentials
            if current is None or current.access_token != token:
                return
            log.warning("fresh access token rejected; clearing credentials")
            self._set_credentials(None)

    def _set_credentials(self, credentials: Optional[Credentials]) -> None:
        with self._state_lock:
            self._credentials = credentials
        listener = self._listener
        if listener is not None:
            listener(credentials)
