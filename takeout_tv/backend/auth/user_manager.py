"""Sign-in state and the lifecycle of the single active session."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from takeout_tv.backend.auth.credentials import AccessCode, Credentials, CredentialStore, UserInfo
from takeout_tv.backend.auth.session_manager import SessionManager
from takeout_tv.backend.common.logging import get_logger

log = get_logger(__name__)

SessionFactory = Callable[[str, Optional[Credentials]], SessionManager]


class UserManager:
    """Owns the credential store and at most one :class:`SessionManager`.

    The session is built lazily from stored credentials and is the only
    producer of credential changes; this manager is its single listener and
    mirrors every change into the store. Losing credentials signs out.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        session_factory: Optional[SessionFactory] = None,
        timeout: int = 30,
    ) -> None:
        self._store = store
        self._session_factory: SessionFactory = session_factory or (
            lambda endpoint, credentials: SessionManager(endpoint, credentials=credentials, timeout=timeout)
        )
        self._session: Optional[SessionManager] = None
        self._user_info: Optional[UserInfo] = None
        self._sign_out_listener: Optional[Callable[[], None]] = None
        self._lock = threading.RLock()

    def set_sign_out_listener(self, listener: Optional[Callable[[], None]]) -> None:
        self._sign_out_listener = listener

    @property
    def user_info(self) -> Optional[UserInfo]:
        return self._store.read()

    def is_signed_in(self) -> bool:
        info = self._store.read()
        return info is not None and info.credentials().valid()

    def session(self) -> Optional[SessionManager]:
        with self._lock:
            info = self._store.read()
            if info is None or not info.credentials().valid():
                self._session = None
                self._user_info = None
                return None

            if self._session is None:
                log.debug("creating session for %s", info.endpoint)
                self._attach(self._session_factory(info.endpoint, info.credentials()), info)
            return self._session

    def sign_in(self, endpoint: str, user: str, password: str) -> UserInfo:
        endpoint = endpoint.rstrip("/")
        session = self._session_factory(endpoint, None)
        try:
            credentials = session.login(user, password)
        except Exception:
            session.close()
            raise
        info = UserInfo.from_credentials(credentials, endpoint=endpoint, display_name=user)
        with self._lock:
            self._store.write(info)
            self._attach(session, info)
        log.info("signed in to %s", endpoint)

        return info

    def request_code(self, endpoint: str) -> Optional[AccessCode]:
        session = self._session_factory(endpoint.rstrip("/"), None)
        try:
            return session.request_code()
        finally:
            session.close()

    def sign_in_with_code(self, endpoint: str, code: AccessCode) -> Optional[UserInfo]:
        endpoint = endpoint.rstrip("/")
        session = self._session_factory(endpoint, None)
        try:
            credentials = session.check_code(code)
        except Exception:
            session.close()
            raise
        if credentials is None:
            session.close()
            return None

        info = UserInfo.from_credentials(credentials, endpoint=endpoint)
        with self._lock:
            self._store.write(info)
            self._attach(session, info)
        log.info("signed in to %s with access code", endpoint)

        return info

    def sign_out(self) -> None:
        with self._lock:
            session = self._session
            self._session = None
            self._user_info = None
            self._store.clear()
        if session is not None:
            session.set_listener(None)
            session.close()
        log.info("signed out")

        listener = self._sign_out_listener
        if listener is not None:
            listener()

    def close(self) -> None:
        with self._lock:
            session = self._session
        if session is not None:
            session.close()

    # ------------------------------------------------------------------
    def _attach(self, session: SessionManager, info: UserInfo) -> None:
        if self._session is not None and self._session is not session:
            self._session.set_listener(None)
            self._session.close()
        self._session = session
        self._user_info = info
        session.set_listener(self._on_credentials)

    def _on_credentials(self, credentials: Optional[Credentials]) -> None:
        if credentials is None:
            log.warning("credentials invalidated by server; signing out")
            self.sign_out()
            return

        with self._lock:
            current = self._user_info
            info = UserInfo.from_credentials(
                credentials,
                endpoint=current.endpoint if current else "",
                display_name=current.display_name if current else "",
            )
            self._store.write(info)
            self._user_info = info
