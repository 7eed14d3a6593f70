"""Credential value objects and the stores that persist them."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from takeout_tv.backend.common.logging import get_logger

_CREDENTIALS_FILENAME = "takeout_credentials.json"

log = get_logger(__name__)


class Credentials(BaseModel):
    """Access, media and refresh tokens as issued by ``/api/token``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    access_token: str = Field(default="", alias="AccessToken")
    media_token: str = Field(default="", alias="MediaToken")
    refresh_token: str = Field(default="", alias="RefreshToken")

    def valid(self) -> bool:
        return bool(self.access_token and self.media_token and self.refresh_token)

    def with_refresh(self, refreshed: "RefreshTokens") -> "Credentials":
        return self.model_copy(
            update={
                "access_token": refreshed.access_token,
                "refresh_token": refreshed.refresh_token,
            }
        )

    def __repr__(self) -> str:  # keep tokens out of logs and tracebacks
        return f"Credentials(valid={self.valid()})"


class RefreshTokens(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    access_token: str = Field(default="", alias="AccessToken")
    refresh_token: str = Field(default="", alias="RefreshToken")

    def valid(self) -> bool:
        return bool(self.access_token and self.refresh_token)


class AccessCode(BaseModel):
    """Short code shown to the user while a second device approves sign-in."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: str = Field(default="", alias="Code")
    access_token: str = Field(default="", alias="AccessToken")

    def is_empty(self) -> bool:
        return not self.code or not self.access_token


class UserInfo(BaseModel):
    """The persisted sign-in blob: three tokens, server endpoint, display name."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    media_token: str
    refresh_token: str
    endpoint: str = ""
    display_name: str = ""

    @classmethod
    def from_credentials(
        cls,
        credentials: Credentials,
        *,
        endpoint: str,
        display_name: str = "",
    ) -> "UserInfo":
        return cls(
            access_token=credentials.access_token,
            media_token=credentials.media_token,
            refresh_token=credentials.refresh_token,
            endpoint=endpoint,
            display_name=display_name,
        )

    def credentials(self) -> Credentials:
        return Credentials(
            access_token=self.access_token,
            media_token=self.media_token,
            refresh_token=self.refresh_token,
        )

    def __repr__(self) -> str:
        return f"UserInfo(endpoint={self.endpoint!r}, display_name={self.display_name!r})"


class CredentialStore(Protocol):
    def read(self) -> Optional[UserInfo]: ...

    def write(self, user_info: UserInfo) -> None: ...

    def clear(self) -> None: ...


class MemoryCredentialStore:
    def __init__(self, user_info: Optional[UserInfo] = None) -> None:
        self._user_info = user_info
        self._lock = threading.Lock()

    def read(self) -> Optional[UserInfo]:
        with self._lock:
            return self._user_info

    def write(self, user_info: UserInfo) -> None:
        with self._lock:
            self._user_info = user_info

    def clear(self) -> None:
        with self._lock:
            self._user_info = None


class FileCredentialStore:
    """JSON file holding the :class:`UserInfo` blob, readable only by the owner."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        if directory is None:
            from takeout_tv.config.settings import get_tokens_dir

            directory = get_tokens_dir()
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        self._path = directory / _CREDENTIALS_FILENAME
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[UserInfo]:
        with self._lock:
            if not self._path.exists():
                return None
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                log.warning("Failed to read credential file; ignoring and continuing")
                return None
            try:
                return UserInfo.model_validate(data)
            except ValidationError:
                log.warning("Stored credential payload invalid; ignoring")
                return None

    def write(self, user_info: UserInfo) -> None:
        payload = json.dumps(user_info.model_dump(), indent=2)
        with self._lock:
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(payload, encoding="utf-8")
            try:
                os.chmod(tmp, 0o600)
            except OSError:  # pragma: no cover - platform without chmod
                pass
            os.replace(tmp, self._path)

    def clear(self) -> None:
        with self._lock:
            try:
                self._path.unlink()
            except FileNotFoundError:
                pass
