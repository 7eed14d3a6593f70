from __future__ import annotations



class TakeoutError(Exception):
    """Base for all takeout_tv exceptions."""


class ConfigError(TakeoutError):
    """Configuration related issues."""


class TaskError(TakeoutError):
    """Task scheduling/execution issues."""


class AuthenticationError(TakeoutError):
    """Bad username/password, or the refresh token was rejected."""


class ServerError(TakeoutError):
    """Any other non-2xx response or transport failure."""


class ParseError(TakeoutError):
    """A single record could not be parsed (progress timestamps)."""

    def __init__(self, message: str, *, value: str = "") -> None:
        super().__init__(message)
        self.value = value
