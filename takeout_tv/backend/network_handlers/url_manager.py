from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

from takeout_tv.backend.common.errors import ConfigError
from takeout_tv.config.settings import (
    get_default_headers,
    get_endpoints,
    get_image_paths,
    get_retry_config,
)



# ----------------------------
# Data views (read-only access)
# ----------------------------

@dataclass(frozen=True)
class ServiceView:
    base_url: str
    default_headers: Dict[str, str]
    retry: Dict[str, Any]
    endpoints: Dict[str, str]
    images: Dict[str, str]


# ----------------------------
# URL Manager
# ----------------------------

class URLManager:
    """
    Builds server URLs and resolves endpoint path templates, without doing
    any network I/O. Pure config-driven; the base URL is the user's server.
    """

    def __init__(self, base_url: str, overrides: Optional[Mapping[str, Any]] = None):
        overrides = dict(overrides or {})
        endpoints = get_endpoints()
        endpoints.update(overrides.get("endpoints") or {})
        headers = get_default_headers()
        headers.update(overrides.get("default_headers") or {})
        retry = get_retry_config()
        retry.update(overrides.get("retry") or {})
        images = get_image_paths()
        images.update(overrides.get("images") or {})
        if not endpoints:
            raise ConfigError("No endpoints configured for the takeout service")

        self._view = ServiceView(
            base_url=base_url.rstrip("/"),
            default_headers=headers,
            retry=retry,
            endpoints=endpoints,
            images=images,
        )

    # -------- Public API --------

    @property
    def base_url(self) -> str:
        return self._view.base_url

    def build(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Tuple[str, Dict[str, str]]:
        """
        Build a full URL for a server-relative path.
        Returns (url, headers).
        """
        url = f"{self._view.base_url}/{path.lstrip('/')}"
        if params:
            url = f"{url}?{urlencode(dict(params), doseq=True)}"

        return url, dict(self._view.default_headers)

    def path_for(self, endpoint_key: str, **fmt_args: Any) -> str:
        """
        Resolve an endpoint by key and format its placeholders. String
        arguments are percent-escaped so they stay within one path segment.
            path_for("movie", id=42) -> "/api/movies/42"
        """
        template = self._view.endpoints.get(endpoint_key)
        if template is None:
            raise ValueError(f"Unknown endpoint '{endpoint_key}'")
        escaped = {
            k: quote(v, safe="") if isinstance(v, str) else v
            for k, v in fmt_args.items()
        }

        return template.format(**escaped)

    def image_url(self, kind: str, path: Optional[str]) -> str:
        prefix = self._view.images.get(kind, "")
        return f"{self._view.base_url}{prefix}{path or ''}"

    def retry_config(self) -> Dict[str, Any]:
        return dict(self._view.retry)

    def should_respect_retry_after(self) -> bool:
        val = self._view.retry.get("respect_retry_after")

        return True if val is None else bool(val)
