from __future__ import annotations

import threading
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

APP_FILE_PREFIX = "/_app_file_"
PASSTHROUGH_PREFIX = "/_cdvfile_/"
PRIVATE_FILE_SCHEME = "cdvfile"
DEFAULT_BASE_PREFIX = "bundled-app-root/"
DEFAULT_DOCUMENT = "index.html"
LOOPBACK_HOSTS = ("localhost", "127.0.0.1")


def _strip_query(path: str) -> str:
    query = path.find("?")
    if query >= 0:
        return path[:query]
    return path


def is_loopback_http(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme.lower() not in ("http", "https"):
        return False
    host = (parts.hostname or "").lower()
    return host in LOOPBACK_HOSTS


class VirtualPathResolver:
    """Maps request paths onto resource locations under a base prefix.

    The default document is written by the host whenever it learns the app's
    real start page and read concurrently by connection handlers.
    """

    def __init__(self, base_prefix: str = DEFAULT_BASE_PREFIX, default_document: str = DEFAULT_DOCUMENT):
        base = base_prefix or DEFAULT_BASE_PREFIX
        if not base.endswith("/"):
            base += "/"
        self._base_prefix = base
        self._lock = threading.Lock()
        self._default_document = default_document or DEFAULT_DOCUMENT

    @property
    def base_prefix(self) -> str:
        return self._base_prefix

    @property
    def default_document(self) -> str:
        with self._lock:
            return self._default_document

    def set_default_document(self, path: Optional[str]) -> None:
        if not path:
            return
        relative = path
        if relative.startswith(self._base_prefix):
            relative = relative[len(self._base_prefix) :]
        relative = relative.lstrip("/")
        if not relative:
            relative = DEFAULT_DOCUMENT
        with self._lock:
            self._default_document = relative

    def resolve(self, request_path: Optional[str]) -> str:
        path = _strip_query(request_path or "/")
        if path.startswith(PASSTHROUGH_PREFIX):
            return unquote(path[len(PASSTHROUGH_PREFIX) :])
        if path.startswith(APP_FILE_PREFIX):
            relative = path[len(APP_FILE_PREFIX) :]
        else:
            relative = path
        if not relative or relative == "/":
            relative = self.default_document
        else:
            relative = relative.lstrip("/")
        return self._base_prefix + relative

    def default_location(self) -> str:
        return self._base_prefix + self.default_document

    def rewrite_absolute_to_virtual(self, absolute_path: Optional[str]) -> Optional[str]:
        """Turn a location under the base prefix into a servable virtual path.

        Anything outside the base prefix is handed back unchanged.
        """
        if not absolute_path:
            return absolute_path
        if absolute_path.startswith(self._base_prefix):
            relative = absolute_path[len(self._base_prefix) :].lstrip("/")
            return "/" + relative
        return absolute_path

    def rewrite_uri(self, url: Optional[str], base_url: Optional[str]) -> Optional[str]:
        if not url or not base_url:
            return url
        if url.startswith("javascript:"):
            return url
        if is_loopback_http(url):
            parts = urlsplit(url)
            path = parts.path
            if not path or path == "/":
                path = "/" + DEFAULT_DOCUMENT
            rewritten = base_url + "/" + path.lstrip("/")
            if parts.query:
                rewritten += "?" + parts.query
            return rewritten
        if url.startswith(PRIVATE_FILE_SCHEME + "://"):
            return base_url + PASSTHROUGH_PREFIX + quote(url, safe="")
        if url.startswith(self._base_prefix):
            return base_url + self.rewrite_absolute_to_virtual(url)
        return url


__all__ = [
    "APP_FILE_PREFIX",
    "PASSTHROUGH_PREFIX",
    "PRIVATE_FILE_SCHEME",
    "DEFAULT_BASE_PREFIX",
    "DEFAULT_DOCUMENT",
    "VirtualPathResolver",
    "is_loopback_http",
]
