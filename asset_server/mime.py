"""Content type normalization for packaged web assets.

Resource backends sometimes report ``application/octet-stream`` for scripts
and stylesheets. Browser engines refuse to execute scripts with a binary type,
so anything generic is re-guessed from the file extension.
"""

from __future__ import annotations

import mimetypes
from typing import Optional
from urllib.parse import urlsplit

GENERIC_MIME_TYPE = "application/octet-stream"

_EXTRA_MIME_TYPES = {
    "js": "application/javascript",
    "mjs": "application/javascript",
    "cjs": "application/javascript",
    "ts": "application/javascript",
    "tsx": "application/javascript",
    "css": "text/css",
    "json": "application/json",
    "map": "application/json",
    "wasm": "application/wasm",
    "svg": "image/svg+xml",
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",
}

_JAVASCRIPT_TYPES = {
    "application/javascript",
    "text/javascript",
    "application/x-javascript",
    "application/ecmascript",
    "text/ecmascript",
}


def _extension(source: str) -> str:
    path = urlsplit(source).path if "://" in source else source.split("?", 1)[0]
    name = path.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    if dot < 0 or dot == len(name) - 1:
        return ""
    return name[dot + 1 :].lower()


def guess_mime_type(source: Optional[str]) -> Optional[str]:
    if not source:
        return None
    ext = _extension(source)
    if not ext:
        return None
    guessed, _ = mimetypes.guess_type(f"asset.{ext}", strict=False)
    if guessed:
        return guessed
    return _EXTRA_MIME_TYPES.get(ext)


def ensure_mime_type(source: Optional[str], candidate: Optional[str]) -> Optional[str]:
    if candidate and candidate != GENERIC_MIME_TYPE:
        return candidate
    guessed = guess_mime_type(source)
    if guessed:
        return guessed
    return candidate


def resolve_content_type(location: Optional[str], declared: Optional[str]) -> str:
    candidate = declared or GENERIC_MIME_TYPE
    return ensure_mime_type(location, candidate) or GENERIC_MIME_TYPE


def is_javascript_type(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return False
    base = mime_type.split(";", 1)[0].strip().lower()
    return base in _JAVASCRIPT_TYPES


__all__ = [
    "GENERIC_MIME_TYPE",
    "guess_mime_type",
    "ensure_mime_type",
    "resolve_content_type",
    "is_javascript_type",
]
