from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import BinaryIO, Dict, Optional, Protocol
from urllib.parse import unquote, urlsplit

from .errors import ResourceNotFound
from .mime import GENERIC_MIME_TYPE
from .paths import DEFAULT_BASE_PREFIX

logger = logging.getLogger("webhost.locator")


@dataclass
class OpenForReadResult:
    """An opened resource. ``length`` is ``None`` when unknown up front."""

    stream: BinaryIO
    length: Optional[int] = None
    mime_type: Optional[str] = None

    def close(self) -> None:
        try:
            self.stream.close()
        except OSError as exc:
            logger.debug("close failed: %s", exc)


class ResourceLocator(Protocol):
    def open_for_read(self, location: str) -> OpenForReadResult:
        ...


def _contained_path(root: Path, relative: str) -> Path:
    if not relative:
        raise ResourceNotFound("empty relative path")
    if "\x00" in relative:
        raise ResourceNotFound(f"embedded null byte: {relative!r}")
    if relative.startswith(("\\\\", "//")) or PureWindowsPath(relative).drive:
        raise ResourceNotFound(f"not a relative path: {relative}")
    rel_path = Path(relative)
    if rel_path.is_absolute() or any(part == ".." for part in rel_path.parts):
        raise ResourceNotFound(f"path escapes root: {relative}")
    try:
        resolved_root = root.resolve()
        resolved = (resolved_root / rel_path).resolve()
    except ValueError as exc:
        raise ResourceNotFound(f"unresolvable path {relative!r}: {exc}") from exc
    try:
        resolved.relative_to(resolved_root)
    except ValueError as exc:
        raise ResourceNotFound(f"path escapes root: {relative}") from exc
    return resolved


def _within(root: Path, candidate: Path) -> bool:
    try:
        candidate.relative_to(root.resolve())
    except ValueError:
        return False
    return True


class DirectoryResourceLocator:
    """Serves a packaged app directory plus optional aliased roots.

    Locations are either ``<base_prefix><relative>``, ``file://`` URIs that
    land inside one of the roots, or ``<alias prefix><relative>``.
    """

    def __init__(
        self,
        app_root: Path,
        base_prefix: str = DEFAULT_BASE_PREFIX,
        aliases: Optional[Dict[str, Path]] = None,
    ):
        self.app_root = Path(app_root)
        self.base_prefix = base_prefix if base_prefix.endswith("/") else base_prefix + "/"
        self.aliases: Dict[str, Path] = {
            (prefix if prefix.endswith("/") else prefix + "/"): Path(root)
            for prefix, root in (aliases or {}).items()
        }

    def remap(self, location: str) -> Path:
        if location.startswith(self.base_prefix):
            return _contained_path(self.app_root, unquote(location[len(self.base_prefix) :]))
        for prefix, root in self.aliases.items():
            if location.startswith(prefix):
                return _contained_path(root, unquote(location[len(prefix) :]))
        if location.startswith("file://"):
            raw_path = unquote(urlsplit(location).path)
            if "\x00" in raw_path:
                raise ResourceNotFound(f"embedded null byte: {location!r}")
            try:
                candidate = Path(raw_path).resolve()
            except ValueError as exc:
                raise ResourceNotFound(f"unresolvable file URI {location!r}: {exc}") from exc
            roots = [self.app_root, *self.aliases.values()]
            if any(_within(root, candidate) for root in roots):
                return candidate
            raise ResourceNotFound(f"file outside served roots: {location}")
        raise ResourceNotFound(f"unsupported location: {location}")

    def open_for_read(self, location: str) -> OpenForReadResult:
        path = self.remap(location)
        if not path.is_file():
            raise ResourceNotFound(f"no such resource: {location}")
        stream = path.open("rb")
        try:
            length = path.stat().st_size
        except OSError:
            length = None
        mime_type, _ = mimetypes.guess_type(path.name, strict=False)
        return OpenForReadResult(stream=stream, length=length, mime_type=mime_type or GENERIC_MIME_TYPE)


__all__ = ["OpenForReadResult", "ResourceLocator", "DirectoryResourceLocator"]
