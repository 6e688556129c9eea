from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("webhost.fs_listing")


def list_directory_tree(root: Path) -> List[str]:
    """Return ``Dir:``/``File:`` lines for everything below ``root``."""
    root = Path(root)
    if not root.exists():
        return [f"Path does not exist: {root}"]
    if root.is_file():
        return [f"File: {root.name}"]
    lines: List[str] = []
    _walk(root, "", lines)
    if not lines:
        lines.append(f"Dir: {root.name}/")
    return lines


def _walk(directory: Path, relative: str, lines: List[str]) -> None:
    try:
        children = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        lines.append(f"Unreadable: {relative or directory.name}/ ({exc})")
        return
    for child in children:
        child_rel = f"{relative}/{child.name}" if relative else child.name
        if child.is_dir():
            lines.append(f"Dir: {child_rel}/")
            _walk(child, child_rel, lines)
        else:
            lines.append(f"File: {child_rel}")


def log_directory_tree(root: Optional[Path]) -> int:
    if root is None:
        logger.debug("directory listing unavailable")
        return 0
    logger.debug("Listing app files under %s", root)
    lines = list_directory_tree(root)
    for line in lines:
        logger.debug(line)
    return len(lines)
