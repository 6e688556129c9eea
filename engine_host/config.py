# =============================================================================
# NAV INDEX (search these tags)
# [NAV-00] Imports / constants
# [NAV-10] Config loading (defaults/roaming)
# [NAV-20] Public getters
# [NAV-99] End
# =============================================================================

# === [NAV-00] Imports / constants ============================================
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("webhost.config")

CONFIG_PATH = Path("data/roaming/host_config.json")
_DEFAULT_HOST_CONFIG: Dict[str, Any] = {
    "app_root": "www",
    "base_prefix": "bundled-app-root/",
    "start_page": "index.html",
    "bind_host": "127.0.0.1",
    "chunk_size": 16384,
    "read_timeout_s": 10.0,
    "max_workers": 32,
    "early_queue_limit": 256,
    "list_app_directory": False,
}


# === [NAV-10] Config loading (defaults/roaming) ==============================
def default_host_config() -> Dict[str, Any]:
    return dict(_DEFAULT_HOST_CONFIG)


def load_host_config(path: Optional[Path] = None) -> Dict[str, Any]:
    path = Path(path) if path is not None else CONFIG_PATH
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(_DEFAULT_HOST_CONFIG, indent=2), encoding="utf-8")
        return default_host_config()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Unreadable host config %s: %s", path, exc)
        return default_host_config()
    if not isinstance(data, dict):
        return default_host_config()
    for key, value in _DEFAULT_HOST_CONFIG.items():
        data.setdefault(key, value)
    return data


def save_host_config(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    path = Path(path) if path is not None else CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# === [NAV-20] Public getters ==================================================
def get_start_page(config: Dict[str, Any]) -> str:
    value = config.get("start_page")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return _DEFAULT_HOST_CONFIG["start_page"]


def get_app_root(config: Dict[str, Any], base_dir: Optional[Path] = None) -> Path:
    root = Path(str(config.get("app_root") or _DEFAULT_HOST_CONFIG["app_root"]))
    if base_dir is not None and not root.is_absolute():
        root = base_dir / root
    return root


# === [NAV-99] End =============================================================
__all__ = [
    "CONFIG_PATH",
    "default_host_config",
    "load_host_config",
    "save_host_config",
    "get_start_page",
    "get_app_root",
]
