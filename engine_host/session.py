"""Narrow interfaces for the browser-engine collaborators.

Each event family gets its own protocol so hosts can pass small adapters or
plain objects instead of subclassing an engine class.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Protocol


class EngineSession(Protocol):
    """The engine's page session: navigates and displays raw payloads."""

    def load_uri(self, uri: str) -> None:
        ...

    def load_bytes(self, uri: str, data: bytes, mime_type: str) -> None:
        ...


class BridgePort(Protocol):
    """One duplex message port connected to the in-page content script."""

    def post_message(self, message: Dict[str, Any]) -> None:
        ...


class NavigationListener(Protocol):
    def on_page_started(self, url: str) -> None:
        ...

    def on_page_finished(self, url: str) -> None:
        ...


ResultCallback = Callable[[Optional[str]], None]

__all__ = ["EngineSession", "BridgePort", "NavigationListener", "ResultCallback"]
