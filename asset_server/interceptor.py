from __future__ import annotations

import io
import logging
from concurrent.futures import Executor, Future
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

from engine_host.dispatch import ImmediateDispatcher, UiDispatcher
from engine_host.session import EngineSession

from .locator import ResourceLocator
from .mime import resolve_content_type
from .paths import PRIVATE_FILE_SCHEME, is_loopback_http
from .server import CHUNK_SIZE

logger = logging.getLogger("webhost.interceptor")


class LoadDecision(str, Enum):
    IGNORE = "ignore"
    INTERCEPT_AND_STREAM = "intercept_and_stream"


class NavigationVerdict(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class LoadInterceptor:
    """Serves private-file and ``file:`` navigations straight into the session.

    ``on_load_request`` returns immediately. For intercepted URIs it hands back
    a future that settles once the background read finishes: ``DENY`` when the
    bytes were pushed into the session, ``ALLOW`` when the read failed so the
    engine can show its own error page.
    """

    def __init__(
        self,
        locator: ResourceLocator,
        executor: Executor,
        dispatcher: Optional[UiDispatcher] = None,
        session: Optional[EngineSession] = None,
    ):
        self._locator = locator
        self._executor = executor
        self._dispatcher = dispatcher or ImmediateDispatcher()
        self.session = session

    def classify(self, uri: Optional[str]) -> LoadDecision:
        if not uri:
            return LoadDecision.IGNORE
        try:
            scheme = urlsplit(uri).scheme.lower()
        except ValueError:
            return LoadDecision.IGNORE
        if is_loopback_http(uri):
            return LoadDecision.IGNORE
        is_private = scheme == PRIVATE_FILE_SCHEME or (
            not scheme and uri.startswith(PRIVATE_FILE_SCHEME + "://")
        )
        if is_private or scheme == "file":
            return LoadDecision.INTERCEPT_AND_STREAM
        return LoadDecision.IGNORE

    def on_load_request(self, uri: Optional[str]) -> Optional["Future[NavigationVerdict]"]:
        if self.classify(uri) is LoadDecision.IGNORE:
            return None
        decision: "Future[NavigationVerdict]" = Future()

        def _run() -> None:
            handled = False
            try:
                handled = self._stream_to_session(uri)
            except Exception as exc:  # pragma: no cover
                logger.error("Streaming %s failed: %s", uri, exc)
            verdict = NavigationVerdict.DENY if handled else NavigationVerdict.ALLOW
            if not decision.set_running_or_notify_cancel():
                logger.debug("Navigation decision for %s was cancelled (%s)", uri, verdict.value)
                return
            decision.set_result(verdict)

        try:
            self._executor.submit(_run)
        except RuntimeError as exc:
            logger.error("Interceptor executor unavailable for %s: %s", uri, exc)
            decision.set_result(NavigationVerdict.ALLOW)
        return decision

    def _stream_to_session(self, original_uri: str) -> bool:
        session = self.session
        if session is None:
            return False
        try:
            result = self._locator.open_for_read(original_uri)
        except OSError as exc:
            logger.error("Failed to open local resource %s: %s", original_uri, exc)
            return False

        buffer = io.BytesIO()
        try:
            while True:
                chunk = result.stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                buffer.write(chunk)
        except OSError as exc:
            logger.error("Failed to read local resource %s: %s", original_uri, exc)
            return False
        finally:
            result.close()

        payload = buffer.getvalue()
        mime_type = resolve_content_type(original_uri, result.mime_type)
        logger.debug("Streaming %d bytes for %s as %s", len(payload), original_uri, mime_type)

        def _load() -> None:
            if self.session is not session:
                logger.debug("Session replaced before load of %s", original_uri)
                return
            session.load_bytes(original_uri, payload, mime_type)

        self._dispatcher.call_soon(_load)
        return True


__all__ = ["LoadDecision", "NavigationVerdict", "LoadInterceptor"]
