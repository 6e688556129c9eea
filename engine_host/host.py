from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from asset_server.errors import ServerBindError
from asset_server.interceptor import LoadInterceptor, NavigationVerdict
from asset_server.locator import ResourceLocator
from asset_server.paths import DEFAULT_DOCUMENT, VirtualPathResolver, is_loopback_http
from asset_server.server import LocalAssetServer
from bridge_channel import BridgeChannel

from .config import get_start_page
from .context import EngineContext, get_engine_context
from .session import EngineSession, NavigationListener, ResultCallback

logger = logging.getLogger("webhost.host")

_HISTORY_BACK_JS = "if (window.history && window.history.length > 1) { window.history.back(); }"


class EngineHost:
    """Wires the asset server, load interceptor and bridge to one engine view."""

    def __init__(
        self,
        locator: ResourceLocator,
        config: Optional[Dict[str, Any]] = None,
        context: Optional[EngineContext] = None,
        listener: Optional[NavigationListener] = None,
    ):
        self.context = context or get_engine_context()
        self.config: Dict[str, Any] = dict(config if config is not None else self.context.config)
        self.listener = listener
        self.resolver = VirtualPathResolver(self.config.get("base_prefix") or "", DEFAULT_DOCUMENT)
        listing_root = getattr(locator, "app_root", None) if self.config.get("list_app_directory") else None
        self.server = LocalAssetServer(
            locator,
            self.resolver,
            host=str(self.config.get("bind_host") or "127.0.0.1"),
            chunk_size=int(self.config.get("chunk_size") or 16384),
            read_timeout_s=self.config.get("read_timeout_s"),
            max_workers=int(self.config.get("max_workers") or 32),
            listing_root=listing_root,
        )
        self.interceptor = LoadInterceptor(locator, self.context.executor, self.context.dispatcher)
        self.bridge = BridgeChannel(int(self.config.get("early_queue_limit") or 256))
        self.session: Optional[EngineSession] = None
        self.current_url: Optional[str] = None
        self.start_page_location: Optional[str] = None

    def start(self) -> Optional[str]:
        """Start local serving. Returns the base URL, or ``None`` if disabled."""
        try:
            binding = self.server.start()
        except ServerBindError as exc:
            logger.error("Failed to start local server, serving via interception only: %s", exc)
            return None
        start_page = get_start_page(self.config)
        if not start_page.startswith(self.resolver.base_prefix):
            start_page = self.resolver.base_prefix + start_page.lstrip("/")
        self.start_page_location = start_page
        self.resolver.set_default_document(start_page)
        logger.info("Resolved start page %s", start_page)
        return binding.base_url

    def attach_session(self, session: Optional[EngineSession]) -> None:
        self.session = session
        self.interceptor.session = session

    def rewrite_start_url(self, url: Optional[str]) -> Optional[str]:
        if url is None or self.server.base_url is None:
            return url
        if is_loopback_http(url):
            path = urlsplit(url).path
            if path in ("", "/", "/index.html") and self.start_page_location:
                logger.debug("Routing loopback start path to %s", self.start_page_location)
                return self.server.rewrite_absolute(self.start_page_location)
        if url.startswith(self.resolver.base_prefix):
            self.resolver.set_default_document(url)
            return self.server.rewrite_absolute(url)
        return self.server.rewrite_uri(url)

    def load_url(self, url: str) -> str:
        if url.startswith("javascript:"):
            if self.session is not None:
                self.session.load_uri(url)
            return url
        rewritten = self.rewrite_start_url(url) or url
        self.current_url = rewritten
        if self.listener is not None:
            self.listener.on_page_started(rewritten)
        if self.session is not None:
            self.session.load_uri(rewritten)
        return rewritten

    def on_page_stop(self) -> None:
        if self.listener is not None and self.current_url is not None:
            self.listener.on_page_finished(self.current_url)

    def on_load_request(self, uri: str) -> Optional["Future[NavigationVerdict]"]:
        return self.interceptor.on_load_request(uri)

    def evaluate_javascript(self, code: str, callback: Optional[ResultCallback] = None) -> int:
        return self.bridge.send(code, callback)

    def go_back(self) -> bool:
        self.evaluate_javascript(_HISTORY_BACK_JS)
        return True

    def clear_history(self, new_session: Optional[EngineSession]) -> None:
        """Swap in a fresh session; the old page port goes away with it."""
        port = self.bridge.current_port
        if port is not None:
            self.bridge.on_channel_detached(port)
        self.attach_session(new_session)

    def destroy(self) -> None:
        self.server.stop()
        self.bridge.teardown()
        self.attach_session(None)
        self.current_url = None


__all__ = ["EngineHost"]
