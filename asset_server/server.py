"""Loopback HTTP server that exposes packaged app files to the browser engine.

One request per connection, ``GET`` only. Paths are mapped through the
:class:`VirtualPathResolver` and read from a resource locator; bodies are
streamed in fixed-size chunks.
"""

from __future__ import annotations

import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from pathlib import Path
from typing import BinaryIO, Optional, Set, Tuple

from diagnostics.fs_listing import log_directory_tree
from diagnostics.tracing import span

from .errors import ServerBindError
from .locator import OpenForReadResult, ResourceLocator
from .mime import resolve_content_type
from .paths import DEFAULT_DOCUMENT, VirtualPathResolver

logger = logging.getLogger("webhost.asset_server")

LOOPBACK_HOST = "127.0.0.1"
CHUNK_SIZE = 16 * 1024
_MAX_LINE = 8192
_MAX_HEADERS = 100
_ACCEPT_POLL_S = 0.5


class ServerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class ServerBinding:
    host: str
    port: int
    base_url: str


def _status_line(status: HTTPStatus) -> str:
    return f"HTTP/1.1 {status.value} {status.phrase}\r\n"


class LocalAssetServer:
    def __init__(
        self,
        locator: ResourceLocator,
        resolver: Optional[VirtualPathResolver] = None,
        *,
        host: str = LOOPBACK_HOST,
        chunk_size: int = CHUNK_SIZE,
        read_timeout_s: Optional[float] = 10.0,
        max_workers: int = 32,
        listing_root: Optional[Path] = None,
    ):
        self._locator = locator
        self.resolver = resolver or VirtualPathResolver()
        self._host = host
        self._chunk_size = max(1, int(chunk_size))
        self._read_timeout_s = read_timeout_s
        self._max_workers = max(1, int(max_workers))
        self._listing_root = listing_root

        self._lock = threading.RLock()
        self._state = ServerState.STOPPED
        self._binding: Optional[ServerBinding] = None
        self._listener: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._connections: Set[socket.socket] = set()
        self._conn_lock = threading.Lock()

    # -- lifecycle -----------------------------------------------------------

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def binding(self) -> Optional[ServerBinding]:
        return self._binding

    @property
    def base_url(self) -> Optional[str]:
        binding = self._binding
        return binding.base_url if binding is not None else None

    def start(self) -> ServerBinding:
        with self._lock:
            if self._state is ServerState.RUNNING and self._binding is not None:
                return self._binding
            self._state = ServerState.STARTING
            try:
                listener = socket.create_server((self._host, 0))
            except OSError as exc:
                self._state = ServerState.STOPPED
                logger.error("Failed to bind asset server on %s: %s", self._host, exc)
                raise ServerBindError(f"could not bind {self._host}: {exc}") from exc
            listener.settimeout(_ACCEPT_POLL_S)
            port = listener.getsockname()[1]
            self._listener = listener
            self._binding = ServerBinding(self._host, port, f"http://{self._host}:{port}")
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="asset-conn"
            )
            self._state = ServerState.RUNNING
            self._accept_thread = threading.Thread(
                target=self._accept_loop,
                args=(listener, self._executor),
                name="AssetServerAccept",
                daemon=True,
            )
            self._accept_thread.start()
            if self._listing_root is not None:
                self._executor.submit(log_directory_tree, self._listing_root)
            logger.info("Asset server listening at %s", self._binding.base_url)
            return self._binding

    def stop(self) -> None:
        with self._lock:
            if self._state is ServerState.STOPPED:
                return
            self._state = ServerState.STOPPING
            listener, self._listener = self._listener, None
            executor, self._executor = self._executor, None
            accept_thread, self._accept_thread = self._accept_thread, None
            if listener is not None:
                try:
                    listener.close()
                except OSError as exc:
                    logger.debug("listener close failed: %s", exc)
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)
            with self._conn_lock:
                active = list(self._connections)
            for conn in active:
                try:
                    conn.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
            if accept_thread is not None and accept_thread is not threading.current_thread():
                accept_thread.join(timeout=_ACCEPT_POLL_S * 4)
            logger.info("Asset server stopped (%s)", self.base_url)
            self._binding = None
            self._state = ServerState.STOPPED

    def _accept_loop(self, listener: socket.socket, executor: ThreadPoolExecutor) -> None:
        while self._listener is listener:
            try:
                client, _addr = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._listener is listener:
                    logger.error("accept failed: %s", exc)
                break
            try:
                executor.submit(self._handle_client, client)
            except RuntimeError:
                client.close()
                break

    # -- URL helpers ---------------------------------------------------------

    def rewrite_uri(self, url: Optional[str]) -> Optional[str]:
        return self.resolver.rewrite_uri(url, self.base_url)

    def rewrite_absolute(self, absolute: Optional[str]) -> Optional[str]:
        base_url = self.base_url
        if not absolute or base_url is None:
            return absolute
        if not absolute.startswith(self.resolver.base_prefix):
            return absolute
        return base_url + self.resolver.rewrite_absolute_to_virtual(absolute)

    # -- per connection ------------------------------------------------------

    def _handle_client(self, client: socket.socket) -> None:
        with self._conn_lock:
            self._connections.add(client)
        try:
            client.settimeout(self._read_timeout_s)
            with client.makefile("rb") as reader:
                self._serve_connection(client, reader)
        except Exception as exc:  # pragma: no cover
            logger.error("Error handling request: %s", exc)
        finally:
            with self._conn_lock:
                self._connections.discard(client)
            try:
                client.close()
            except OSError:
                pass

    def _serve_connection(self, client: socket.socket, reader: BinaryIO) -> None:
        raw = reader.readline(_MAX_LINE + 1)
        if not raw:
            return
        with span("asset_server.request") as request_span:
            line = raw.decode("ascii", errors="replace").rstrip("\r\n")
            logger.debug("Request line: %s", line)
            # headers are drained but unused
            for _ in range(_MAX_HEADERS):
                header = reader.readline(_MAX_LINE + 1)
                if not header or header in (b"\r\n", b"\n"):
                    break

            parts = line.split(" ", 2)
            if not line.strip() or len(raw) > _MAX_LINE or len(parts) < 2 or not parts[0] or not parts[1]:
                request_span.set(status=HTTPStatus.BAD_REQUEST.value)
                self._send_status(client, HTTPStatus.BAD_REQUEST, "Malformed request")
                return
            method, path = parts[0], parts[1]
            request_span.set(method=method, path=path)

            if method.upper() != "GET":
                request_span.set(status=HTTPStatus.METHOD_NOT_ALLOWED.value)
                self._send_status(client, HTTPStatus.METHOD_NOT_ALLOWED, "Only GET supported")
                return

            status, sent = self._serve_path(client, path)
            request_span.set(status=status.value, bytes=sent)

    def _serve_path(self, client: socket.socket, raw_path: str) -> Tuple[HTTPStatus, int]:
        target = self.resolver.resolve(raw_path)
        serving = target
        try:
            result = self._locator.open_for_read(target)
        except FileNotFoundError as exc:
            if not self._should_fall_back(target):
                logger.warning("File not found for %s: %s", target, exc)
                return self._send_status(client, HTTPStatus.NOT_FOUND, "Not Found"), 0
            serving = self.resolver.default_location()
            try:
                result = self._locator.open_for_read(serving)
            except FileNotFoundError:
                logger.warning("Fallback asset not found for %s", raw_path)
                return self._send_status(client, HTTPStatus.NOT_FOUND, "Not Found"), 0
            except OSError as fallback_exc:
                logger.error("Failed serving %s: %s", serving, fallback_exc)
                return self._send_status(client, HTTPStatus.INTERNAL_SERVER_ERROR, "Error"), 0
        except OSError as exc:
            logger.error("Failed serving %s: %s", target, exc)
            return self._send_status(client, HTTPStatus.INTERNAL_SERVER_ERROR, "Error"), 0

        try:
            return HTTPStatus.OK, self._stream(client, serving, result)
        finally:
            result.close()

    def _should_fall_back(self, target: str) -> bool:
        last_segment = target.rsplit("/", 1)[-1]
        default_name = self.resolver.default_document.rsplit("/", 1)[-1]
        return last_segment in ("", DEFAULT_DOCUMENT, default_name)

    def _stream(self, client: socket.socket, serving: str, result: OpenForReadResult) -> int:
        mime_type = resolve_content_type(serving, result.mime_type)
        headers = [_status_line(HTTPStatus.OK), f"Content-Type: {mime_type}\r\n"]
        if result.length is not None and result.length >= 0:
            headers.append(f"Content-Length: {result.length}\r\n")
        headers.append("Access-Control-Allow-Origin: *\r\n")
        headers.append("Connection: close\r\n\r\n")
        client.sendall("".join(headers).encode("ascii"))

        sent = 0
        try:
            while True:
                chunk = result.stream.read(self._chunk_size)
                if not chunk:
                    break
                client.sendall(chunk)
                sent += len(chunk)
        except OSError as exc:
            logger.warning("Aborted body for %s after %d bytes: %s", serving, sent, exc)
        return sent

    def _send_status(self, client: socket.socket, status: HTTPStatus, message: str) -> HTTPStatus:
        body = message.encode("utf-8")
        header = (
            _status_line(status)
            + "Content-Type: text/plain; charset=utf-8\r\n"
            + f"Content-Length: {len(body)}\r\n"
            + "Access-Control-Allow-Origin: *\r\n"
            + "Connection: close\r\n\r\n"
        )
        logger.debug("Responding %s for %s", status.value, message)
        client.sendall(header.encode("ascii") + body)
        return status


__all__ = ["LocalAssetServer", "ServerBinding", "ServerState", "LOOPBACK_HOST", "CHUNK_SIZE"]
