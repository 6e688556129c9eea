import io
import socket
import threading
from typing import Dict, List, Optional
from urllib.request import urlopen

import pytest

from asset_server.errors import ResourceNotFound, ServerBindError
from asset_server.locator import OpenForReadResult
from asset_server.mime import is_javascript_type
from asset_server.paths import VirtualPathResolver
from asset_server.server import CHUNK_SIZE, LocalAssetServer, ServerState
from diagnostics.tracing import get_recent_spans


class _MemoryLocator:
    """Serves in-memory payloads; optionally hides lengths or fails reads."""

    def __init__(self, files: Dict[str, bytes], declared: Optional[str] = None, known_length: bool = True):
        self.files = files
        self.declared = declared
        self.known_length = known_length
        self.opened: List[str] = []

    def open_for_read(self, location: str) -> OpenForReadResult:
        self.opened.append(location)
        if location not in self.files:
            raise ResourceNotFound(location)
        data = self.files[location]
        return OpenForReadResult(
            stream=io.BytesIO(data),
            length=len(data) if self.known_length else None,
            mime_type=self.declared,
        )


class _FailingStream(io.RawIOBase):
    def __init__(self, first: bytes):
        self._first = first
        self._sent = False

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        if not self._sent:
            self._sent = True
            return self._first
        raise OSError("disk went away")


def _serve(locator, **kwargs) -> LocalAssetServer:
    srv = LocalAssetServer(locator, VirtualPathResolver(), read_timeout_s=5.0, **kwargs)
    srv.start()
    return srv


def test_round_trip_is_byte_identical(server: LocalAssetServer, app_files) -> None:
    with urlopen(server.base_url + "/js/app.js", timeout=5) as response:
        body = response.read()
        assert response.status == 200
        assert int(response.headers["Content-Length"]) == len(app_files["js/app.js"])
    assert body == app_files["js/app.js"]


def test_large_payload_streams_in_chunks() -> None:
    payload = bytes(range(256)) * ((CHUNK_SIZE * 3) // 256 + 7)
    srv = _serve(_MemoryLocator({"bundled-app-root/blob.bin": payload}))
    try:
        with urlopen(srv.base_url + "/blob.bin", timeout=5) as response:
            assert response.read() == payload
            assert int(response.headers["Content-Length"]) == len(payload)
    finally:
        srv.stop()


def test_binding_is_loopback_with_ephemeral_port(server: LocalAssetServer) -> None:
    binding = server.binding
    assert binding is not None
    assert binding.host == "127.0.0.1"
    assert binding.port > 0
    assert binding.base_url == f"http://127.0.0.1:{binding.port}"
    assert server.state is ServerState.RUNNING


def test_start_is_idempotent_while_running(server: LocalAssetServer) -> None:
    first = server.binding
    assert server.start() is first
    assert server.base_url == first.base_url


def test_restart_creates_fresh_binding(locator) -> None:
    srv = LocalAssetServer(locator)
    srv.start()
    old = srv.binding
    srv.stop()
    assert srv.state is ServerState.STOPPED
    assert srv.binding is None
    assert srv.base_url is None
    srv.stop()
    try:
        new = srv.start()
        assert new is not old
        with urlopen(new.base_url + "/index.html", timeout=5) as response:
            assert response.status == 200
    finally:
        srv.stop()


def test_stop_releases_listener(locator) -> None:
    srv = LocalAssetServer(locator)
    port = srv.start().port
    srv.stop()
    with pytest.raises(OSError):
        socket.create_connection(("127.0.0.1", port), timeout=1).close()


def test_bind_failure_surfaces_to_caller(locator) -> None:
    srv = LocalAssetServer(locator, host="203.0.113.7")
    with pytest.raises(ServerBindError):
        srv.start()
    assert srv.state is ServerState.STOPPED
    assert srv.binding is None


def test_javascript_served_with_script_type() -> None:
    locator = _MemoryLocator({"bundled-app-root/js/app.js": b"void 0;"})
    srv = _serve(locator)
    try:
        with urlopen(srv.base_url + "/_app_file_js/app.js", timeout=5) as response:
            content_type = response.headers["Content-Type"]
        assert is_javascript_type(content_type)
        assert content_type != "application/octet-stream"
    finally:
        srv.stop()


def test_generic_declared_type_is_corrected_but_specific_kept() -> None:
    files = {"bundled-app-root/site.css": b"a{}", "bundled-app-root/blob": b"\x00\x01"}
    srv = _serve(_MemoryLocator(files, declared="application/octet-stream"))
    try:
        with urlopen(srv.base_url + "/site.css", timeout=5) as response:
            assert response.headers["Content-Type"] == "text/css"
        with urlopen(srv.base_url + "/blob", timeout=5) as response:
            assert response.headers["Content-Type"] == "application/octet-stream"
    finally:
        srv.stop()
    srv = _serve(_MemoryLocator(files, declared="text/x-custom"))
    try:
        with urlopen(srv.base_url + "/site.css", timeout=5) as response:
            assert response.headers["Content-Type"] == "text/x-custom"
    finally:
        srv.stop()


def test_response_headers(server: LocalAssetServer, get) -> None:
    status, headers, _body = get(server.binding.port, "/index.html")
    assert status == 200
    assert headers["access-control-allow-origin"] == "*"
    assert headers["connection"] == "close"
    assert headers["content-type"].startswith("text/html")


def test_unknown_length_omits_content_length(get) -> None:
    srv = _serve(_MemoryLocator({"bundled-app-root/stream.txt": b"abc" * 1000}, known_length=False))
    try:
        status, headers, body = get(srv.binding.port, "/stream.txt")
    finally:
        srv.stop()
    assert status == 200
    assert "content-length" not in headers
    assert body == b"abc" * 1000


def test_non_get_is_rejected(server: LocalAssetServer, send_raw) -> None:
    status, headers, body = send_raw(
        server.binding.port, b"POST / HTTP/1.1\r\nHost: x\r\nContent-Length: 0\r\n\r\n"
    )
    assert status == 405
    assert headers["connection"] == "close"
    assert body == b"Only GET supported"


def test_lowercase_get_is_accepted(server: LocalAssetServer, send_raw, app_files) -> None:
    status, _headers, body = send_raw(server.binding.port, b"get /main.html HTTP/1.1\r\n\r\n")
    assert status == 200
    assert body == app_files["main.html"]


@pytest.mark.parametrize("line", [b"\r\n", b"   \r\n", b"GARBAGE\r\n", b"GET\r\n"])
def test_malformed_request_line_is_bad_request(server: LocalAssetServer, send_raw, line: bytes) -> None:
    status, _headers, _body = send_raw(server.binding.port, line + b"\r\n")
    assert status == 400


def test_missing_resource_is_not_found(server: LocalAssetServer, get) -> None:
    status, headers, body = get(server.binding.port, "/js/missing.js")
    assert status == 404
    assert body == b"Not Found"
    assert headers["content-length"] == str(len(body))


def test_null_byte_path_is_not_found(server: LocalAssetServer, get) -> None:
    status, headers, body = get(server.binding.port, "/a%00b.html")
    assert status == 404
    assert body == b"Not Found"
    assert headers["connection"] == "close"


def test_root_falls_back_to_default_document_once(get) -> None:
    locator = _MemoryLocator({"bundled-app-root/main.html": b"<main>"})
    srv = LocalAssetServer(locator, VirtualPathResolver())
    srv.start()
    try:
        srv.resolver.set_default_document("main.html")
        status, _headers, body = get(srv.binding.port, "/index.html")
        assert status == 200
        assert body == b"<main>"
        assert locator.opened == ["bundled-app-root/index.html", "bundled-app-root/main.html"]

        locator.opened.clear()
        status, _headers, _body = get(srv.binding.port, "/pages/")
        assert status == 200
        assert locator.opened == ["bundled-app-root/pages/", "bundled-app-root/main.html"]
    finally:
        srv.stop()


def test_fallback_is_not_applied_to_other_files(get) -> None:
    locator = _MemoryLocator({"bundled-app-root/index.html": b"<index>"})
    srv = _serve(locator)
    try:
        status, _headers, _body = get(srv.binding.port, "/about.html")
    finally:
        srv.stop()
    assert status == 404
    assert locator.opened == ["bundled-app-root/about.html"]


def test_missing_fallback_is_not_found(get) -> None:
    locator = _MemoryLocator({})
    srv = _serve(locator)
    try:
        status, _headers, _body = get(srv.binding.port, "/")
    finally:
        srv.stop()
    assert status == 404
    assert locator.opened == ["bundled-app-root/index.html", "bundled-app-root/index.html"]


def test_default_document_set_after_start(server: LocalAssetServer, get, app_files) -> None:
    status, _h, body = get(server.binding.port, "/")
    assert body == app_files["index.html"]
    server.resolver.set_default_document("main.html")
    status, _h, body = get(server.binding.port, "/")
    assert status == 200
    assert body == app_files["main.html"]


def test_read_error_before_headers_is_internal_error(get) -> None:
    class _Broken:
        def open_for_read(self, location: str) -> OpenForReadResult:
            raise PermissionError("denied")

    srv = _serve(_Broken())
    try:
        status, _headers, body = get(srv.binding.port, "/index.html")
    finally:
        srv.stop()
    assert status == 500
    assert body == b"Error"


def test_read_error_after_headers_closes_connection(get) -> None:
    class _Flaky:
        def open_for_read(self, location: str) -> OpenForReadResult:
            return OpenForReadResult(stream=_FailingStream(b"partial"), length=100, mime_type="text/plain")

    srv = _serve(_Flaky())
    try:
        status, headers, body = get(srv.binding.port, "/data.txt")
        assert status == 200
        assert headers["content-length"] == "100"
        assert body == b"partial"
        status, _headers, _body = get(srv.binding.port, "/data.txt")
        assert status == 200
    finally:
        srv.stop()


def test_passthrough_path_reaches_locator(get) -> None:
    locator = _MemoryLocator({"cdvfile://localhost/persistent/a b.txt": b"note"})
    srv = _serve(locator)
    try:
        status, _headers, body = get(
            srv.binding.port, "/_cdvfile_/cdvfile%3A%2F%2Flocalhost%2Fpersistent%2Fa%20b.txt"
        )
    finally:
        srv.stop()
    assert status == 200
    assert body == b"note"


def test_concurrent_clients_are_isolated(server: LocalAssetServer, get, send_raw, app_files) -> None:
    results: List[int] = []
    lock = threading.Lock()

    def _fetch(path: str) -> None:
        status, _h, _b = get(server.binding.port, path)
        with lock:
            results.append(status)

    threads = [threading.Thread(target=_fetch, args=("/js/app.js",)) for _ in range(8)]
    threads += [threading.Thread(target=_fetch, args=("/missing.png",)) for _ in range(4)]
    for thread in threads:
        thread.start()
    send_raw(server.binding.port, b"\r\n\r\n")
    for thread in threads:
        thread.join(timeout=10)
    assert sorted(results) == [200] * 8 + [404] * 4


def test_requests_are_traced(server: LocalAssetServer, get) -> None:
    get(server.binding.port, "/css/site.css")
    get(server.binding.port, "/nope")
    spans = get_recent_spans("asset_server.request")
    statuses = sorted(item["attrs"].get("status") for item in spans)
    assert statuses == [200, 404]
    ok = [item for item in spans if item["attrs"].get("status") == 200][0]
    assert ok["attrs"]["path"] == "/css/site.css"
    assert ok["attrs"]["bytes"] > 0


def test_rewrite_helpers_follow_binding(server: LocalAssetServer) -> None:
    base = server.base_url
    assert server.rewrite_uri("http://localhost/") == base + "/index.html"
    assert server.rewrite_absolute("bundled-app-root/main.html") == base + "/main.html"
    assert server.rewrite_absolute("file:///other.html") == "file:///other.html"
