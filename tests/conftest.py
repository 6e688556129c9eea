from __future__ import annotations

import socket
import sys
from pathlib import Path
from typing import Dict, Iterator, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from asset_server.locator import DirectoryResourceLocator
from asset_server.paths import VirtualPathResolver
from asset_server.server import LocalAssetServer
from diagnostics.tracing import clear_spans

APP_FILES: Dict[str, bytes] = {
    "index.html": b"<!doctype html><title>index</title>",
    "main.html": b"<!doctype html><title>main</title>",
    "js/app.js": b"console.log('app');\n",
    "css/site.css": b"body { margin: 0; }\n",
    "img/logo.svg": b"<svg xmlns='http://www.w3.org/2000/svg'/>",
}


@pytest.fixture()
def app_root(tmp_path: Path) -> Path:
    root = tmp_path / "www"
    for rel, data in APP_FILES.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    return root


@pytest.fixture()
def locator(app_root: Path) -> DirectoryResourceLocator:
    return DirectoryResourceLocator(app_root)


@pytest.fixture()
def resolver() -> VirtualPathResolver:
    return VirtualPathResolver()


@pytest.fixture()
def server(locator: DirectoryResourceLocator, resolver: VirtualPathResolver) -> Iterator[LocalAssetServer]:
    srv = LocalAssetServer(locator, resolver, read_timeout_s=5.0)
    srv.start()
    try:
        yield srv
    finally:
        srv.stop()


@pytest.fixture(autouse=True)
def _clean_spans() -> Iterator[None]:
    clear_spans()
    yield
    clear_spans()


def raw_request(port: int, payload: bytes, timeout: float = 5.0) -> Tuple[int, Dict[str, str], bytes]:
    """Send raw bytes and parse the single response the server writes."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(payload)
        chunks = []
        while True:
            data = sock.recv(65536)
            if not data:
                break
            chunks.append(data)
    response = b"".join(chunks)
    head, _, body = response.partition(b"\r\n\r\n")
    lines = head.decode("ascii").split("\r\n")
    status = int(lines[0].split(" ")[1])
    headers: Dict[str, str] = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status, headers, body


def http_get(port: int, path: str) -> Tuple[int, Dict[str, str], bytes]:
    request = f"GET {path} HTTP/1.1\r\nHost: 127.0.0.1\r\nUser-Agent: tests\r\n\r\n"
    return raw_request(port, request.encode("ascii"))


@pytest.fixture()
def send_raw():
    return raw_request


@pytest.fixture()
def get():
    return http_get


@pytest.fixture()
def app_files() -> Dict[str, bytes]:
    return dict(APP_FILES)
