from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from streamguard.core.http_client import HttpClient
from streamguard.core.registry import StreamRegistry


HELLO_BODY = (
    b"Hello, World! "
    b"In production this response would be large, "
    b"and unsuitable for buffering in memory"
)


class _StubServer(HTTPServer):
    routes: dict[str, tuple[int, bytes, dict[str, str]]]


class _Handler(BaseHTTPRequestHandler):
    server: _StubServer

    def do_GET(self):
        status, body, headers = self.server.routes.get(self.path, (404, b"not found", {}))
        self.send_response(status)
        self.send_header("Content-Type", "text/plain")
        for k, v in headers.items():
            self.send_header(k, v)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    # silence default logging
    def log_message(self, format, *args):
        return


class StubEndpoint:
    def __init__(self, server: _StubServer) -> None:
        self._server = server
        host, port = server.server_address[:2]
        self.base = f"http://{host}:{port}"

    def stub(
        self,
        path: str,
        *,
        status: int = 200,
        body: bytes = HELLO_BODY,
        headers: dict[str, str] | None = None,
    ) -> str:
        self._server.routes[path] = (status, body, dict(headers or {}))
        return self.url(path)

    def body_of(self, path: str) -> bytes:
        return self._server.routes[path][1]

    def url(self, path: str) -> str:
        return self.base + path

    def reset(self) -> None:
        self._server.routes.clear()


@pytest.fixture(scope="session")
def stub_server():
    server = _StubServer(("127.0.0.1", 0), _Handler)  # 0 => random free port
    server.routes = {}
    t = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.1}, daemon=True)
    t.start()
    try:
        yield StubEndpoint(server)
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def endpoint(stub_server):
    stub_server.reset()
    stub_server.stub("/foo")
    return stub_server


@pytest.fixture
def registry():
    return StreamRegistry()


@pytest.fixture
def client(registry):
    c = HttpClient(timeout=2.0).register(registry)
    try:
        yield c
    finally:
        c.close()
