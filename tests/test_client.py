# tests/test_client.py
from __future__ import annotations

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests
from requests.adapters import HTTPAdapter

from httpretry.client import (
    TimeoutHTTPAdapter,
    client_with_timeout,
    client_with_timeouts,
    keepalive_socket_options,
)
from httpretry.config import TimeoutConfig


# --- helpers -----------------------------------------------------------------


class SlowHandler(BaseHTTPRequestHandler):
    """Writes 'abcde' with a long pause before the fourth byte."""

    pauses = (0.1, 0.1, 0.6, 0.1)

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Length", "5")
        self.end_headers()
        try:
            for byte, pause in zip(b"abcd", self.pauses):
                self.wfile.write(bytes([byte]))
                time.sleep(pause)
            self.wfile.write(b"e")
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args):
        pass


@pytest.fixture
def slow_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), SlowHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/"
    server.shutdown()
    server.server_close()


# --- tests -------------------------------------------------------------------


def test_inactivity_timeout_aborts_stalled_body(slow_server):
    session = client_with_timeout(0.3)

    with pytest.raises(requests.RequestException) as ei:
        session.get(slow_server)

    assert "timed out" in str(ei.value).lower()


def test_generous_timeout_reads_whole_body(slow_server):
    session = client_with_timeouts(1.0, 1.0, 2.0)
    resp = session.get(slow_server)
    assert resp.status_code == 200
    assert resp.content == b"abcde"


def test_sessions_mount_timeout_adapter():
    session = client_with_timeouts(1.0, 2.0, 3.0)
    for prefix in ("http://", "https://"):
        adapter = session.get_adapter(prefix + "example.com")
        assert isinstance(adapter, TimeoutHTTPAdapter)
        assert adapter.dial_timeout == 1.0
        assert adapter.keepalive_timeout == 2.0
        assert adapter.inactivity_timeout == 3.0


def test_adapter_pools_use_keepalive_sockets():
    adapter = TimeoutHTTPAdapter(1.0, 15.0, 1.0)
    options = adapter.poolmanager.connection_pool_kw["socket_options"]
    assert (socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1) in options
    assert adapter.poolmanager.connection_pool_kw["maxsize"] == 10


def test_adapter_fills_in_default_timeout(monkeypatch):
    seen = {}

    def fake_send(self, request, **kwargs):
        seen.update(kwargs)
        return "sent"

    monkeypatch.setattr(HTTPAdapter, "send", fake_send)
    adapter = TimeoutHTTPAdapter(1.5, 10.0, 4.0)

    assert adapter.send(object(), timeout=None) == "sent"
    assert seen["timeout"] == (1.5, 4.0)

    adapter.send(object(), timeout=9)
    assert seen["timeout"] == 9


def test_keepalive_options_extend_urllib3_defaults():
    options = keepalive_socket_options(0.2)
    assert (socket.IPPROTO_TCP, socket.TCP_NODELAY, 1) in options
    assert (socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1) in options
    if hasattr(socket, "TCP_KEEPIDLE"):
        # sub-second periods are rounded up to the kernel's 1s granularity
        assert (socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, 1) in options


def test_timeout_config_builds_session():
    session = TimeoutConfig(dial_timeout=2.0, inactivity_timeout=7.0).build_session()
    adapter = session.get_adapter("https://example.com")
    assert adapter.dial_timeout == 2.0
    assert adapter.keepalive_timeout == 30.0
    assert adapter.inactivity_timeout == 7.0
