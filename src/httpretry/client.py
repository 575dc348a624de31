# httpretry/client.py
"""
HTTP sessions tuned for long running downloads.

The default ``requests`` session never times out. Sessions built here time
out aggressively instead: connecting is bounded by a dial timeout, every socket
read and write by an inactivity timeout (urllib3 re-arms the socket timeout on
each operation, which also bounds the wait for response headers), and idle
pooled connections are probed with TCP keep-alive.
"""
from __future__ import annotations

import logging
import socket
from typing import List, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection

logger = logging.getLogger(__name__)

MAX_CONNECTIONS_PER_HOST = 10

SocketOption = Tuple[int, int, int]


def keepalive_socket_options(period: float) -> List[SocketOption]:
    """
    urllib3 socket options enabling TCP keep-alive probes every ``period`` seconds.

    Platforms without per-socket keep-alive tuning only get SO_KEEPALIVE.
    """
    seconds = max(1, int(period))
    options: List[SocketOption] = list(HTTPConnection.default_socket_options)
    options.append((socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1))

    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, seconds))
    elif hasattr(socket, "TCP_KEEPALIVE"):  # macOS
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPALIVE, seconds))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, seconds))
    return options


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTPAdapter with keep-alive sockets and default (dial, inactivity) timeouts."""

    def __init__(
        self,
        dial_timeout: float,
        keepalive_timeout: float,
        inactivity_timeout: float,
        **kwargs,
    ):
        self.dial_timeout = dial_timeout
        self.keepalive_timeout = keepalive_timeout
        self.inactivity_timeout = inactivity_timeout
        kwargs.setdefault("pool_maxsize", MAX_CONNECTIONS_PER_HOST)
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        pool_kwargs["socket_options"] = keepalive_socket_options(self.keepalive_timeout)
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        proxy_kwargs.setdefault(
            "socket_options", keepalive_socket_options(self.keepalive_timeout)
        )
        return super().proxy_manager_for(proxy, **proxy_kwargs)

    def send(self, request, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = (self.dial_timeout, self.inactivity_timeout)
        return super().send(request, **kwargs)


def client_with_timeouts(
    dial_timeout: float,
    keepalive_timeout: float,
    inactivity_timeout: float,
) -> requests.Session:
    """Build a session with separate dial, keep-alive and inactivity timeouts (seconds)."""
    adapter = TimeoutHTTPAdapter(dial_timeout, keepalive_timeout, inactivity_timeout)
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    logger.debug(
        "Built session (dial=%.1fs, keepalive=%.1fs, inactivity=%.1fs)",
        dial_timeout, keepalive_timeout, inactivity_timeout,
    )
    return session


def client_with_timeout(timeout: float) -> requests.Session:
    return client_with_timeouts(timeout, timeout, timeout)
