"""
Socket-level aborts for in-flight HTTP exchanges.

``requests`` gives no handle on the socket while it is connecting or waiting
for the answer. :class:`AbortableAdapter` swaps in urllib3 connection classes
that report every socket they open or reuse to the :func:`abort_scope` active
on the calling thread; cancelling that scope's token shuts the socket down,
which unblocks a pending ``recv`` in any phase of the exchange.
"""

from __future__ import annotations

import socket
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.poolmanager import PoolManager

from .cancellation import CancellationToken

__all__ = [
    "AbortableAdapter",
    "abort_scope",
    "make_abortable",
]

_scope = threading.local()


class _Scope:
    def __init__(self, token: CancellationToken) -> None:
        self.token = token
        self.sockets: List[socket.socket] = []
        self.unregister: List[Callable[[], None]] = []


@contextmanager
def abort_scope(token: Optional[CancellationToken]) -> Iterator[None]:
    """Tie sockets used on this thread to ``token`` until the block exits."""
    if token is None:
        yield
        return
    previous = getattr(_scope, "current", None)
    current = _Scope(token)
    _scope.current = current
    try:
        yield
    finally:
        _scope.current = previous
        for unregister in current.unregister:
            unregister()


def _shutdown(sock: socket.socket) -> None:
    sock.shutdown(socket.SHUT_RDWR)


def _watch(sock: Optional[socket.socket]) -> None:
    current: Optional[_Scope] = getattr(_scope, "current", None)
    if current is None or sock is None:
        return
    if any(sock is seen for seen in current.sockets):
        return
    current.sockets.append(sock)
    current.unregister.append(current.token.add_callback(lambda: _shutdown(sock)))


class _WatchedConnection:
    # fresh connections report after connecting, pooled ones when reused
    def connect(self):
        super().connect()
        _watch(self.sock)

    def request(self, *args, **kwargs):
        _watch(self.sock)
        return super().request(*args, **kwargs)


class _AbortableHTTPConnection(_WatchedConnection, HTTPConnection):
    pass


class _AbortableHTTPSConnection(_WatchedConnection, HTTPSConnection):
    pass


class _AbortableHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = _AbortableHTTPConnection


class _AbortableHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = _AbortableHTTPSConnection


_POOL_SWAPS = (
    ("http", HTTPConnectionPool, _AbortableHTTPConnectionPool),
    ("https", HTTPSConnectionPool, _AbortableHTTPSConnectionPool),
)


def _install_pools(manager: PoolManager) -> PoolManager:
    # SOCKS managers bring their own pool classes and are left alone
    for scheme, stock, abortable in _POOL_SWAPS:
        if manager.pool_classes_by_scheme.get(scheme) is stock:
            manager.pool_classes_by_scheme = {
                **manager.pool_classes_by_scheme,
                scheme: abortable,
            }
    return manager


class AbortableAdapter(HTTPAdapter):
    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        _install_pools(self.poolmanager)

    def proxy_manager_for(self, *args, **kwargs):
        return _install_pools(super().proxy_manager_for(*args, **kwargs))


def make_abortable(session: requests.Session) -> requests.Session:
    """
    Replace the stock adapters of ``session`` with :class:`AbortableAdapter`.

    Custom adapters mounted by the caller are kept; calls through them can
    still be cancelled, but only once the blocking read returns.
    """
    for prefix, adapter in list(session.adapters.items()):
        if type(adapter) is not HTTPAdapter:
            continue
        session.mount(
            prefix,
            AbortableAdapter(
                pool_connections=adapter._pool_connections,
                pool_maxsize=adapter._pool_maxsize,
                max_retries=adapter.max_retries,
                pool_block=adapter._pool_block,
            ),
        )
        adapter.close()
    return session
