"""
Pytest fixtures shared by the unit and integration suites.
"""

import socket
import threading

import pytest

from securerelay.common import protocol
from securerelay.common.connection import Connection
from securerelay.crypto.cert_gen import create_server_credentials
from securerelay.crypto.tls import create_client_context, create_server_context
from securerelay.server.broadcast import Broadcaster
from securerelay.server.handler import ConnectionHandler
from securerelay.server.registry import ClientRegistry
from securerelay.server.server import ChatServer
from tests.helpers import POLL_INTERVAL, WRITE_TIMEOUT, Peer


# ============================================================================
# IN-PROCESS CONNECTIONS (socketpair)
# ============================================================================

@pytest.fixture
def make_connection():
    """Factory returning (Connection, Peer) joined by a socketpair."""
    created = []

    def _make(name: str = "peer", **kwargs):
        server_side, client_side = socket.socketpair()
        kwargs.setdefault("write_timeout", WRITE_TIMEOUT)
        kwargs.setdefault("poll_interval", POLL_INTERVAL)
        connection = Connection(server_side, (name, len(created)), **kwargs)
        peer = Peer(client_side, name)
        created.append((connection, peer))
        return connection, peer

    yield _make

    for connection, peer in created:
        connection.close()
        peer.close()


@pytest.fixture
def registry():
    return ClientRegistry()


@pytest.fixture
def broadcaster(registry):
    return Broadcaster(registry)


@pytest.fixture
def start_handler(registry, broadcaster):
    """Factory running a ConnectionHandler in a background thread."""
    started = []

    def _start(connection: Connection):
        handler = ConnectionHandler(connection, registry, broadcaster)
        thread = threading.Thread(target=handler.run, daemon=True)
        thread.start()
        started.append((handler, thread))
        return handler, thread

    yield _start

    for handler, thread in started:
        handler.connection.close()
        thread.join(5)


@pytest.fixture
def join_chat(make_connection, start_handler):
    """Factory that connects a peer and completes the nickname handshake."""

    def _join(nickname: str):
        connection, peer = make_connection(nickname)
        handler, thread = start_handler(connection)
        assert peer.recv_line() == protocol.WELCOME
        peer.send(nickname)
        assert peer.recv_line() == protocol.greeting(nickname)
        return handler, thread, peer

    return _join


# ============================================================================
# TLS SERVER
# ============================================================================

@pytest.fixture(scope="session")
def certs(tmp_path_factory):
    """Self-signed server credentials valid for localhost / 127.0.0.1."""
    cert_path, key_path = create_server_credentials(tmp_path_factory.mktemp("certs"))
    return cert_path, key_path


@pytest.fixture
def client_context(certs):
    cert_path, _ = certs
    return create_client_context(cert_path)


@pytest.fixture
def tls_server(certs):
    """A ChatServer over TLS on an ephemeral port, serving in a background thread."""
    cert_path, key_path = certs
    server = ChatServer("127.0.0.1", 0, create_server_context(cert_path, key_path),
                        write_timeout=WRITE_TIMEOUT, poll_interval=POLL_INTERVAL)
    server.bind()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield server

    server.shutdown()
    thread.join(5)
    server.join(5)


@pytest.fixture
def tls_connect(tls_server, client_context):
    """Factory opening a raw TLS client connection to `tls_server`."""
    peers = []

    def _connect(name: str = "client") -> Peer:
        host, port = tls_server.address
        raw = socket.create_connection((host, port), timeout=5)
        sock = client_context.wrap_socket(raw, server_hostname="localhost")
        peer = Peer(sock, name)
        peers.append(peer)
        return peer

    yield _connect

    for peer in peers:
        peer.close()
