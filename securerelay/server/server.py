"""
SecureRelay TLS chat server.

This module implements the multi-user relay server that:
    1. Loads and checks the server certificate and private key
    2. Listens on a configurable host/port (default 127.0.0.1:3000)
    3. Accepts TCP connections and upgrades each one to TLS in its own thread
    4. Runs a ConnectionHandler per peer (nickname handshake + chat loop)
    5. Shuts down gracefully on SIGINT/SIGTERM or the operator /quit command

Server Architecture:
    - One thread per connection, plus the accept loop and the operator console
    - ClientRegistry is the single synchronized source of "who is connected"
    - ShutdownCoordinator drains every connection exactly once

Usage:
    python -m securerelay.server [--host HOST] [--port PORT] [--cert PEM] [--key PEM]

    To stop the server: Press Ctrl+C or type /quit

Environment Variables (.env):
    See securerelay.common.config
"""

import ssl
import sys
import socket
import logging
import argparse
import threading
from typing import Optional, Set

from securerelay.common import config
from securerelay.common.connection import Connection
from securerelay.crypto.cert_validator import (
    get_cert_fingerprint,
    get_cert_subject_cn,
    validate_server_credentials,
)
from securerelay.crypto.tls import create_server_context
from securerelay.server.broadcast import Broadcaster
from securerelay.server.console import OperatorConsole
from securerelay.server.handler import ConnectionHandler
from securerelay.server.registry import ClientRegistry
from securerelay.server.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)

ACCEPT_TIMEOUT = 1.0
TLS_HANDSHAKE_TIMEOUT = 10.0
LISTEN_BACKLOG = 16


class ChatServer:
    """Accept loop plus the shared state every connection handler works against."""

    def __init__(self, host: str = config.SERVER_HOST, port: int = config.SERVER_PORT,
                 ssl_context: Optional[ssl.SSLContext] = None,
                 write_timeout: Optional[float] = None,
                 poll_interval: Optional[float] = None):
        self.host = host
        self.port = port
        self.ssl_context = ssl_context
        self.write_timeout = write_timeout
        self.poll_interval = poll_interval

        self.registry = ClientRegistry()
        self.broadcaster = Broadcaster(self.registry)
        self.coordinator = ShutdownCoordinator(self.registry)
        self.listener: Optional[socket.socket] = None

        self._handlers: Set[ConnectionHandler] = set()
        self._handlers_lock = threading.Lock()
        self._threads = []

    @property
    def address(self) -> tuple:
        """Actual (host, port) the listener is bound to."""
        return self.listener.getsockname()[:2]

    def bind(self) -> tuple:
        """
        Create the listening socket.

        Raises:
            OSError: If the address cannot be bound
        """
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            listener.bind((self.host, self.port))
            listener.listen(LISTEN_BACKLOG)
        except OSError:
            listener.close()
            raise
        # Accept wakes up periodically to observe the running flag
        listener.settimeout(ACCEPT_TIMEOUT)

        self.listener = listener
        self.coordinator.listener = listener
        if self.ssl_context is None:
            logger.warning("TLS is disabled; connections are plaintext")
        logger.info(f"Server listening on {self.address[0]}:{self.address[1]}")
        return self.address

    def serve_forever(self) -> None:
        """Accept connections until shutdown is requested, then shut down."""
        if self.listener is None:
            self.bind()

        try:
            while self.coordinator.running:
                try:
                    client_socket, client_address = self.listener.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if not self.coordinator.running:
                        break
                    logger.critical(f"Accept loop failed: {e}")
                    raise

                logger.info(f"[{client_address[0]}:{client_address[1]}] Client connected")
                self._spawn(client_socket, client_address)
        finally:
            self.coordinator.shutdown()
            self._close_pending()

    def shutdown(self) -> bool:
        """Shut the server down from any thread."""
        performed = self.coordinator.shutdown()
        self._close_pending()
        return performed

    def _spawn(self, client_socket: socket.socket, client_address: tuple) -> None:
        thread = threading.Thread(
            target=self._handle_connection,
            args=(client_socket, client_address),
            name=f"client-{client_address[0]}:{client_address[1]}",
            daemon=True,
        )
        self._threads = [t for t in self._threads if t.is_alive()]
        self._threads.append(thread)
        thread.start()

    def _secure(self, client_socket: socket.socket) -> socket.socket:
        if self.ssl_context is None:
            return client_socket
        client_socket.settimeout(TLS_HANDSHAKE_TIMEOUT)
        return self.ssl_context.wrap_socket(client_socket, server_side=True)

    def _handle_connection(self, client_socket: socket.socket, client_address: tuple) -> None:
        client_id = f"{client_address[0]}:{client_address[1]}"
        try:
            secure_socket = self._secure(client_socket)
        except (ssl.SSLError, OSError) as e:
            logger.warning(f"[{client_id}] TLS handshake failed: {e}")
            client_socket.close()
            return

        connection = Connection(secure_socket, client_address,
                                write_timeout=self.write_timeout,
                                poll_interval=self.poll_interval)
        handler = ConnectionHandler(connection, self.registry, self.broadcaster)
        with self._handlers_lock:
            self._handlers.add(handler)
        try:
            if not self.coordinator.running:
                connection.close()
                return
            handler.run()
        finally:
            with self._handlers_lock:
                self._handlers.discard(handler)

    def _close_pending(self) -> None:
        """Close connections that had not finished the nickname handshake at shutdown."""
        with self._handlers_lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler.connection.close()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for handler threads to finish."""
        for thread in list(self._threads):
            thread.join(timeout)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SecureRelay TLS chat server")
    parser.add_argument("--host", default=config.SERVER_HOST,
                        help=f"Address to bind (default: {config.SERVER_HOST})")
    parser.add_argument("--port", type=int, default=config.SERVER_PORT,
                        help=f"Port to listen on (default: {config.SERVER_PORT})")
    parser.add_argument("--cert", default=str(config.SERVER_CERT_PATH),
                        help="Server certificate PEM file")
    parser.add_argument("--key", default=str(config.SERVER_KEY_PATH),
                        help="Server private key PEM file")
    return parser.parse_args(argv)


def main(argv=None):
    """
    Main entry point for the server.

    Exit codes:
        0: Normal shutdown
        1: Fatal error (missing/invalid credentials, socket error, etc.)
    """
    config.configure_logging()
    args = parse_args(argv)

    try:
        certificate = validate_server_credentials(args.cert, args.key)
        context = create_server_context(args.cert, args.key)
    except FileNotFoundError as e:
        logger.critical(f"Cannot start server: {e}")
        print("[!] Generate credentials with: python scripts/gen_cert.py", file=sys.stderr)
        sys.exit(1)
    except (ValueError, ssl.SSLError) as e:
        logger.critical(f"Invalid server credentials: {e}")
        sys.exit(1)

    logger.info(f"Loaded certificate CN={get_cert_subject_cn(certificate)} "
                f"SHA256={get_cert_fingerprint(certificate)}")

    server = ChatServer(args.host, args.port, context)
    try:
        host, port = server.bind()
    except OSError as e:
        logger.critical(f"Socket error: {e}")
        sys.exit(1)

    server.coordinator.install_signal_handlers()
    OperatorConsole(server.registry, server.coordinator.request_shutdown).start()

    print(f"[*] Secure chat server started on {host}:{port}")
    print("[*] Press Ctrl+C or type /quit to stop the server")

    try:
        server.serve_forever()
    except OSError as e:
        logger.critical(f"Server terminated: {e}")
        sys.exit(1)

    print("[*] Server has been shut down.")


if __name__ == "__main__":
    main()
