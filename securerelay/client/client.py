"""
SecureRelay TLS terminal client.

This module implements the chat client that:
    1. Verifies the server against a pinned certificate and connects over TLS
    2. Prints every line the server sends (listener thread)
    3. Sends every line typed on the terminal (sender thread)
    4. Leaves with /quit, on end of input, on Ctrl+C, or when the server
       closes the connection

Usage:
    python -m securerelay.client [--host HOST] [--port PORT] [--ca PEM]

Environment Variables (.env):
    SERVER_HOST: Server hostname or IP (default: 127.0.0.1)
    SERVER_PORT: Server port (default: 3000)
    CA_CERT_PATH: Pinned server certificate (default: certs/server_cert.pem)
"""

import ssl
import sys
import socket
import logging
import argparse
import threading
from typing import Optional, TextIO

from securerelay.common import config
from securerelay.common.connection import Connection
from securerelay.common.protocol import QUIT_COMMAND
from securerelay.crypto.tls import create_client_context

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0
# How long /quit waits for the server's farewell before closing locally
QUIT_GRACE_PERIOD = 2.0


class ChatClient:
    """Relays one TLS connection to and from the terminal."""

    def __init__(self, host: str = config.SERVER_HOST, port: int = config.SERVER_PORT,
                 ssl_context: Optional[ssl.SSLContext] = None,
                 server_hostname: Optional[str] = None,
                 stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.host = host
        self.port = port
        self.ssl_context = ssl_context
        self.server_hostname = server_hostname or host
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout

        self.connection: Optional[Connection] = None
        self._exit_flag = threading.Event()
        self._server_closed = threading.Event()
        self._listener_thread: Optional[threading.Thread] = None
        self._sender_thread: Optional[threading.Thread] = None
        self._quitting = False

    def _print(self, text: str) -> None:
        self.stdout.write(text + "\n")
        self.stdout.flush()

    def connect(self) -> Connection:
        """
        Open the TCP connection and complete the TLS handshake.

        Raises:
            OSError: If the server is unreachable
            ssl.SSLError: If the handshake or certificate verification fails
        """
        sock = socket.create_connection((self.host, self.port), timeout=CONNECT_TIMEOUT)
        try:
            if self.ssl_context is not None:
                sock = self.ssl_context.wrap_socket(sock, server_hostname=self.server_hostname)
                logger.info(f"TLS handshake OK ({sock.version()}, {sock.cipher()[0]})")
        except (ssl.SSLError, OSError):
            sock.close()
            raise

        self.connection = Connection(sock, (self.host, self.port))
        if self.ssl_context is not None:
            self._print(f"Connected securely to chat server at {self.host}:{self.port}")
        else:
            self._print(f"Connected to chat server at {self.host}:{self.port} (unencrypted)")
        return self.connection

    def listen(self) -> None:
        """Print server lines until the connection ends."""
        try:
            while not self._exit_flag.is_set():
                message = self.connection.read_line()
                if message is None:
                    if not (self._exit_flag.is_set() or self._quitting):
                        self._print("Disconnected from server.")
                    break
                self._print(message)
        except (OSError, ValueError) as e:
            if not self._exit_flag.is_set():
                self._print(f"Listening thread error: {e}")
        finally:
            self._server_closed.set()
            self.close_connection()

    def send_loop(self) -> None:
        """Forward terminal lines to the server until /quit or end of input."""
        try:
            for line in self.stdin:
                if self._exit_flag.is_set():
                    return
                message = line.rstrip("\r\n")
                if self.process_input_message(message):
                    return
        except (OSError, ValueError) as e:
            if not self._exit_flag.is_set():
                self._print(f"Sending thread error: {e}")
        self.close_connection()

    def process_input_message(self, message: str) -> bool:
        """
        Handle one line of user input.

        Returns:
            True once the client is leaving the chat
        """
        if message == QUIT_COMMAND:
            self.handle_quit_message()
            return True
        self.connection.send_line(message)
        return False

    def handle_quit_message(self) -> None:
        self._quitting = True
        self.connection.try_send_line(QUIT_COMMAND)
        self._print("Exiting chat...")
        # Give the server a moment to send its farewell and close first
        self._server_closed.wait(QUIT_GRACE_PERIOD)
        self.close_connection()

    def close_connection(self) -> None:
        """Close the connection once; later calls do nothing."""
        self._exit_flag.set()
        if self.connection is not None and self.connection.close():
            self._print("Connection closed.")

    def start(self) -> None:
        self._listener_thread = threading.Thread(target=self.listen, name="listener", daemon=True)
        self._sender_thread = threading.Thread(target=self.send_loop, name="sender", daemon=True)
        self._listener_thread.start()
        self._sender_thread.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the connection has been closed."""
        return self._exit_flag.wait(timeout)

    def run(self) -> None:
        """Connect, relay until the connection closes, then return."""
        self.connect()
        self.start()
        try:
            while not self.wait(0.5):
                pass
        except KeyboardInterrupt:
            self.close_connection()
        if self._listener_thread is not None:
            self._listener_thread.join(QUIT_GRACE_PERIOD)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SecureRelay TLS chat client")
    parser.add_argument("--host", default=config.SERVER_HOST,
                        help=f"Server host (default: {config.SERVER_HOST})")
    parser.add_argument("--port", type=int, default=config.SERVER_PORT,
                        help=f"Server port (default: {config.SERVER_PORT})")
    parser.add_argument("--ca", default=str(config.CA_CERT_PATH),
                        help="Certificate used to verify the server")
    parser.add_argument("--no-verify-hostname", action="store_true",
                        help="Accept the pinned certificate even if its names do not match --host")
    return parser.parse_args(argv)


def main(argv=None):
    config.configure_logging("WARNING" if config.LOG_LEVEL == "INFO" else config.LOG_LEVEL)
    args = parse_args(argv)

    try:
        context = create_client_context(args.ca, check_hostname=not args.no_verify_hostname)
    except FileNotFoundError as e:
        print(f"[✗] {e}", file=sys.stderr)
        sys.exit(1)

    client = ChatClient(args.host, args.port, context)
    try:
        client.run()
    except ssl.SSLCertVerificationError as e:
        print(f"[✗] Server certificate rejected: {e.verify_message}", file=sys.stderr)
        sys.exit(1)
    except (ssl.SSLError, OSError) as e:
        print(f"[✗] Could not connect to {args.host}:{args.port}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
