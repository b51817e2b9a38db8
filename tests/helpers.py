"""
Shared test helpers: a blocking line reader for the remote end of a connection.

Peer drives the far side of a socketpair or a TLS client socket the way a
chat client would, with deadlines so a misbehaving server fails the test
instead of hanging it.
"""

import socket
import time
from typing import List

DEFAULT_TIMEOUT = 3.0
# Connection timings used by the fixtures
POLL_INTERVAL = 0.05
WRITE_TIMEOUT = 1.0


class Peer:
    """Remote end of a chat connection, as seen by a test."""

    def __init__(self, sock: socket.socket, name: str = "peer"):
        self.sock = sock
        self.name = name
        self.buffer = b""

    def send(self, line: str) -> None:
        self.sock.sendall((line + "\n").encode("utf-8"))

    def recv_line(self, timeout: float = DEFAULT_TIMEOUT) -> str:
        """
        Return the next line sent by the server.

        Raises:
            AssertionError: If no complete line arrives before the deadline
            EOFError: If the server closes the connection first
        """
        deadline = time.monotonic() + timeout
        while b"\n" not in self.buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AssertionError(f"{self.name}: timed out waiting for a line (buffered={self.buffer!r})")
            self.sock.settimeout(remaining)
            try:
                data = self.sock.recv(4096)
            except socket.timeout:
                continue
            if not data:
                raise EOFError(f"{self.name}: connection closed (buffered={self.buffer!r})")
            self.buffer += data
        line, self.buffer = self.buffer.split(b"\n", 1)
        return line.decode("utf-8").rstrip("\r")

    def read_until_closed(self, timeout: float = DEFAULT_TIMEOUT) -> List[str]:
        """Collect every remaining line until the server closes the connection."""
        lines = []
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AssertionError(f"{self.name}: connection still open, got {lines!r}")
            try:
                lines.append(self.recv_line(remaining))
            except (EOFError, ConnectionError):
                return lines
            except OSError:
                # TLS sockets may report an unclean close as an SSL error
                return lines

    def assert_silent(self, wait: float = 0.2) -> None:
        """Fail if the server sends anything (or closes) within `wait` seconds."""
        assert b"\n" not in self.buffer, f"{self.name}: unexpected buffered data {self.buffer!r}"
        self.sock.settimeout(wait)
        try:
            data = self.sock.recv(4096)
        except socket.timeout:
            return
        raise AssertionError(f"{self.name}: expected silence, got {data!r}")

    def close(self) -> None:
        try:
            self.sock.close()
        except OSError:
            pass
