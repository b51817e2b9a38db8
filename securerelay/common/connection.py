"""
Line-oriented connection handle over a (normally TLS-wrapped) socket.

A Connection wraps one accepted (normally TLS-wrapped) socket and gives:
    - read_line(): blocking read of the next newline-terminated line
    - send_line(): serialized, time-bounded write of one line
    - close(): idempotent close, safe to call from any thread

The socket runs with a short timeout. Reads poll and retry on timeout so a
handler blocked in read_line() notices promptly when another thread closes
the connection; writes give up once WRITE_TIMEOUT has elapsed so a stalled
peer cannot hold up the thread writing to it.
"""

import socket
import logging
import threading
import time
from typing import Optional

from securerelay.common import config
from securerelay.common.protocol import decode_line, encode_line

logger = logging.getLogger(__name__)

RECV_CHUNK_SIZE = 4096


class Connection:
    """Duplex line stream to exactly one remote peer."""

    def __init__(self, sock: socket.socket, address: tuple = None,
                 write_timeout: float = None, poll_interval: float = None):
        self._sock = sock
        self.address = address if address is not None else ("?", 0)
        self.write_timeout = config.WRITE_TIMEOUT if write_timeout is None else write_timeout
        self.poll_interval = config.POLL_INTERVAL if poll_interval is None else poll_interval

        self._buffer = b""
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False

        self._sock.settimeout(self.poll_interval)

    @property
    def client_id(self) -> str:
        """host:port label used to prefix log lines."""
        return f"{self.address[0]}:{self.address[1]}"

    @property
    def closed(self) -> bool:
        return self._closed

    def read_line(self) -> Optional[str]:
        """
        Read the next line from the peer.

        Returns:
            The decoded line without its terminator, or None on end-of-stream
            (including a close performed by another thread). A trailing
            partial line before end-of-stream is returned as a line.

        Raises:
            OSError: If the underlying read fails while the connection is open
        """
        while True:
            newline = self._buffer.find(b"\n")
            if newline != -1:
                raw, self._buffer = self._buffer[:newline + 1], self._buffer[newline + 1:]
                return decode_line(raw)

            if self._closed:
                return None

            try:
                data = self._sock.recv(RECV_CHUNK_SIZE)
            except socket.timeout:
                continue
            except (OSError, ValueError):
                # Closed underneath us by another thread
                if self._closed:
                    return None
                raise

            if not data:
                if self._buffer:
                    raw, self._buffer = self._buffer, b""
                    return decode_line(raw)
                return None
            self._buffer += data

    def send_line(self, message: str) -> None:
        """
        Write one line to the peer.

        Writers are serialized so lines from concurrent senders never
        interleave on the wire.

        Raises:
            ConnectionError: If the connection is already closed
            socket.timeout: If the peer did not accept the data in time
            OSError: If the write fails
        """
        payload = encode_line(message)
        with self._write_lock:
            if self._closed:
                raise ConnectionError(f"[{self.client_id}] Connection already closed")
            self._send_all(payload)

    def _send_all(self, payload: bytes) -> None:
        deadline = time.monotonic() + self.write_timeout
        view = memoryview(payload)
        while view:
            try:
                sent = self._sock.send(view)
            except socket.timeout:
                if time.monotonic() >= deadline:
                    raise socket.timeout(f"[{self.client_id}] Write timed out after {self.write_timeout}s")
                continue
            view = view[sent:]

    def try_send_line(self, message: str) -> bool:
        """Best-effort send: returns False instead of raising on failure."""
        try:
            self.send_line(message)
            return True
        except (OSError, ValueError) as e:
            logger.debug(f"[{self.client_id}] Best-effort send failed: {e}")
            return False

    def close(self) -> bool:
        """
        Close the connection exactly once.

        Returns:
            True if this call closed the socket, False if it was already closed
        """
        with self._close_lock:
            if self._closed:
                return False
            self._closed = True

        try:
            self._sock.close()
        except OSError as e:
            logger.debug(f"[{self.client_id}] Error closing socket: {e}")
        logger.debug(f"[{self.client_id}] Connection closed")
        return True

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Connection {self.client_id} {state}>"
