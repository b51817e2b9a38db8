"""
Coordinated server shutdown.

Shutdown is requested from a signal handler or the operator console and is
carried out once, by whichever thread calls shutdown() first (normally the
accept loop after it observes the cleared running flag).
"""

import signal
import socket
import logging
import threading
from typing import Optional

from securerelay.common.protocol import SHUTDOWN_NOTICE
from securerelay.server.registry import ClientRegistry

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Owns the running flag and drains the registry on shutdown."""

    def __init__(self, registry: ClientRegistry, listener: Optional[socket.socket] = None):
        self.registry = registry
        self.listener = listener
        self._running = threading.Event()
        self._running.set()
        self._stopped = threading.Event()
        self._once = threading.Lock()
        self._done = False

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def request_shutdown(self) -> None:
        """Clear the running flag. Safe to call from a signal handler, any number of times."""
        self._running.clear()

    def signal_handler(self, signum, frame):
        """
        Handle SIGINT/SIGTERM.

        Only clears the running flag; the accept loop performs the actual
        shutdown once it notices. Repeated signals change nothing.
        """
        if self.running:
            logger.info(f"Shutdown signal received ({signal.Signals(signum).name})")
        self.request_shutdown()

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self.signal_handler)
        signal.signal(signal.SIGTERM, self.signal_handler)

    def shutdown(self) -> bool:
        """
        Drain every connection and close the listening socket.

        Sequence:
            1. Clear the running flag
            2. Atomically drain the registry (later registrations are refused)
            3. Best-effort shutdown notice to, then close, each drained connection
            4. Shut down and close the listening socket

        Returns:
            True if this call performed the shutdown, False if it already ran
        """
        with self._once:
            if self._done:
                return False
            self._done = True

        self.request_shutdown()
        logger.info("Shutting down server...")

        entries = self.registry.drain()
        for nickname, connection in entries:
            connection.try_send_line(SHUTDOWN_NOTICE)
            connection.close()
            logger.debug(f"[{connection.client_id}] Closed '{nickname}' for shutdown")

        if self.listener is not None:
            # shutdown() stops listening at once and wakes a thread blocked in accept()
            try:
                self.listener.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                self.listener.close()
            except OSError as e:
                logger.error(f"Error closing listening socket: {e}")

        logger.info(f"Server stopped ({len(entries)} client(s) disconnected)")
        self._stopped.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown() has completed."""
        return self._stopped.wait(timeout)
