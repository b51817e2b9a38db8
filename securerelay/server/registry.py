"""
Client registry: the shared nickname -> Connection mapping.

Every read and write of the mapping happens under one lock. Callers get
copies (snapshot(), nicknames(), drain()) and do all network I/O after the
lock is released.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from securerelay.common.connection import Connection
from securerelay.common.protocol import RegistrationResult

logger = logging.getLogger(__name__)


class ClientRegistry:
    """Thread-safe registry of the currently joined peers."""

    def __init__(self):
        self._clients: Dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._closed = False

    def register(self, nickname: str, connection: Connection) -> RegistrationResult:
        """
        Claim a nickname for a connection.

        The membership test and the insert form one critical section, so two
        handshakes racing for the same nickname cannot both succeed.

        Returns:
            RegistrationResult.OK on success, TAKEN if the nickname is in use,
            CLOSED if the registry has been drained for shutdown
        """
        with self._lock:
            if self._closed:
                return RegistrationResult.CLOSED
            if nickname in self._clients:
                return RegistrationResult.TAKEN
            self._clients[nickname] = connection
        logger.debug(f"Registered '{nickname}' -> {connection!r}")
        return RegistrationResult.OK

    def unregister(self, nickname: str, connection: Optional[Connection] = None) -> bool:
        """
        Remove a nickname if present.

        When `connection` is given the entry is only removed while it still
        maps to that connection. Removing an absent entry is a no-op.

        Returns:
            True if this call removed the entry, False otherwise
        """
        with self._lock:
            current = self._clients.get(nickname)
            if current is None:
                return False
            if connection is not None and current is not connection:
                return False
            del self._clients[nickname]
        logger.debug(f"Unregistered '{nickname}'")
        return True

    def snapshot(self) -> List[Tuple[str, Connection]]:
        """Point-in-time copy of all entries in registration order."""
        with self._lock:
            return list(self._clients.items())

    def nicknames(self) -> List[str]:
        with self._lock:
            return list(self._clients)

    def drain(self) -> List[Tuple[str, Connection]]:
        """
        Empty the registry for shutdown and refuse later registrations.

        Returns:
            The entries that were registered at the moment of draining
        """
        with self._lock:
            entries = list(self._clients.items())
            self._clients.clear()
            self._closed = True
        return entries

    @property
    def closed(self) -> bool:
        return self._closed

    def __contains__(self, nickname: str) -> bool:
        with self._lock:
            return nickname in self._clients

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)
