"""
Broadcast engine: fan one message out to every registered peer.

Each recipient is written to independently. A recipient whose write fails
is dropped from the registry, closed, and announced to the remaining peers
as an abnormal departure. Those announcements are queued and sent after the
current fan-out finishes, so a cascade of failures is handled iteratively.
"""

import logging
from collections import deque
from typing import Optional

from securerelay.common.protocol import disconnected_notice
from securerelay.common.connection import Connection
from securerelay.server.registry import ClientRegistry

logger = logging.getLogger(__name__)


class Broadcaster:
    def __init__(self, registry: ClientRegistry):
        self.registry = registry

    def broadcast(self, message: str, exclude: Optional[Connection] = None) -> int:
        """
        Deliver `message` to every registered connection except `exclude`.

        Args:
            message: Text line to send (terminator is added on the wire)
            exclude: Connection that must not receive the message, usually the sender

        Returns:
            Number of successful deliveries of `message` itself
        """
        pending = deque([(message, exclude)])
        delivered = 0
        first = True

        while pending:
            text, skip = pending.popleft()
            for nickname, connection in self.registry.snapshot():
                if connection is skip:
                    continue
                try:
                    connection.send_line(text)
                except (OSError, ValueError) as e:
                    logger.warning(f"[{connection.client_id}] Broadcast to '{nickname}' failed: {e}")
                    if self.drop(nickname, connection):
                        pending.append((disconnected_notice(nickname), connection))
                    continue
                if first:
                    delivered += 1
            first = False

        return delivered

    def drop(self, nickname: str, connection: Connection) -> bool:
        """
        Remove a broken recipient and close its connection.

        Returns:
            True if this call removed the entry, i.e. the caller owns the
            departure announcement
        """
        removed = self.registry.unregister(nickname, connection)
        connection.close()
        if removed:
            logger.info(f"[{connection.client_id}] '{nickname}' dropped after failed delivery")
        return removed
