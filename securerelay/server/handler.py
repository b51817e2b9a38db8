"""
Per-connection protocol handler.

One ConnectionHandler runs in its own thread for every accepted peer and
walks the connection through:

    CONNECTING -> AWAITING_NICKNAME -> ACTIVE -> TERMINATED

Each step returns an Outcome that selects the next transition. Errors from
the peer's socket never escape run(); they end the connection through the
abnormal-departure path.
"""

import logging
from enum import Enum
from typing import Optional

from securerelay.common import protocol
from securerelay.common.protocol import Outcome, RegistrationResult
from securerelay.common.connection import Connection
from securerelay.server.broadcast import Broadcaster
from securerelay.server.registry import ClientRegistry

logger = logging.getLogger(__name__)


class HandlerState(Enum):
    CONNECTING = "CONNECTING"
    AWAITING_NICKNAME = "AWAITING_NICKNAME"
    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"

    def __str__(self) -> str:
        return self.value


class ConnectionHandler:
    """Runs the chat protocol for a single connection."""

    def __init__(self, connection: Connection, registry: ClientRegistry, broadcaster: Broadcaster):
        self.connection = connection
        self.registry = registry
        self.broadcaster = broadcaster
        self.state = HandlerState.CONNECTING
        self.nickname: Optional[str] = None
        self.outcome: Optional[Outcome] = None

    @property
    def client_id(self) -> str:
        return self.connection.client_id

    def run(self) -> Outcome:
        """Drive the connection to TERMINATED and return how it ended."""
        try:
            outcome = self.handshake()
            if outcome is Outcome.OK:
                outcome = self.chat_loop()
        except Exception as e:
            # Nothing raised for one peer may escape the handler thread
            logger.error(f"[{self.client_id}] Unexpected handler error: {e}")
            outcome = self._depart_abnormally() if self.state is HandlerState.ACTIVE else Outcome.ERROR
        finally:
            self.connection.close()
            self.state = HandlerState.TERMINATED

        self.outcome = outcome
        logger.debug(f"[{self.client_id}] Handler terminated: {outcome}")
        return outcome

    def handshake(self) -> Outcome:
        """
        Greet the peer, read its nickname and try to register it.

        Returns:
            Outcome.OK when registered (state is ACTIVE), otherwise the reason
            the connection was turned away
        """
        self.state = HandlerState.AWAITING_NICKNAME
        try:
            self.connection.send_line(protocol.WELCOME)
            candidate = self.connection.read_line()
        except (OSError, ValueError) as e:
            logger.warning(f"[{self.client_id}] Handshake failed: {e}")
            return Outcome.ERROR

        if candidate is None:
            logger.info(f"[{self.client_id}] Disconnected before choosing a nickname")
            return Outcome.DISCONNECTED

        if not candidate.strip():
            self.connection.try_send_line(protocol.NICKNAME_EMPTY)
            logger.info(f"[{self.client_id}] Rejected empty nickname")
            return Outcome.COLLISION

        result = self.registry.register(candidate, self.connection)
        if result is RegistrationResult.TAKEN:
            self.connection.try_send_line(protocol.NICKNAME_TAKEN)
            logger.info(f"[{self.client_id}] Nickname '{candidate}' already in use")
            return Outcome.COLLISION
        if result is RegistrationResult.CLOSED:
            self.connection.try_send_line(protocol.SHUTDOWN_NOTICE)
            return Outcome.SHUTDOWN

        self.nickname = candidate
        self.state = HandlerState.ACTIVE
        logger.info(f"[{self.client_id}] '{candidate}' joined")

        if not self.connection.try_send_line(protocol.greeting(candidate)):
            return self._depart_abnormally()
        self.broadcaster.broadcast(protocol.joined_notice(candidate), self.connection)
        return Outcome.OK

    def chat_loop(self) -> Outcome:
        """Relay lines from the peer until it quits or the connection breaks."""
        while True:
            try:
                line = self.connection.read_line()
            except (OSError, ValueError) as e:
                logger.warning(f"[{self.client_id}] Read error for '{self.nickname}': {e}")
                return self._depart_abnormally()

            if line is None:
                logger.info(f"[{self.client_id}] '{self.nickname}' closed the connection")
                return self._depart_abnormally(Outcome.DISCONNECTED)

            if line == protocol.QUIT_COMMAND:
                return self._quit()

            self.broadcaster.broadcast(protocol.chat_line(self.nickname, line), self.connection)

    def _quit(self) -> Outcome:
        self.connection.try_send_line(protocol.GOODBYE)
        if self.registry.unregister(self.nickname, self.connection):
            self.broadcaster.broadcast(protocol.left_notice(self.nickname), self.connection)
            logger.info(f"[{self.client_id}] '{self.nickname}' left the chat")
        self.connection.close()
        self.state = HandlerState.TERMINATED
        return Outcome.QUIT

    def _depart_abnormally(self, outcome: Outcome = Outcome.ERROR) -> Outcome:
        # Whoever removes the entry announces the departure; a broadcast failure
        # or a shutdown drain may already have done so.
        if self.registry.unregister(self.nickname, self.connection):
            self.broadcaster.broadcast(protocol.disconnected_notice(self.nickname), self.connection)
            logger.warning(f"[{self.client_id}] '{self.nickname}' disconnected abnormally")
        elif self.registry.closed:
            outcome = Outcome.SHUTDOWN
        self.connection.close()
        self.state = HandlerState.TERMINATED
        return outcome
