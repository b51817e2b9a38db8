"""
Operator command console for the running server.

Reads commands from the local terminal in a background thread:
    /clients  List connected nicknames
    /quit     Request server shutdown

The console only reads the registry; shutdown goes through the coordinator.
"""

import sys
import logging
import threading
from typing import Callable, Dict, Optional, TextIO

from securerelay.server.registry import ClientRegistry

logger = logging.getLogger(__name__)


class OperatorConsole:
    def __init__(self, registry: ClientRegistry, request_shutdown: Callable[[], None],
                 stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.registry = registry
        self.request_shutdown = request_shutdown
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.commands: Dict[str, Callable[[], None]] = {
            "/clients": self.list_clients,
            "/quit": self.quit,
        }
        self._thread: Optional[threading.Thread] = None

    def _print(self, text: str) -> None:
        self.stdout.write(text + "\n")
        self.stdout.flush()

    def list_clients(self) -> None:
        nicknames = self.registry.nicknames()
        if not nicknames:
            self._print("No clients connected.")
            return
        self._print("Connected clients:")
        for nickname in nicknames:
            self._print(f"- {nickname}")

    def quit(self) -> None:
        self._print("Shutting down server...")
        self.request_shutdown()

    def unknown_command(self, command: str) -> None:
        available = ", ".join(self.commands)
        self._print(f"Unknown command. Available commands: {available}")

    def dispatch(self, command: str) -> None:
        command = command.strip()
        action = self.commands.get(command)
        if action is None:
            self.unknown_command(command)
        else:
            action()

    def run(self) -> None:
        """Read and dispatch commands until stdin is exhausted."""
        for line in self.stdin:
            self.dispatch(line)
        logger.debug("Operator console input closed")

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="operator-console", daemon=True)
        self._thread.start()
        return self._thread
