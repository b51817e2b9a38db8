"""
Wire protocol definitions for SecureRelay.

The protocol is line-oriented UTF-8 text over TLS: one message per line,
terminated by a single newline. This module holds every server-to-peer
message template and the keyword a peer sends to leave the chat.
"""

from enum import Enum

ENCODING = "utf-8"
LINE_TERMINATOR = "\n"

QUIT_COMMAND = "/quit"

WELCOME = "Welcome to the secure chat! Please enter your nickname:"
NICKNAME_TAKEN = "Nickname already in use. Disconnecting."
NICKNAME_EMPTY = "Nickname cannot be empty. Disconnecting."
GOODBYE = "Goodbye!"
SHUTDOWN_NOTICE = "Server is shutting down. Goodbye!"


class RegistrationResult(Enum):
    """Result of an attempt to claim a nickname in the client registry."""

    OK = "OK"
    TAKEN = "TAKEN"
    CLOSED = "CLOSED"

    def __str__(self) -> str:
        return self.value


class Outcome(Enum):
    """Tagged result of one connection-handler step."""

    OK = "OK"
    COLLISION = "COLLISION"
    DISCONNECTED = "DISCONNECTED"
    QUIT = "QUIT"
    ERROR = "ERROR"
    SHUTDOWN = "SHUTDOWN"

    def __str__(self) -> str:
        return self.value


def greeting(nickname: str) -> str:
    return f"Hi {nickname}! You can start chatting now."


def joined_notice(nickname: str) -> str:
    return f"{nickname} has joined the chat."


def left_notice(nickname: str) -> str:
    return f"{nickname} has left the chat."


def disconnected_notice(nickname: str) -> str:
    return f"{nickname} has disconnected due to an error."


def chat_line(nickname: str, text: str) -> str:
    return f"{nickname}: {text}"


def encode_line(message: str) -> bytes:
    """Encode a message for the wire, appending the line terminator."""
    return (message + LINE_TERMINATOR).encode(ENCODING)


def decode_line(raw: bytes) -> str:
    """
    Decode one raw line received from a peer.

    Only the line terminator is removed (a trailing ``\\n`` and an optional
    ``\\r`` before it); other whitespace is part of the text. Undecodable
    bytes are replaced rather than failing the connection.
    """
    line = raw.decode(ENCODING, errors="replace")
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line
