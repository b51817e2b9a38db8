"""
Runtime configuration for SecureRelay.

Values are read from the environment once at import time. A `.env` file in
the working directory is loaded first, so local overrides can live there.

Environment Variables (.env):
    SERVER_HOST: Host to bind to / connect to (default: 127.0.0.1)
    SERVER_PORT: Port to listen on / connect to (default: 3000)
    CERT_DIR: Directory holding certificate material (default: <repo>/certs)
    SERVER_CERT_PATH: Server certificate PEM (default: $CERT_DIR/server_cert.pem)
    SERVER_KEY_PATH: Server private key PEM (default: $CERT_DIR/server_key.pem)
    CA_CERT_PATH: Trust anchor used by the client (default: $SERVER_CERT_PATH)
    WRITE_TIMEOUT: Seconds before a send to a stalled peer is abandoned (default: 5.0)
    POLL_INTERVAL: Read poll granularity in seconds (default: 0.5)
    LOG_LEVEL: Root log level name (default: INFO)
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

SERVER_HOST = os.getenv("SERVER_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("SERVER_PORT", "3000"))

CERT_DIR = Path(os.getenv("CERT_DIR", str(Path(__file__).parent.parent.parent / "certs")))
SERVER_CERT_PATH = Path(os.getenv("SERVER_CERT_PATH", str(CERT_DIR / "server_cert.pem")))
SERVER_KEY_PATH = Path(os.getenv("SERVER_KEY_PATH", str(CERT_DIR / "server_key.pem")))
# The server certificate is self-signed, so it doubles as the client's trust anchor
CA_CERT_PATH = Path(os.getenv("CA_CERT_PATH", str(SERVER_CERT_PATH)))

WRITE_TIMEOUT = float(os.getenv("WRITE_TIMEOUT", "5.0"))
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "0.5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install the shared console log format on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
