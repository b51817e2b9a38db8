"""
TLS context construction for the relay server and client.

Both sides restrict the cipher list to strong suites and require TLS 1.2 or
newer. The server does not ask for client certificates; the client verifies
the server against a pinned certificate (the server's own self-signed
certificate by default).
"""

import ssl
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

CIPHERS = "HIGH:!aNULL:!eNULL"


def create_server_context(cert_path: Union[str, Path], key_path: Union[str, Path]) -> ssl.SSLContext:
    """
    Build the server-side TLS context.

    Raises:
        FileNotFoundError: If the certificate or key file is missing
        ssl.SSLError: If the certificate/key pair cannot be loaded
    """
    for path in (cert_path, key_path):
        if not Path(path).exists():
            raise FileNotFoundError(f"TLS credential not found: {path}")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.set_ciphers(CIPHERS)
    context.verify_mode = ssl.CERT_NONE
    context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    logger.debug(f"Server TLS context ready ({cert_path})")
    return context


def create_client_context(ca_path: Union[str, Path], check_hostname: bool = True) -> ssl.SSLContext:
    """
    Build the client-side TLS context that trusts only `ca_path`.

    Raises:
        FileNotFoundError: If the trust anchor file is missing
    """
    if not Path(ca_path).exists():
        raise FileNotFoundError(f"CA certificate not found: {ca_path}")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.set_ciphers(CIPHERS)
    context.load_verify_locations(cafile=str(ca_path))
    context.check_hostname = check_hostname
    context.verify_mode = ssl.CERT_REQUIRED
    return context
