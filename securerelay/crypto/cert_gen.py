"""
Self-signed server certificate generation.

The relay uses a single self-signed certificate: the server presents it and
clients pin it as their trust anchor. Subject Alternative Names cover every
host name or IP address clients will connect to.
"""

import ipaddress
import logging
from pathlib import Path
from datetime import datetime, timedelta, timezone
from typing import Iterable, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PrivateFormat,
    NoEncryption,
)

logger = logging.getLogger(__name__)

DEFAULT_HOSTS = ("localhost", "127.0.0.1")


def generate_server_key(key_size: int = 2048) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def _san_entry(host: str) -> x509.GeneralName:
    try:
        return x509.IPAddress(ipaddress.ip_address(host))
    except ValueError:
        return x509.DNSName(host)


def generate_self_signed_cert(private_key: rsa.RSAPrivateKey,
                              common_name: str = "localhost",
                              hosts: Iterable[str] = DEFAULT_HOSTS,
                              days: int = 365) -> x509.Certificate:
    """
    Build a self-signed X.509 certificate for the relay server.

    Args:
        private_key: Server RSA private key
        common_name: Subject CN
        hosts: Host names and IP addresses placed in the SAN extension
        days: Validity period in days, starting now

    Returns:
        Signed X.509 certificate
    """
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "SecureRelay"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )
    now = datetime.now(timezone.utc)
    public_key = private_key.public_key()
    san = x509.SubjectAlternativeName([_san_entry(host) for host in hosts])

    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=days))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(san, critical=False)
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key), critical=False)
        .sign(private_key, hashes.SHA256())
    )


def save_cert_and_key(private_key: rsa.RSAPrivateKey,
                      certificate: x509.Certificate,
                      certs_dir: Path,
                      name: str = "server") -> Tuple[Path, Path]:
    """
    Write `<name>_cert.pem` and `<name>_key.pem` into `certs_dir`.

    The key file is restricted to owner read/write.

    Returns:
        (cert_path, key_path)
    """
    certs_dir = Path(certs_dir)
    certs_dir.mkdir(parents=True, exist_ok=True)

    key_path = certs_dir / f"{name}_key.pem"
    key_path.write_bytes(
        private_key.private_bytes(
            encoding=Encoding.PEM,
            format=PrivateFormat.PKCS8,
            encryption_algorithm=NoEncryption(),
        )
    )
    key_path.chmod(0o600)

    cert_path = certs_dir / f"{name}_cert.pem"
    cert_path.write_bytes(certificate.public_bytes(Encoding.PEM))

    logger.debug(f"Wrote {cert_path} and {key_path}")
    return cert_path, key_path


def create_server_credentials(certs_dir: Path,
                              common_name: str = "localhost",
                              hosts: Iterable[str] = DEFAULT_HOSTS,
                              days: int = 365) -> Tuple[Path, Path]:
    """Generate a key and self-signed certificate and save both. Returns (cert_path, key_path)."""
    key = generate_server_key()
    cert = generate_self_signed_cert(key, common_name=common_name, hosts=hosts, days=days)
    return save_cert_and_key(key, cert, certs_dir)
