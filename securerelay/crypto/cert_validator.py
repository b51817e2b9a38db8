"""
X.509 certificate checks run before the TLS endpoints start.

This module provides functions to:
- Load certificates and private keys from PEM files
- Check certificate validity periods
- Confirm a private key belongs to a certificate
- Generate certificate fingerprints and read subject names
"""

from pathlib import Path
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import load_pem_private_key
from cryptography.x509.oid import ExtensionOID, NameOID


def load_certificate(cert_path: Union[str, Path]) -> x509.Certificate:
    """
    Load an X.509 certificate from a PEM file.

    Args:
        cert_path: Path to the PEM-encoded certificate file

    Returns:
        Loaded X.509 certificate object

    Raises:
        FileNotFoundError: If the certificate file doesn't exist
        ValueError: If the file is not a valid PEM certificate
    """
    cert_file = Path(cert_path)

    if not cert_file.exists():
        raise FileNotFoundError(f"Certificate file not found: {cert_path}")

    try:
        return x509.load_pem_x509_certificate(cert_file.read_bytes())
    except ValueError as e:
        raise ValueError(f"Invalid PEM certificate format: {e}") from e


def load_private_key(key_path: Union[str, Path], password: Optional[bytes] = None):
    """
    Load a private key from a PEM file.

    Raises:
        FileNotFoundError: If the key file doesn't exist
        ValueError: If the file is not a valid PEM private key
    """
    key_file = Path(key_path)

    if not key_file.exists():
        raise FileNotFoundError(f"Private key file not found: {key_path}")

    try:
        return load_pem_private_key(key_file.read_bytes(), password=password)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid PEM private key format: {e}") from e


def check_certificate_validity(cert: x509.Certificate,
                               now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
    """
    Check that the current time falls inside the certificate's validity period.

    Returns:
        (True, None) if valid, otherwise (False, reason)
    """
    now = now or datetime.now(timezone.utc)

    if now < cert.not_valid_before_utc:
        return (False, f"Certificate not yet valid (valid from {cert.not_valid_before_utc})")

    if now > cert.not_valid_after_utc:
        return (False, f"Certificate has expired (valid until {cert.not_valid_after_utc})")

    return (True, None)


def key_matches_certificate(private_key, cert: x509.Certificate) -> bool:
    """True if `private_key` is the private half of the certificate's public key."""
    public_format = serialization.PublicFormat.SubjectPublicKeyInfo
    key_der = private_key.public_key().public_bytes(serialization.Encoding.DER, public_format)
    cert_der = cert.public_key().public_bytes(serialization.Encoding.DER, public_format)
    return key_der == cert_der


def get_cert_fingerprint(cert: x509.Certificate) -> str:
    """
    Generate a SHA-256 fingerprint of a certificate.

    Returns:
        Hex-encoded SHA-256 fingerprint of the DER certificate
    """
    return cert.fingerprint(hashes.SHA256()).hex()


def get_cert_subject_cn(cert: x509.Certificate) -> Optional[str]:
    cn_attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if cn_attrs:
        return cn_attrs[0].value
    return None


def get_cert_san(cert: x509.Certificate) -> List[str]:
    """
    Extract Subject Alternative Names from a certificate.

    Returns:
        DNS names and IP addresses (as strings) from the SAN extension, or an
        empty list if the extension is absent
    """
    try:
        san = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME).value
    except x509.ExtensionNotFound:
        return []
    names = list(san.get_values_for_type(x509.DNSName))
    names.extend(str(ip) for ip in san.get_values_for_type(x509.IPAddress))
    return names


def validate_server_credentials(cert_path: Union[str, Path], key_path: Union[str, Path]) -> x509.Certificate:
    """
    Load and sanity-check the server's certificate and key before serving.

    Returns:
        The loaded certificate

    Raises:
        FileNotFoundError: If either file is missing
        ValueError: If the certificate is outside its validity period or the
            key does not belong to it
    """
    cert = load_certificate(cert_path)
    key = load_private_key(key_path)

    is_valid, error = check_certificate_validity(cert)
    if not is_valid:
        raise ValueError(error)

    if not key_matches_certificate(key, cert):
        raise ValueError(f"Private key {key_path} does not match certificate {cert_path}")

    return cert
