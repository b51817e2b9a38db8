#!/usr/bin/env python3
"""
Generate the relay server's self-signed TLS certificate.

This script:
- Generates a 2048-bit RSA key pair for the server
- Creates a self-signed X.509 certificate with SANs for the given hosts
- Saves certs/server_key.pem (mode 600) and certs/server_cert.pem

Clients pin certs/server_cert.pem as their trust anchor, so copy it to every
client machine.

Usage:
    python scripts/gen_cert.py
    python scripts/gen_cert.py --cn chat.example.org --host chat.example.org --host 10.0.0.5
    python scripts/gen_cert.py --out certs/custom --days 30
"""

import sys
import argparse
from pathlib import Path

from securerelay.common import config
from securerelay.crypto.cert_gen import (
    DEFAULT_HOSTS,
    generate_self_signed_cert,
    generate_server_key,
    save_cert_and_key,
)
from securerelay.crypto.cert_validator import get_cert_fingerprint, get_cert_san


def main():
    parser = argparse.ArgumentParser(
        description="Generate a self-signed certificate for the SecureRelay server"
    )
    parser.add_argument(
        "--cn",
        default="localhost",
        help="Common Name (CN) for the certificate (default: localhost)",
    )
    parser.add_argument(
        "--host",
        action="append",
        dest="hosts",
        help="Host name or IP to include as SAN (repeatable; default: localhost, 127.0.0.1)",
    )
    parser.add_argument(
        "--out",
        default=str(config.CERT_DIR),
        help=f"Output directory for certificate files (default: {config.CERT_DIR})",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=365,
        help="Validity period in days (default: 365)",
    )

    args = parser.parse_args()
    certs_dir = Path(args.out)
    hosts = args.hosts or list(DEFAULT_HOSTS)

    try:
        print("\n" + "=" * 60)
        print("SecureRelay Server Certificate")
        print("=" * 60)
        print(f"[*] Common Name: {args.cn}")
        print(f"[*] Hosts: {', '.join(hosts)}")
        print(f"[*] Output directory: {certs_dir}")
        print()

        print("[*] Generating 2048-bit RSA private key...")
        key = generate_server_key()
        print("[✓] RSA private key generated")

        print("[*] Creating self-signed X.509 certificate...")
        certificate = generate_self_signed_cert(key, common_name=args.cn, hosts=hosts, days=args.days)
        print("[✓] Certificate created")

        cert_path, key_path = save_cert_and_key(key, certificate, certs_dir)
        print(f"[✓] Private key saved to {key_path}")
        print(f"[✓] Certificate saved to {cert_path}")

        print()
        print("[*] Certificate Details:")
        print(f"    Serial Number: {certificate.serial_number}")
        print(f"    Valid From: {certificate.not_valid_before_utc}")
        print(f"    Valid To: {certificate.not_valid_after_utc}")
        print(f"    Subject: {certificate.subject.rfc4514_string()}")
        print(f"    SAN: {', '.join(get_cert_san(certificate))}")
        print(f"    SHA-256: {get_cert_fingerprint(certificate)}")
        print()
        print("=" * 60)
        print("[✓] Certificate generation completed successfully!")
        print("=" * 60)
        print()

    except OSError as e:
        print(f"\n[✗] File Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"\n[✗] Validation Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
