"""
SecureRelay: a TLS-encrypted multi-user chat relay.

Subpackages:
- common: configuration and the line-oriented wire protocol
- crypto: TLS contexts and certificate handling
- server: connection registry, handlers, broadcast and shutdown
- client: terminal relay client
"""

__version__ = "1.0.0"
