"""
Server-side modules for SecureRelay.

This package contains server-side functionality including:
- Client registry and nickname uniqueness
- Per-connection protocol handling
- Message broadcast and coordinated shutdown
"""
