"""Terminal client for SecureRelay."""
