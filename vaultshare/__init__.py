"""Encrypted, authenticated file storage and sharing over an untrusted key-value store."""

__version__ = "0.1.0"