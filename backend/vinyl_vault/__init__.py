"""Vinyl Vault: personal media-library backend."""

__version__ = "0.1.0"
