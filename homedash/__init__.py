"""Operator console backend for a self-hosted server."""

__version__ = "1.0.0"
