"""Ikiraha API: accounts, sessions and password management."""

__version__ = "1.0.0"
