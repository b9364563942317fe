"""Crypto Heaven: communities, chat and threads."""

__version__ = "0.1.0"
