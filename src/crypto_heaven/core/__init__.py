"""Core configuration for the Crypto Heaven service."""
