"""HTTP API for Crypto Heaven."""
