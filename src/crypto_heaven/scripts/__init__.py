"""Operational scripts for Crypto Heaven."""
