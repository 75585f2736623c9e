"""Ethereum data types, encodings, signing and contract event tracking."""

__version__ = "0.1.0"