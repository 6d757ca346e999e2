"""Peer-to-peer funds transfer core."""

__version__ = "0.1.0"
