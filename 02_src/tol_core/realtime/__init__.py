"""Real-time transport module."""

from .hub import Connection, ConnectionHub, HandshakeError

__all__ = ["Connection", "ConnectionHub", "HandshakeError"]
