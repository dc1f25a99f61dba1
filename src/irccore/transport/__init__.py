"""Transport: socket ownership and connection lifecycle."""

from irccore.transport.connection import Connection, ConnectionManager, ConnectionState, RawChannel

__all__ = ["Connection", "ConnectionManager", "ConnectionState", "RawChannel"]
