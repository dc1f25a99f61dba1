"""Connection manager: owns the socket and the connection lifecycle."""

from __future__ import annotations

import asyncio
import ssl
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum, auto

from loguru import logger

from irccore.core.constants import LINE_SEPARATOR, READ_CHUNK_SIZE
from irccore.core.errors import ConnectError, IRCCoreError
from irccore.events import (
    DomainEvent,
    connection_closed,
    connection_error,
    connection_established,
    connection_pending,
)
from irccore.identity import ConnectionIdentity


class ConnectionState(Enum):
    PENDING = auto()
    CONNECTED = auto()
    WELCOMED = auto()
    CLOSED = auto()
    ERRORED = auto()


TERMINAL_STATES = frozenset({ConnectionState.CLOSED, ConnectionState.ERRORED})


@dataclass(frozen=True)
class Connection:
    """Read-only snapshot of a connection; the manager replaces it on every transition."""

    id: str
    state: ConnectionState
    identity: ConnectionIdentity
    last_error: IRCCoreError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class RawChannel:
    """Duplex byte channel over an asyncio stream pair. At most one write in flight."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        connection_id: str = "",
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._connection_id = connection_id
        self._write_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, n: int = READ_CHUNK_SIZE) -> bytes:
        """Next chunk of bytes; b"" at EOF or after close."""
        if self._closed:
            return b""
        return await self._reader.read(n)

    async def write(self, data: bytes) -> None:
        async with self._write_lock:
            if self._closed or self._writer.is_closing():
                raise ConnectionResetError(f"channel {self._connection_id} is closed")
            self._writer.write(data)
            await self._writer.drain()

    async def write_line(self, line: str) -> None:
        await self.write(f"{line}{LINE_SEPARATOR}".encode())

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as exc:
            # Socket is released either way; peer may already be gone
            logger.debug("[{}] error while closing socket: {}", self._connection_id, exc)


Emit = Callable[[DomainEvent], None]


class ConnectionManager:
    """Opens the TCP connection for one identity and reports its lifecycle.

    Emits ConnectionPending, ConnectionEstablished, then exactly one terminal event:
    ConnectionFailed on error, ConnectionClosed otherwise (never both). No retries.
    """

    def __init__(
        self,
        identity: ConnectionIdentity,
        emit: Emit,
        *,
        open_connection=asyncio.open_connection,
    ) -> None:
        self._emit = emit
        self._open_connection = open_connection
        self._connection = Connection(
            id=identity.connection_id,
            state=ConnectionState.PENDING,
            identity=identity,
        )
        self._channel: RawChannel | None = None
        self._opened = False

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def connection_id(self) -> str:
        return self._connection.id

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def channel(self) -> RawChannel | None:
        return self._channel

    @property
    def opened(self) -> bool:
        """True once open() has emitted ConnectionPending."""
        return self._opened

    def _set_state(self, new_state: ConnectionState, *, error: IRCCoreError | None = None) -> None:
        old_state = self._connection.state
        if old_state != new_state:
            logger.debug(
                "[{}] state {} -> {}",
                self.connection_id,
                old_state.name,
                new_state.name,
            )
        self._connection = replace(
            self._connection,
            state=new_state,
            last_error=error or self._connection.last_error,
        )

    async def open(self) -> RawChannel | None:
        """Connect; returns the channel, or None after emitting ConnectionFailed."""
        if self._opened:
            raise RuntimeError(f"connection {self.connection_id} was already opened")
        self._opened = True
        identity = self._connection.identity
        _, evt = connection_pending(
            self.connection_id,
            identity.real_name,
            identity.nickname,
            identity.server,
            identity.port,
        )
        self._emit(evt)
        logger.info(
            "Connecting {} to {}:{}{}",
            identity.nickname,
            identity.server,
            identity.port,
            " (tls)" if identity.tls else "",
        )

        ssl_context = ssl.create_default_context() if identity.tls else None
        try:
            reader, writer = await self._open_connection(identity.server, identity.port, ssl=ssl_context)
        except (OSError, ValueError) as exc:
            # ValueError covers hostnames that fail IDNA encoding
            await self.fail(
                ConnectError(
                    f"could not connect to {identity.server}:{identity.port}: {exc}",
                    code="connect_failed",
                    details={"server": identity.server, "port": identity.port},
                    original_error=exc,
                )
            )
            return None

        self._channel = RawChannel(reader, writer, connection_id=self.connection_id)
        if self._connection.is_terminal:
            # Closed while the connect was in flight
            await self._channel.close()
            return None
        self._set_state(ConnectionState.CONNECTED)
        _, evt = connection_established(self.connection_id)
        self._emit(evt)
        logger.info("[{}] connected", self.connection_id)
        return self._channel

    def mark_welcomed(self) -> None:
        if self._connection.state == ConnectionState.CONNECTED:
            self._set_state(ConnectionState.WELCOMED)

    def forget_password(self) -> None:
        """Drop the password once the handshake no longer needs it."""
        self._connection = replace(
            self._connection,
            identity=self._connection.identity.without_password(),
        )

    async def fail(self, error: IRCCoreError) -> bool:
        """Terminal error. Returns False if the connection had already terminated."""
        if self._connection.is_terminal:
            logger.debug("[{}] ignoring error after termination: {}", self.connection_id, error)
            return False
        self._set_state(ConnectionState.ERRORED, error=error)
        logger.warning("[{}] connection error: {}", self.connection_id, error)
        _, evt = connection_error(self.connection_id, error)
        self._emit(evt)
        await self._release()
        return True

    async def closed(self) -> bool:
        """Peer hung up."""
        return await self._terminate_closed("closed by peer")

    async def close(self) -> bool:
        """Local close. Safe to call repeatedly."""
        return await self._terminate_closed("closed locally")

    async def _terminate_closed(self, reason: str) -> bool:
        if self._connection.is_terminal:
            await self._release()
            return False
        self._set_state(ConnectionState.CLOSED)
        if self._opened:
            logger.info("[{}] {}", self.connection_id, reason)
            _, evt = connection_closed(self.connection_id)
            self._emit(evt)
        await self._release()
        return True

    async def _release(self) -> None:
        if self._channel is not None:
            await self._channel.close()
